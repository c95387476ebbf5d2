from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from ..errors import InvalidInput, NotFound, wrap_os_error
from ..infra.base import FileMetaInfra, FileReaderInfra, FileRemoverInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..undo.ledger import UndoLedger, UndoOperation
from ..util.fs import display_path, resolve_path
from .inputs import require_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_REMOVE,
    description="Remove a file. Directories are not removed. Reversible with fs_undo.",
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace root."},
        },
        "required": ["path"],
    },
)


@dataclass(frozen=True)
class RemoveRequest:
    path: str

    @staticmethod
    def from_input(data: dict[str, Any]) -> "RemoveRequest":
        return RemoveRequest(path=require_str(data, "path"))


@dataclass
class RemoveResponse(Response):
    path: str
    bytes_removed: int


class _RemoveFs(FileReaderInfra, FileRemoverInfra, FileMetaInfra, Protocol):
    pass


class FsRemoveService:
    request_type = RemoveRequest

    def __init__(self, fs: _RemoveFs, ledger: UndoLedger, cwd: Path) -> None:
        self.fs = fs
        self.ledger = ledger
        self.cwd = cwd

    def execute(self, request: RemoveRequest) -> RemoveResponse:
        p = resolve_path(self.cwd, request.path)
        shown = display_path(self.cwd, p)

        with self.ledger.lock(p):
            try:
                if self.fs.is_dir(p):
                    raise InvalidInput(f"Path is a directory, only files can be removed: {shown}", path=shown)
                if not self.fs.is_file(p):
                    raise NotFound(f"File not found: {shown}", path=shown)
            except OSError as e:
                raise wrap_os_error(e, shown) from e

            self.ledger.record(p, UndoOperation.REMOVE)
            size = len(self.ledger.history(p)[0].snapshot or b"")
            try:
                self.fs.remove(p)
            except OSError as e:
                raise wrap_os_error(e, shown) from e

        return RemoveResponse(path=shown, bytes_removed=size)
