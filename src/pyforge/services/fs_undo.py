from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from ..errors import UndoNoHistory, wrap_os_error
from ..infra.base import FileMetaInfra, FileReaderInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..undo.ledger import UndoLedger
from ..util.fs import decode_text, display_path, resolve_path
from .inputs import require_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_UNDO,
    description=(
        "Revert the most recent write, remove or patch of a file. "
        "Each call steps back one operation."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace root."},
        },
        "required": ["path"],
    },
)


@dataclass(frozen=True)
class UndoRequest:
    path: str

    @staticmethod
    def from_input(data: dict[str, Any]) -> "UndoRequest":
        return UndoRequest(path=require_str(data, "path"))


@dataclass
class UndoResponse(Response):
    path: str
    operation: str
    before_undo: Optional[str]
    after_undo: Optional[str]
    remaining: int


class _UndoFs(FileReaderInfra, FileMetaInfra, Protocol):
    pass


class FsUndoService:
    request_type = UndoRequest

    def __init__(self, fs: _UndoFs, ledger: UndoLedger, cwd: Path) -> None:
        self.fs = fs
        self.ledger = ledger
        self.cwd = cwd

    def _read(self, p: Path, shown: str) -> Optional[str]:
        try:
            if not self.fs.is_file(p):
                return None
            return decode_text(self.fs.read_bytes(p))
        except OSError as e:
            raise wrap_os_error(e, shown) from e

    def execute(self, request: UndoRequest) -> UndoResponse:
        p = resolve_path(self.cwd, request.path)
        shown = display_path(self.cwd, p)
        with self.ledger.lock(p):
            if not self.ledger.has_history(p):
                raise UndoNoHistory(shown)
            before = self._read(p, shown)
            entry = self.ledger.restore(p)
            after = self._read(p, shown)
            remaining = len(self.ledger.history(p))
        return UndoResponse(
            path=shown,
            operation=entry.operation.value,
            before_undo=before,
            after_undo=after,
            remaining=remaining,
        )
