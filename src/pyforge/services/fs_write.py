from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from ..errors import AlreadyExists, InvalidInput, wrap_os_error
from ..infra.base import FileMetaInfra, FileWriterInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..undo.ledger import UndoLedger, UndoOperation
from ..util.fs import decode_text, display_path, resolve_path
from ..util.syntax import validate
from .inputs import opt_bool, require_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_WRITE,
    description=(
        "Create a file with the given content, creating missing parent directories. "
        "Set overwrite=true to replace an existing file. Reversible with fs_undo."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace root."},
            "content": {"type": "string", "description": "Full file content."},
            "overwrite": {"type": "boolean", "default": False, "description": "Replace an existing file."},
        },
        "required": ["path", "content"],
    },
)


@dataclass(frozen=True)
class WriteRequest:
    path: str
    content: str
    overwrite: bool = False

    @staticmethod
    def from_input(data: dict[str, Any]) -> "WriteRequest":
        return WriteRequest(
            path=require_str(data, "path"),
            content=require_str(data, "content", allow_empty=True),
            overwrite=opt_bool(data, "overwrite"),
        )


@dataclass
class WriteResponse(Response):
    path: str
    bytes_written: int
    created: bool
    before: Optional[str] = None     # previous content when an existing file was replaced
    warning: Optional[str] = None


class _WriteFs(FileWriterInfra, FileMetaInfra, Protocol):
    pass


class FsWriteService:
    request_type = WriteRequest

    def __init__(self, fs: _WriteFs, ledger: UndoLedger, cwd: Path) -> None:
        self.fs = fs
        self.ledger = ledger
        self.cwd = cwd

    def execute(self, request: WriteRequest) -> WriteResponse:
        p = resolve_path(self.cwd, request.path)
        shown = display_path(self.cwd, p)
        data = request.content.encode("utf-8")

        with self.ledger.lock(p):
            try:
                if self.fs.is_dir(p):
                    raise InvalidInput(f"Path is a directory: {shown}", path=shown)
                exists = self.fs.is_file(p)
            except OSError as e:
                raise wrap_os_error(e, shown) from e
            if exists and not request.overwrite:
                raise AlreadyExists(
                    f"File already exists at {shown}. Set overwrite=true to replace it.", path=shown
                )

            self.ledger.record(p, UndoOperation.WRITE)
            previous = self.ledger.history(p)[0].snapshot
            try:
                self.fs.create_dirs(p.parent)
                self.fs.write_bytes(p, data)
            except OSError as e:
                raise wrap_os_error(e, shown) from e

        return WriteResponse(
            path=shown,
            bytes_written=len(data),
            created=not exists,
            before=decode_text(previous) if previous is not None else None,
            warning=validate(p, request.content),
        )
