from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from ..config.models import DEFAULT_MAX_FILE_SIZE
from ..errors import InvalidInput, IoError, wrap_os_error
from ..infra.base import FileMetaInfra, FileReaderInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..util.fs import decode_text, display_path, is_binary, resolve_path, split_lines
from .inputs import opt_int, require_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_READ,
    description="Read a text file. Optionally limit to a 1-based inclusive line range.",
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace root."},
            "start_line": {"type": "integer", "description": "1-based start line (inclusive)."},
            "end_line": {"type": "integer", "description": "1-based end line (inclusive)."},
        },
        "required": ["path"],
    },
)


@dataclass(frozen=True)
class ReadRequest:
    path: str
    start_line: Optional[int] = None
    end_line: Optional[int] = None

    @staticmethod
    def from_input(data: dict[str, Any]) -> "ReadRequest":
        return ReadRequest(
            path=require_str(data, "path"),
            start_line=opt_int(data, "start_line"),
            end_line=opt_int(data, "end_line"),
        )


@dataclass
class ReadResponse(Response):
    path: str
    content: str
    start_line: int
    end_line: int
    total_lines: int
    truncated: bool


class _ReadFs(FileReaderInfra, FileMetaInfra, Protocol):
    pass


class FsReadService:
    request_type = ReadRequest

    def __init__(
        self, fs: _ReadFs, cwd: Path, max_read_lines: int = 2000, max_file_size: int = DEFAULT_MAX_FILE_SIZE
    ) -> None:
        self.fs = fs
        self.cwd = cwd
        self.max_read_lines = max_read_lines
        self.max_file_size = max_file_size

    def execute(self, request: ReadRequest) -> ReadResponse:
        p = resolve_path(self.cwd, request.path)
        shown = display_path(self.cwd, p)
        try:
            size = self.fs.file_size(p)
            if size > self.max_file_size:
                raise InvalidInput(
                    f"File {shown} is {size} bytes, larger than the {self.max_file_size} byte read limit",
                    path=shown,
                )
            data = self.fs.read_bytes(p)
        except OSError as e:
            raise wrap_os_error(e, shown) from e
        if is_binary(data):
            raise IoError(f"Binary files are not supported: {shown}", path=shown)

        lines = split_lines(decode_text(data))
        total = len(lines)
        start = 1 if request.start_line is None else request.start_line
        if start < 1:
            raise InvalidInput(f"start_line must be >= 1, got {start}", field="start_line")
        wanted_end = request.end_line
        if wanted_end is not None and wanted_end < start:
            # a reversed range reads the same lines
            start, wanted_end = max(wanted_end, 1), start
        if total == 0:
            return ReadResponse(path=shown, content="", start_line=0, end_line=0, total_lines=0, truncated=False)
        if start > total:
            raise InvalidInput(f"start_line {start} is beyond the end of {shown} ({total} lines)", field="start_line")

        wanted_end = total if wanted_end is None else min(wanted_end, total)
        end = min(wanted_end, start + self.max_read_lines - 1)
        return ReadResponse(
            path=shown,
            content="\n".join(lines[start - 1:end]),
            start_line=start,
            end_line=end,
            total_lines=total,
            truncated=end < wanted_end,
        )
