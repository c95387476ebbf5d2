from __future__ import annotations
import itertools
import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Protocol

from ..config.models import DEFAULT_MAX_FILE_SIZE
from ..errors import InvalidInput, NotFound, wrap_os_error
from ..infra.base import DirEntry, FileMetaInfra, FileReaderInfra, WalkerInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..util.fs import decode_text, display_path, is_binary, resolve_path, split_lines
from .inputs import opt_int, opt_str

MAX_LINE_CHARS = 500

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_FIND,
    description=(
        "Recursively search files by content (case-insensitive regex) and/or by file name (glob). "
        "Without regex, lists the files whose names match file_pattern."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File or directory to search. Default '.'"},
            "regex": {"type": "string", "description": "Regex matched against each line (case-insensitive)."},
            "file_pattern": {"type": "string", "description": "Glob on file names, e.g. '*.py'."},
            "max_results": {"type": "integer", "description": "Max matches to return."},
        },
        "required": [],
    },
)


@dataclass(frozen=True)
class FindRequest:
    path: str = "."
    regex: Optional[str] = None
    file_pattern: Optional[str] = None
    max_results: Optional[int] = None

    @staticmethod
    def from_input(data: dict[str, Any]) -> "FindRequest":
        return FindRequest(
            path=opt_str(data, "path", ".") or ".",
            regex=opt_str(data, "regex") or None,
            file_pattern=opt_str(data, "file_pattern") or None,
            max_results=opt_int(data, "max_results"),
        )


@dataclass
class FindMatch:
    path: str
    line_number: Optional[int] = None
    line: Optional[str] = None


@dataclass
class FindResponse(Response):
    matches: list[FindMatch] = field(default_factory=list)
    truncated: bool = False


class _FindFs(FileReaderInfra, FileMetaInfra, WalkerInfra, Protocol):
    pass


class FsFindService:
    request_type = FindRequest

    def __init__(
        self,
        fs: _FindFs,
        cwd: Path,
        max_results: int = 200,
        ignored_dirs: Iterable[str] = (),
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ) -> None:
        self.fs = fs
        self.cwd = cwd
        self.max_results = max_results
        self.ignored_dirs = tuple(ignored_dirs)
        self.max_file_size = max_file_size

    def execute(self, request: FindRequest) -> FindResponse:
        root = resolve_path(self.cwd, request.path)
        shown = display_path(self.cwd, root)
        if request.max_results is not None and request.max_results < 1:
            raise InvalidInput("max_results must be >= 1", field="max_results")
        limit = min(request.max_results or self.max_results, self.max_results)

        rx = None
        if request.regex:
            try:
                rx = re.compile(request.regex, re.IGNORECASE)
            except re.error as e:
                raise InvalidInput(f"Invalid regex pattern {request.regex!r}: {e}", field="regex") from None

        try:
            if self.fs.is_file(root):
                entries: Iterable[DirEntry] = [DirEntry(path=root, is_dir=False)]
            elif self.fs.is_dir(root):
                entries = self.fs.walk(root, self.ignored_dirs)
            else:
                raise NotFound(f"Path not found: {shown}", path=shown)
        except OSError as e:
            raise wrap_os_error(e, shown) from e

        found = list(itertools.islice(self._matches(entries, rx, request.file_pattern), limit + 1))
        return FindResponse(matches=found[:limit], truncated=len(found) > limit)

    def _matches(
        self, entries: Iterable[DirEntry], rx: Optional[re.Pattern], file_pattern: Optional[str]
    ) -> Iterator[FindMatch]:
        for entry in entries:
            if entry.is_dir:
                continue
            if file_pattern and not fnmatch(entry.path.name, file_pattern):
                continue
            rel = display_path(self.cwd, entry.path)
            if rx is None:
                yield FindMatch(path=rel)
                continue
            try:
                if self.fs.file_size(entry.path) > self.max_file_size:
                    continue
                data = self.fs.read_bytes(entry.path)
            except OSError:
                # unreadable files are skipped
                continue
            if is_binary(data):
                continue
            for i, line in enumerate(split_lines(decode_text(data)), start=1):
                if rx.search(line):
                    yield FindMatch(path=rel, line_number=i, line=line[:MAX_LINE_CHARS])
