from __future__ import annotations
import itertools
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Protocol

from ..errors import InvalidInput, NotFound, wrap_os_error
from ..infra.base import DirEntry, FileMetaInfra, WalkerInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..util.fs import display_path, resolve_path
from .inputs import opt_bool, opt_int, opt_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_LIST,
    description="List files/directories under a path (relative to the workspace root).",
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Directory path. Default '.'"},
            "recursive": {"type": "boolean", "description": "If true, list recursively", "default": False},
            "max_entries": {"type": "integer", "description": "Max entries to return"},
        },
        "required": [],
    },
)


@dataclass(frozen=True)
class ListRequest:
    path: str = "."
    recursive: bool = False
    max_entries: Optional[int] = None

    @staticmethod
    def from_input(data: dict[str, Any]) -> "ListRequest":
        return ListRequest(
            path=opt_str(data, "path", ".") or ".",
            recursive=opt_bool(data, "recursive"),
            max_entries=opt_int(data, "max_entries"),
        )


@dataclass
class ListEntry:
    path: str
    is_dir: bool


@dataclass
class ListResponse(Response):
    entries: list[ListEntry] = field(default_factory=list)
    truncated: bool = False


class _ListFs(FileMetaInfra, WalkerInfra, Protocol):
    pass


class FsListService:
    request_type = ListRequest

    def __init__(self, fs: _ListFs, cwd: Path, max_entries: int = 200, ignored_dirs: Iterable[str] = ()) -> None:
        self.fs = fs
        self.cwd = cwd
        self.max_entries = max_entries
        self.ignored_dirs = tuple(ignored_dirs)

    def execute(self, request: ListRequest) -> ListResponse:
        p = resolve_path(self.cwd, request.path)
        shown = display_path(self.cwd, p)
        if request.max_entries is not None and request.max_entries < 1:
            raise InvalidInput("max_entries must be >= 1", field="max_entries")
        limit = min(request.max_entries or self.max_entries, self.max_entries)

        try:
            if not self.fs.exists(p):
                raise NotFound(f"Path not found: {shown}", path=shown)
            if not self.fs.is_dir(p):
                raise InvalidInput(f"Not a directory: {shown}", path=shown)
            source: Iterator[DirEntry] = (
                self.fs.walk(p, self.ignored_dirs) if request.recursive else self.fs.iter_dir(p)
            )
            taken = list(itertools.islice(source, limit + 1))
        except OSError as e:
            raise wrap_os_error(e, shown) from e

        entries = [ListEntry(path=display_path(self.cwd, e.path), is_dir=e.is_dir) for e in taken[:limit]]
        return ListResponse(entries=entries, truncated=len(taken) > limit)
