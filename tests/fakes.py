from __future__ import annotations

import errno
import threading
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Iterator, Optional, Union

from pyforge.infra.base import CmdResult, DirEntry, HttpResponse, HttpUnreachable


class InMemoryFs:
    """Dict-backed filesystem implementing every fs capability.

    Every adapter call is appended to `calls` as (method, path) so tests can
    assert that nothing was touched.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.files: dict[Path, bytes] = {}
        self.dirs: set[Path] = set()
        self.calls: list[tuple[str, Path]] = []
        self.fail_writes: Optional[OSError] = None
        self.fail_reads: Optional[OSError] = None
        self.create_dirs(self.root)
        self.calls.clear()

    # helpers (not part of the adapter surface)

    def put(self, rel: str, data: Union[str, bytes]) -> Path:
        p = self.root / rel
        self._mkdirs(p.parent)
        self.files[p] = data.encode("utf-8") if isinstance(data, str) else data
        return p

    def get(self, rel: str) -> Optional[bytes]:
        return self.files.get(self.root / rel)

    def text(self, rel: str) -> Optional[str]:
        data = self.get(rel)
        return None if data is None else data.decode("utf-8")

    def snapshot(self) -> tuple[dict[Path, bytes], set[Path]]:
        return dict(self.files), set(self.dirs)

    def mutating_calls(self) -> list[tuple[str, Path]]:
        return [c for c in self.calls if c[0] in {"write_bytes", "create_dirs", "remove"}]

    def _mkdirs(self, path: Path) -> None:
        for p in [path, *path.parents]:
            self.dirs.add(p)

    # adapter surface

    def read_bytes(self, path: Path) -> bytes:
        self.calls.append(("read_bytes", path))
        if self.fail_reads is not None:
            raise self.fail_reads
        if path in self.dirs:
            raise IsADirectoryError(errno.EISDIR, "Is a directory", str(path))
        if path not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        return self.files[path]

    def write_bytes(self, path: Path, data: bytes) -> None:
        self.calls.append(("write_bytes", path))
        if self.fail_writes is not None:
            raise self.fail_writes
        if path.parent not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        self.files[path] = bytes(data)

    def create_dirs(self, path: Path) -> None:
        self.calls.append(("create_dirs", path))
        self._mkdirs(path)

    def remove(self, path: Path) -> None:
        self.calls.append(("remove", path))
        if path not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        del self.files[path]

    def exists(self, path: Path) -> bool:
        self.calls.append(("exists", path))
        return path in self.files or path in self.dirs

    def is_file(self, path: Path) -> bool:
        self.calls.append(("is_file", path))
        return path in self.files

    def is_dir(self, path: Path) -> bool:
        self.calls.append(("is_dir", path))
        return path in self.dirs

    def file_size(self, path: Path) -> int:
        self.calls.append(("file_size", path))
        if path in self.dirs:
            return 0
        if path not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        return len(self.files[path])

    def _children(self, path: Path) -> list[DirEntry]:
        kids = [DirEntry(d, True) for d in self.dirs if d.parent == path and d != path]
        kids += [DirEntry(f, False) for f in self.files if f.parent == path]
        return sorted(kids, key=lambda e: (not e.is_dir, e.path.name.lower()))

    def iter_dir(self, path: Path) -> Iterator[DirEntry]:
        self.calls.append(("iter_dir", path))
        if path not in self.dirs:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", str(path))
        yield from self._children(path)

    def walk(self, root: Path, ignored: Iterable[str] = ()) -> Iterator[DirEntry]:
        self.calls.append(("walk", root))
        skip = set(ignored)
        pending = [root]
        while pending:
            current = pending.pop(0)
            kids = [e for e in self._children(current) if not (e.is_dir and e.path.name in skip)]
            for e in kids:
                if e.is_dir:
                    yield e
                    pending.append(e.path)
            for e in kids:
                if not e.is_dir:
                    yield e


@dataclass
class FakeRunner:
    result: CmdResult = field(default_factory=lambda: CmdResult(0, "", ""))
    raises: Optional[BaseException] = None
    calls: list[dict] = field(default_factory=list)

    def run(
        self,
        command: str,
        cwd: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CmdResult:
        self.calls.append({"command": command, "cwd": cwd, "timeout": timeout, "cancel": cancel})
        if self.raises is not None:
            raise self.raises
        return self.result


Reply = Union[HttpResponse, BaseException, Callable[[str], HttpResponse]]


@dataclass
class FakeHttp:
    """Answers GETs from a per-URL queue; the last reply for a URL repeats."""

    replies: dict[str, list[Reply]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def on(self, url: str, *replies: Reply) -> "FakeHttp":
        self.replies.setdefault(url, []).extend(replies)
        return self

    def get(self, url: str, timeout: float, headers: Optional[dict[str, str]] = None) -> HttpResponse:
        self.calls.append(url)
        queue = self.replies.get(url)
        if not queue:
            if str(PurePosixPath(url).name) == "robots.txt":
                return HttpResponse(url=url, status=404, body=b"")
            raise HttpUnreachable(f"no route to {url}")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(url)
        return reply


def html(url: str, body: str, status: int = 200) -> HttpResponse:
    return HttpResponse(url=url, status=status, body=body.encode("utf-8"), headers={"Content-Type": "text/html; charset=utf-8"})


def plain(url: str, body: str, status: int = 200, content_type: str = "text/plain") -> HttpResponse:
    return HttpResponse(url=url, status=status, body=body.encode("utf-8"), headers={"Content-Type": content_type})


@dataclass
class FakeUser:
    answer: Optional[str] = None
    pick: Optional[str] = None
    picks: Optional[list[str]] = None
    calls: list[tuple[str, str, list[str]]] = field(default_factory=list)

    def prompt_question(self, question: str) -> Optional[str]:
        self.calls.append(("question", question, []))
        return self.answer

    def select_one(self, question: str, options: list[str]) -> Optional[str]:
        self.calls.append(("one", question, list(options)))
        return self.pick

    def select_many(self, question: str, options: list[str]) -> Optional[list[str]]:
        self.calls.append(("many", question, list(options)))
        return self.picks
