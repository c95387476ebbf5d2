"""Capability interfaces for raw I/O.

Services depend on these protocols only, so tests can swap in in-memory
fakes. Implementations perform the raw operation and report raw failures
(``OSError`` for the filesystem, the exceptions below for processes and
network); translating them into service errors is the caller's job.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol


class ProcessTimeout(RuntimeError):
    pass


class ProcessCancelled(RuntimeError):
    pass


class HttpUnreachable(RuntimeError):
    pass


@dataclass(frozen=True)
class DirEntry:
    path: Path
    is_dir: bool


@dataclass
class CmdResult:
    returncode: int
    stdout: str
    stderr: str


@dataclass
class HttpResponse:
    url: str
    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        for k, v in self.headers.items():
            if k.lower() == "content-type":
                return v
        return ""


class FileReaderInfra(Protocol):
    def read_bytes(self, path: Path) -> bytes: ...


class FileWriterInfra(Protocol):
    def write_bytes(self, path: Path, data: bytes) -> None: ...

    def create_dirs(self, path: Path) -> None: ...


class FileRemoverInfra(Protocol):
    def remove(self, path: Path) -> None: ...


class FileMetaInfra(Protocol):
    def exists(self, path: Path) -> bool: ...

    def is_file(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def file_size(self, path: Path) -> int: ...


class WalkerInfra(Protocol):
    def iter_dir(self, path: Path) -> Iterator[DirEntry]: ...

    def walk(self, root: Path, ignored: Iterable[str] = ()) -> Iterator[DirEntry]: ...


class FileSystemInfra(FileReaderInfra, FileWriterInfra, FileRemoverInfra, FileMetaInfra, WalkerInfra, Protocol):
    pass


class CommandInfra(Protocol):
    def run(
        self,
        command: str,
        cwd: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CmdResult: ...


class HttpInfra(Protocol):
    def get(self, url: str, timeout: float, headers: Optional[dict[str, str]] = None) -> HttpResponse: ...


class UserInfra(Protocol):
    def prompt_question(self, question: str) -> Optional[str]: ...

    def select_one(self, question: str, options: list[str]) -> Optional[str]: ...

    def select_many(self, question: str, options: list[str]) -> Optional[list[str]]: ...
