from __future__ import annotations
import os
import tempfile
from pathlib import Path
from typing import Iterable, Iterator

from .base import DirEntry


class LocalFs:
    """Filesystem adapter backed by the local disk."""

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()

    def write_bytes(self, path: Path, data: bytes) -> None:
        # write to a sibling temp file, then swap it in
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if path.exists():
                os.chmod(tmp, path.stat().st_mode & 0o7777)
            os.replace(tmp, path)
        except BaseException:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise

    def create_dirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def remove(self, path: Path) -> None:
        path.unlink()

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def file_size(self, path: Path) -> int:
        return path.stat().st_size

    def iter_dir(self, path: Path) -> Iterator[DirEntry]:
        for child in sorted(path.iterdir(), key=lambda x: (not x.is_dir(), x.name.lower())):
            yield DirEntry(path=child, is_dir=child.is_dir())

    def walk(self, root: Path, ignored: Iterable[str] = ()) -> Iterator[DirEntry]:
        skip = set(ignored)
        for dirpath, dirs, files in os.walk(root):
            dirs[:] = sorted(d for d in dirs if d not in skip)
            base = Path(dirpath)
            for d in dirs:
                yield DirEntry(path=base / d, is_dir=True)
            for f in sorted(files):
                yield DirEntry(path=base / f, is_dir=False)
