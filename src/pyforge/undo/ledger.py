from __future__ import annotations

import itertools
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional, Protocol

from ..errors import UndoNoHistory, wrap_os_error
from ..infra.base import FileMetaInfra, FileReaderInfra, FileRemoverInfra, FileWriterInfra


class UndoOperation(str, Enum):
    WRITE = "write"
    REMOVE = "remove"
    PATCH = "patch"


@dataclass(frozen=True)
class UndoEntry:
    path: Path
    snapshot: Optional[bytes]    # None: the path did not exist before the operation
    operation: UndoOperation
    sequence: int
    timestamp: float

    @property
    def existed(self) -> bool:
        return self.snapshot is not None


@dataclass(frozen=True)
class SnapshotToken:
    path: Path
    sequence: int


class _PathLock:
    """Re-entrant lock plus the number of threads holding or waiting on it."""

    def __init__(self) -> None:
        self.rlock = threading.RLock()
        self.users = 0


class _LedgerFs(FileReaderInfra, FileWriterInfra, FileRemoverInfra, FileMetaInfra, Protocol):
    pass


class UndoLedger:
    """Per-path LIFO history of pre-mutation snapshots.

    Mutating services take `lock(path)` around "record, then mutate" so a
    snapshot and the write it protects cannot interleave with another
    mutation of the same path. Locks are per path; there is no global lock
    held across I/O.
    """

    def __init__(
        self,
        fs: _LedgerFs,
        max_entries_per_path: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        listener: Optional[Callable[[str, dict], None]] = None,
    ) -> None:
        self.fs = fs
        self.listener = listener
        self.max_entries_per_path = max_entries_per_path
        self._clock = clock
        self._histories: dict[Path, list[UndoEntry]] = {}
        self._locks: dict[Path, _PathLock] = {}
        self._guard = threading.Lock()
        self._seq = itertools.count(1)

    @contextmanager
    def lock(self, path: Path) -> Iterator[None]:
        """Hold the per-path lock. It is dropped once no thread holds or awaits it."""
        with self._guard:
            slot = self._locks.get(path)
            if slot is None:
                slot = self._locks[path] = _PathLock()
            slot.users += 1
        try:
            with slot.rlock:
                yield
        finally:
            with self._guard:
                slot.users -= 1
                if slot.users == 0 and self._locks.get(path) is slot:
                    del self._locks[path]

    def record(self, path: Path, operation: UndoOperation) -> SnapshotToken:
        with self.lock(path):
            try:
                snapshot = self.fs.read_bytes(path) if self.fs.is_file(path) else None
            except OSError as e:
                raise wrap_os_error(e, str(path)) from e
            with self._guard:
                entry = UndoEntry(
                    path=path,
                    snapshot=snapshot,
                    operation=UndoOperation(operation),
                    sequence=next(self._seq),
                    timestamp=self._clock(),
                )
                hist = self._histories.setdefault(path, [])
                hist.append(entry)
                if self.max_entries_per_path and len(hist) > self.max_entries_per_path:
                    del hist[: len(hist) - self.max_entries_per_path]
        self._notify("undo.record", entry)
        return SnapshotToken(path=path, sequence=entry.sequence)

    def restore(self, path: Path) -> UndoEntry:
        """Pop the most recent snapshot for `path` and put the file back in that state."""
        with self.lock(path):
            with self._guard:
                hist = self._histories.get(path)
                if not hist:
                    raise UndoNoHistory(str(path))
                entry = hist.pop()
            try:
                if entry.snapshot is None:
                    if self.fs.exists(path):
                        self.fs.remove(path)
                else:
                    self.fs.create_dirs(path.parent)
                    self.fs.write_bytes(path, entry.snapshot)
            except OSError as e:
                # keep the entry so the restore can be retried
                with self._guard:
                    self._histories.setdefault(path, []).append(entry)
                raise wrap_os_error(e, str(path)) from e
            with self._guard:
                if not self._histories.get(path):
                    self._histories.pop(path, None)
        self._notify("undo.restore", entry)
        return entry

    def history(self, path: Path) -> list[UndoEntry]:
        """Entries for `path`, most recent first."""
        with self._guard:
            return list(reversed(self._histories.get(path, [])))

    def has_history(self, path: Path) -> bool:
        with self._guard:
            return bool(self._histories.get(path))

    def paths(self) -> list[Path]:
        with self._guard:
            return [p for p, h in self._histories.items() if h]

    def commit(self, path: Optional[Path] = None) -> int:
        """Forget history for one path (or all). Returns the number of dropped entries."""
        with self._guard:
            if path is None:
                n = sum(len(h) for h in self._histories.values())
                self._histories.clear()
                return n
            return len(self._histories.pop(path, []))

    def clear(self) -> None:
        self.commit()

    def __len__(self) -> int:
        with self._guard:
            return sum(len(h) for h in self._histories.values())

    def _notify(self, event_type: str, entry: UndoEntry) -> None:
        if self.listener:
            self.listener(
                event_type,
                {"path": str(entry.path), "operation": entry.operation.value, "existed": entry.existed},
            )
