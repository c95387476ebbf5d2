from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from platformdirs import user_data_dir

APP_NAME = "pyforge"

# dispatcher outcomes, in the order a call can produce them
TOOL_EVENTS = ("tool.call", "tool.ok", "tool.error", "tool.denied")
UNDO_EVENTS = ("undo.record", "undo.restore")


def _events_dir() -> Path:
    root = Path(user_data_dir(APP_NAME))
    d = root / "events"
    d.mkdir(parents=True, exist_ok=True)
    return d


def list_sessions(directory: Path | None = None) -> list[str]:
    """Session ids with an event log, most recently written first."""
    d = directory or _events_dir()
    if not d.is_dir():
        return []
    logs = sorted(d.glob("*.jsonl"), key=lambda p: p.stat().st_mtime, reverse=True)
    return [p.stem for p in logs]


@dataclass
class Event:
    ts: float
    type: str
    data: dict[str, Any]


@dataclass
class ToolStats:
    tool: str
    calls: int = 0
    ok: int = 0
    errors: int = 0
    denied: int = 0
    total_ms: int = 0


@dataclass
class EventStore:
    """Append-only JSONL trace of one session: tool calls, mode switches, undo.

    Reading skips lines that do not parse, so a crash mid-write loses at most
    that one event.
    """

    session_id: str
    path: Path

    @staticmethod
    def open(session_id: str, directory: Path | None = None) -> "EventStore":
        d = directory or _events_dir()
        d.mkdir(parents=True, exist_ok=True)
        return EventStore(session_id=session_id, path=d / f"{session_id}.jsonl")

    def append(self, event_type: str, data: dict[str, Any]) -> None:
        ev = Event(ts=time.time(), type=event_type, data=data)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(ev.__dict__, ensure_ascii=False, default=str) + "\n")

    def iter_events(self) -> Iterable[Event]:
        if not self.path.exists():
            return []
        out: list[Event] = []
        for line in self.path.read_text(encoding="utf-8", errors="replace").split("\n"):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
                out.append(Event(ts=float(obj.get("ts", 0.0)), type=str(obj.get("type")), data=obj.get("data") or {}))
            except (ValueError, TypeError, AttributeError):
                continue
        return out

    def of_type(self, prefix: str) -> list[Event]:
        """Events whose type is `prefix` or starts with `prefix.`, e.g. "tool" or "undo.restore"."""
        return [e for e in self.iter_events() if e.type == prefix or e.type.startswith(prefix + ".")]

    def tool_stats(self) -> list[ToolStats]:
        stats: dict[str, ToolStats] = {}
        for e in self.iter_events():
            if e.type not in TOOL_EVENTS:
                continue
            name = str(e.data.get("tool"))
            s = stats.setdefault(name, ToolStats(tool=name))
            if e.type == "tool.call":
                s.calls += 1
            elif e.type == "tool.ok":
                s.ok += 1
                elapsed = e.data.get("elapsed_ms")
                if isinstance(elapsed, int):
                    s.total_ms += elapsed
            elif e.type == "tool.error":
                s.errors += 1
            else:
                s.denied += 1
        return sorted(stats.values(), key=lambda s: (-s.calls, s.tool))
