from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .config.loader import load_core_config
from .config.models import CoreConfig
from .events.store import EventStore
from .infra.fs import LocalFs
from .infra.http import UrllibHttp
from .infra.process import LocalCommandRunner
from .infra.user import RichUserPrompt
from .mode import ModeController, OperationMode
from .tools.builtin import Infrastructure, build_services, register_builtin_tools
from .tools.dispatch import Dispatcher
from .tools.registry import ToolRegistry
from .undo.ledger import UndoLedger


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class AppContext:
    cwd: Path
    config: CoreConfig
    modes: ModeController
    ledger: UndoLedger
    registry: ToolRegistry
    dispatcher: Dispatcher
    session_id: str
    events: EventStore | None = None
    cancel: threading.Event = field(default_factory=threading.Event)

    def call(self, tool_name: str, input: Any) -> dict[str, Any]:
        return self.dispatcher.call(tool_name, input)

    def switch_mode(self, mode: OperationMode) -> bool:
        before = self.modes.mode
        changed = self.modes.switch(mode)
        if changed:
            self._event("mode.switch", {"from": before.value, "to": mode.value})
        return changed

    def plan(self) -> bool:
        return self.switch_mode(OperationMode.RESTRICTED)

    def act(self) -> bool:
        return self.switch_mode(OperationMode.UNRESTRICTED)

    def select_mode(self, choice: str) -> bool:
        return self.switch_mode(OperationMode.parse(choice))

    def close(self) -> None:
        """End the session: undo history does not outlive it."""
        dropped = self.ledger.commit()
        self._event("session.end", {"undo_entries_dropped": dropped})

    def _event(self, event_type: str, data: dict[str, Any]) -> None:
        if self.events:
            self.events.append(event_type, data)

    @staticmethod
    def from_env(
        cwd: Path,
        config_path: Optional[Path] = None,
        mode: OperationMode | None = None,
        session_id: str | None = None,
        infra: Infrastructure | None = None,
        events_dir: Path | None = None,
        record_events: bool = True,
    ) -> "AppContext":
        cwd = cwd.expanduser().resolve()
        if config_path:
            config_path = config_path.expanduser().resolve()
        config = load_core_config(cwd=cwd, explicit_path=config_path)

        session_id = session_id or new_session_id()
        events = EventStore.open(session_id, directory=events_dir) if record_events else None

        if infra is None:
            infra = Infrastructure(
                fs=LocalFs(),
                runner=LocalCommandRunner(shell=config.shell),
                http=UrllibHttp(),
                user=RichUserPrompt(),
            )

        modes = ModeController(default=config.default_mode)
        if mode is not None:
            modes.switch(mode)

        ledger = UndoLedger(
            infra.fs,
            max_entries_per_path=config.undo_max_entries_per_path,
            listener=events.append if events else None,
        )
        cancel = threading.Event()
        registry = ToolRegistry()
        register_builtin_tools(registry, build_services(infra, ledger, cwd, config, cancel=cancel))
        dispatcher = Dispatcher(registry=registry, modes=modes, events=events)

        ctx = AppContext(
            cwd=cwd,
            config=config,
            modes=modes,
            ledger=ledger,
            registry=registry,
            dispatcher=dispatcher,
            session_id=session_id,
            events=events,
            cancel=cancel,
        )
        ctx._event(
            "session.start",
            {
                "cwd": str(cwd),
                "mode": modes.mode.value,
                "config": str(config.loaded_from) if config.loaded_from else None,
            },
        )
        return ctx
