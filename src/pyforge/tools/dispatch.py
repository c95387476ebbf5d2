from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ForgeError, InvalidInput, ModeViolation
from ..events.store import EventStore
from ..mode import ModeController
from .base import Response
from .registry import ToolRegistry


@dataclass
class Dispatcher:
    """Routes `{tool_name, input}` to a service.

    Order matters: the descriptor is looked up and authorized against the
    current mode before the request is parsed or any adapter is touched.
    Nothing here renders titles or progress.
    """

    registry: ToolRegistry
    modes: ModeController
    events: Optional[EventStore] = None

    def invoke(self, tool_name: str, input: Any) -> Response:
        descriptor = self.registry.descriptor(tool_name)
        self.modes.authorize(descriptor)
        if not isinstance(input, dict):
            raise InvalidInput(f"Input for {tool_name} must be an object")
        service = self.registry.resolve(tool_name)
        request = service.request_type.from_input(input)
        return service.execute(request)

    def call(self, tool_name: str, input: Any) -> dict[str, Any]:
        self._event("tool.call", {"tool": tool_name, "mode": self.modes.mode.value})
        t0 = time.perf_counter()
        try:
            out = self.invoke(tool_name, input).to_output()
        except ModeViolation as e:
            self._event("tool.denied", {"tool": tool_name, "mode": self.modes.mode.value})
            return {"error": e.to_dict()}
        except ForgeError as e:
            self._event("tool.error", {"tool": tool_name, "kind": e.kind, "message": e.message})
            return {"error": e.to_dict()}
        except Exception as e:
            self._event("tool.error", {"tool": tool_name, "kind": "InternalError", "message": str(e)})
            return {"error": {"kind": "InternalError", "message": f"Tool {tool_name} exception: {e}"}}
        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        self._event("tool.ok", {"tool": tool_name, "elapsed_ms": elapsed_ms})
        return {"output": out}

    def _event(self, event_type: str, data: dict[str, Any]) -> None:
        if self.events:
            self.events.append(event_type, data)
