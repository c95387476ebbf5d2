from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import ModeViolation
from .tools.base import ToolDescriptor


class OperationMode(str, Enum):
    RESTRICTED = "plan"
    UNRESTRICTED = "act"

    @staticmethod
    def parse(value: str) -> "OperationMode":
        v = (value or "").strip().lower().lstrip("/")
        aliases = {
            "plan": OperationMode.RESTRICTED,
            "restricted": OperationMode.RESTRICTED,
            "act": OperationMode.UNRESTRICTED,
            "unrestricted": OperationMode.UNRESTRICTED,
        }
        if v not in aliases:
            raise ValueError(f"Unknown mode '{value}'. Expected one of: plan, act")
        return aliases[v]


MODE_CHOICES: dict[OperationMode, str] = {
    OperationMode.RESTRICTED: "Read-only analysis: tools that write files or run commands are rejected.",
    OperationMode.UNRESTRICTED: "Full access: read, write, patch, remove, undo and shell are allowed.",
}


@dataclass
class ModeController:
    """Two-state permission machine gating mutating tools.

    Only explicit switch requests change the mode; dispatching a tool never
    does. Switching to the current mode is a no-op.
    """

    default: OperationMode = OperationMode.RESTRICTED
    mode: OperationMode | None = None

    def __post_init__(self) -> None:
        if self.mode is None:
            self.mode = self.default

    @property
    def restricted(self) -> bool:
        return self.mode is OperationMode.RESTRICTED

    def authorize(self, descriptor: ToolDescriptor) -> None:
        if descriptor.mutating and self.restricted:
            raise ModeViolation(descriptor.name, self.mode.value)

    def switch(self, mode: OperationMode) -> bool:
        """Set the mode. Returns True when the mode actually changed."""
        changed = mode is not self.mode
        self.mode = mode
        return changed

    def plan(self) -> bool:
        return self.switch(OperationMode.RESTRICTED)

    def act(self) -> bool:
        return self.switch(OperationMode.UNRESTRICTED)

    def select(self, choice: str) -> bool:
        return self.switch(OperationMode.parse(choice))

    def reset(self) -> None:
        self.mode = self.default
