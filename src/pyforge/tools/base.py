from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Protocol


class ToolKind(str, Enum):
    FS_READ = "fs_read"
    FS_WRITE = "fs_write"
    FS_FIND = "fs_find"
    FS_LIST = "fs_list"
    FS_REMOVE = "fs_remove"
    FS_UNDO = "fs_undo"
    FS_PATCH = "fs_patch"
    NET_FETCH = "net_fetch"
    FOLLOWUP = "followup"
    SHELL = "shell"


# Whether a tool may change the workspace. Restricted mode rejects these.
MUTATING: dict[ToolKind, bool] = {
    ToolKind.FS_READ: False,
    ToolKind.FS_FIND: False,
    ToolKind.FS_LIST: False,
    ToolKind.NET_FETCH: False,
    ToolKind.FOLLOWUP: False,
    ToolKind.FS_WRITE: True,
    ToolKind.FS_REMOVE: True,
    ToolKind.FS_PATCH: True,
    ToolKind.FS_UNDO: True,
    ToolKind.SHELL: True,
}

_missing = set(ToolKind) - set(MUTATING)
if _missing:
    raise RuntimeError(f"Mutation classification missing for: {sorted(k.value for k in _missing)}")


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    mutating: bool
    input_schema: dict[str, Any] = field(default_factory=dict)   # JSONSchema

    @staticmethod
    def for_kind(kind: ToolKind, description: str, input_schema: dict[str, Any]) -> "ToolDescriptor":
        return ToolDescriptor(
            name=kind.value,
            description=description,
            mutating=MUTATING[kind],
            input_schema=input_schema,
        )


class Response:
    """Mixin for service responses: plain dataclass -> protocol output."""

    def to_output(self) -> dict[str, Any]:
        return asdict(self)  # type: ignore[call-overload]


class Service(Protocol):
    request_type: type

    def execute(self, request: Any) -> Response: ...
