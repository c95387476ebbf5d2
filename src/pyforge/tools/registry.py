from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..errors import DuplicateTool, UnknownTool
from .base import Service, ToolDescriptor


@dataclass
class ToolRegistry:
    """Name -> (descriptor, service). Holds no other state and authorizes nothing."""

    _tools: Dict[str, tuple[ToolDescriptor, Service]] = field(default_factory=dict)

    def register(self, descriptor: ToolDescriptor, service: Service) -> None:
        name = descriptor.name
        if name in self._tools:
            raise DuplicateTool(name)
        self._tools[name] = (descriptor, service)

    def resolve(self, name: str) -> Service:
        if name not in self._tools:
            raise UnknownTool(name)
        return self._tools[name][1]

    def descriptor(self, name: str) -> ToolDescriptor:
        if name not in self._tools:
            raise UnknownTool(name)
        return self._tools[name][0]

    def get_optional(self, name: str) -> Optional[Service]:
        """Return a service if registered, otherwise None."""
        entry = self._tools.get(name)
        return entry[1] if entry else None

    def list_descriptors(self) -> list[ToolDescriptor]:
        return [d for d, _ in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._tools
