"""UI-side wrapping of tool calls.

The presenter is composed around `Dispatcher.call` by the front-end; it is
never handed to a service.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator, Protocol

from rich.console import Console
from rich.markup import escape

from .base import ToolKind

_INTERACTIVE = {ToolKind.FOLLOWUP.value}


class ToolPresenter(Protocol):
    def title(self, tool_name: str, input: dict[str, Any]) -> str: ...

    def around(self, tool_name: str, input: dict[str, Any]) -> Any: ...

    def report(self, tool_name: str, result: dict[str, Any]) -> None: ...


def tool_title(tool_name: str, input: dict[str, Any]) -> str:
    arg = lambda k: str(input.get(k) or "")  # noqa: E731
    titles = {
        ToolKind.FS_READ.value: lambda: f"Read {arg('path')}",
        ToolKind.FS_WRITE.value: lambda: f"{'Overwrite' if input.get('overwrite') else 'Create'} {arg('path')}",
        ToolKind.FS_FIND.value: lambda: (
            f"Search {arg('regex') or arg('file_pattern') or '*'} in {arg('path') or '.'}"
        ),
        ToolKind.FS_LIST.value: lambda: f"List {arg('path') or '.'}",
        ToolKind.FS_REMOVE.value: lambda: f"Remove {arg('path')}",
        ToolKind.FS_UNDO.value: lambda: f"Undo {arg('path')}",
        ToolKind.FS_PATCH.value: lambda: f"Patch {arg('path')}",
        ToolKind.NET_FETCH.value: lambda: f"Fetch {arg('url')}",
        ToolKind.FOLLOWUP.value: lambda: "Follow-up question",
        ToolKind.SHELL.value: lambda: f"Execute {arg('command')}",
    }
    make = titles.get(tool_name)
    return make() if make else tool_name


class RichPresenter:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def title(self, tool_name: str, input: dict[str, Any]) -> str:
        return tool_title(tool_name, input)

    @contextmanager
    def around(self, tool_name: str, input: dict[str, Any]) -> Iterator[None]:
        title = escape(self.title(tool_name, input))
        self.console.print(f"[bold cyan]⏺ {title}[/bold cyan]")
        if tool_name in _INTERACTIVE:
            yield
            return
        with self.console.status(f"{title} ..."):
            yield

    def report(self, tool_name: str, result: dict[str, Any]) -> None:
        if "error" in result:
            err = result["error"]
            self.console.print(f"[red]{escape(err.get('kind', 'Error'))}[/red]: {escape(str(err.get('message', '')))}")
            return
        output = result.get("output")
        self.console.print_json(json.dumps(output, ensure_ascii=False, default=str))
        if isinstance(output, dict) and output.get("warning"):
            self.console.print(f"[yellow]warning:[/yellow] {escape(str(output['warning']))}")
