from __future__ import annotations
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..errors import InvalidInput, ShellCancelled, ShellNonZeroExit, ShellTimeout, wrap_os_error
from ..infra.base import CommandInfra, ProcessCancelled, ProcessTimeout
from ..tools.base import Response, ToolDescriptor, ToolKind
from ..util.fs import display_path, resolve_path
from .inputs import opt_bool, opt_float, opt_str, require_str

_ANSI = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b[@-Z\\-_]")

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.SHELL,
    description=(
        "Run a shell command to completion in the workspace. Returns stdout, stderr and the exit code. "
        "Non-interactive; a non-zero exit code is reported as an error carrying the output."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "command": {"type": "string", "description": "Shell command to run."},
            "cwd": {"type": "string", "description": "Working directory relative to the workspace root."},
            "timeout": {"type": "number", "description": "Timeout seconds (capped by configuration)."},
            "keep_ansi": {"type": "boolean", "default": False, "description": "Keep ANSI escape codes."},
        },
        "required": ["command"],
    },
)


def strip_ansi(text: str) -> str:
    return _ANSI.sub("", text)


@dataclass(frozen=True)
class ShellRequest:
    command: str
    cwd: Optional[str] = None
    timeout: Optional[float] = None
    keep_ansi: bool = False

    @staticmethod
    def from_input(data: dict[str, Any]) -> "ShellRequest":
        return ShellRequest(
            command=require_str(data, "command"),
            cwd=opt_str(data, "cwd") or None,
            timeout=opt_float(data, "timeout"),
            keep_ansi=opt_bool(data, "keep_ansi"),
        )


@dataclass
class ShellResponse(Response):
    command: str
    stdout: str
    stderr: str
    exit_code: int


class ShellService:
    request_type = ShellRequest

    def __init__(
        self,
        runner: CommandInfra,
        cwd: Path,
        timeout: float = 120.0,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.runner = runner
        self.cwd = cwd
        self.timeout = timeout
        self.cancel = cancel

    def execute(self, request: ShellRequest) -> ShellResponse:
        command = request.command.strip()
        if not command:
            raise InvalidInput("Command string is empty or contains only whitespace", field="command")
        if request.timeout is not None and request.timeout <= 0:
            raise InvalidInput("timeout must be > 0", field="timeout")
        timeout = min(request.timeout, self.timeout) if request.timeout else self.timeout
        workdir = resolve_path(self.cwd, request.cwd) if request.cwd else self.cwd

        try:
            res = self.runner.run(command, workdir, timeout=timeout, cancel=self.cancel)
        except ProcessTimeout:
            raise ShellTimeout(f"Command timed out after {timeout:g}s: {command}", command=command, timeout=timeout) from None
        except ProcessCancelled as e:
            if self.cancel is not None:
                self.cancel.clear()
            raise ShellCancelled(f"{e}: {command}", command=command) from None
        except OSError as e:
            raise wrap_os_error(e, display_path(self.cwd, workdir)) from e

        stdout, stderr = res.stdout, res.stderr
        if not request.keep_ansi:
            stdout, stderr = strip_ansi(stdout), strip_ansi(stderr)
        if res.returncode != 0:
            raise ShellNonZeroExit(res.returncode, stdout=stdout, stderr=stderr)
        return ShellResponse(command=command, stdout=stdout, stderr=stderr, exit_code=res.returncode)
