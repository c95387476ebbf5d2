from __future__ import annotations

import errno
from typing import Any


class ForgeError(RuntimeError):
    """Base class for every error the execution core reports to callers.

    `kind` is a stable identifier used by the tool call protocol; the message
    is meant for user-visible reporting.
    """

    kind = "ForgeError"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            d["details"] = dict(self.details)
        return d


# ---- dispatch / authorization ----

class ModeViolation(ForgeError):
    kind = "ModeViolation"

    def __init__(self, tool_name: str, mode: str = "plan") -> None:
        super().__init__(
            f"Tool {tool_name} mutates state and is not allowed in {mode} mode. Switch with /act to run it.",
            tool_name=tool_name,
            mode=mode,
        )
        self.tool_name = tool_name


class UnknownTool(ForgeError):
    kind = "UnknownTool"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}", tool_name=name)
        self.tool_name = name


class DuplicateTool(ForgeError):
    kind = "DuplicateTool"

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}", tool_name=name)
        self.tool_name = name


# ---- service errors ----

class ServiceError(ForgeError):
    kind = "ServiceError"


class IoError(ServiceError):
    kind = "IoError"


class NotFound(ServiceError):
    kind = "NotFound"


class PermissionDenied(ServiceError):
    kind = "PermissionDenied"


class AlreadyExists(ServiceError):
    kind = "AlreadyExists"


class InvalidInput(ServiceError):
    kind = "InvalidInput"


class PatchError(ServiceError):
    kind = "PatchError"


class PatchMalformed(PatchError):
    kind = "Malformed"


class PatchContextMismatch(PatchError):
    kind = "ContextMismatch"

    def __init__(self, hunk_index: int, message: str | None = None, **details: Any) -> None:
        super().__init__(message or f"Hunk {hunk_index} does not match the file content", hunk_index=hunk_index, **details)
        self.hunk_index = hunk_index


class ShellError(ServiceError):
    kind = "ShellError"


class ShellNonZeroExit(ShellError):
    kind = "NonZeroExit"

    def __init__(self, exit_code: int, stdout: str = "", stderr: str = "") -> None:
        super().__init__(f"Command exited with code {exit_code}", exit_code=exit_code, stdout=stdout, stderr=stderr)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class ShellCancelled(ShellError):
    kind = "Cancelled"


class ShellTimeout(ShellError):
    kind = "Timeout"


class FetchError(ServiceError):
    kind = "FetchError"


class FetchUnreachable(FetchError):
    kind = "Unreachable"


class FetchBadStatus(FetchError):
    kind = "BadStatus"

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"Failed to fetch {url} - status code {status}", url=url, status=status)
        self.status = status


class FetchDisallowed(FetchError):
    kind = "Disallowed"


class UndoError(ServiceError):
    kind = "UndoError"


class UndoNoHistory(UndoError):
    kind = "NoHistory"

    def __init__(self, path: str) -> None:
        super().__init__(f"No undo history for {path}", path=path)
        self.path = path


def wrap_os_error(exc: OSError, path: str) -> ServiceError:
    """Translate an adapter OSError into the matching ServiceError."""
    if isinstance(exc, FileNotFoundError) or exc.errno == errno.ENOENT:
        return NotFound(f"File not found: {path}", path=path)
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
        return PermissionDenied(f"Permission denied: {path}", path=path)
    if isinstance(exc, IsADirectoryError):
        return InvalidInput(f"Is a directory: {path}", path=path)
    return IoError(f"I/O error on {path}: {exc.strerror or exc}", path=path)
