from __future__ import annotations
import os
import shutil
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .base import CmdResult, ProcessCancelled, ProcessTimeout


def shell_argv(command: str, shell: Optional[str] = None) -> list[str]:
    # Use a real shell so built-ins like `cd`, pipes, &&, env expansion work.
    if os.name == "nt":
        return [shell or "cmd.exe", "/c", command]
    shell = shell or ("bash" if shutil.which("bash") else "sh")
    return [shell, "-c", command]


@dataclass
class LocalCommandRunner:
    """Runs commands to completion.

    The child is polled so that a timeout, a cancel event or Ctrl-C kills the
    whole process group instead of leaving it running.
    """

    shell: Optional[str] = None
    poll_interval: float = 0.1

    def run(
        self,
        command: str,
        cwd: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CmdResult:
        return self.run_argv(shell_argv(command, self.shell), cwd, timeout=timeout, cancel=cancel)

    def run_argv(
        self,
        argv: Sequence[str],
        cwd: Path,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> CmdResult:
        proc = subprocess.Popen(
            list(argv),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=(os.name != "nt"),
        )
        deadline = time.monotonic() + timeout if timeout else None
        try:
            while True:
                try:
                    out, err = proc.communicate(timeout=self.poll_interval)
                    return CmdResult(proc.returncode, out or "", err or "")
                except subprocess.TimeoutExpired:
                    if cancel is not None and cancel.is_set():
                        _kill(proc)
                        raise ProcessCancelled("Command cancelled")
                    if deadline is not None and time.monotonic() >= deadline:
                        _kill(proc)
                        raise ProcessTimeout(f"Command timed out after {timeout}s")
        except KeyboardInterrupt:
            _kill(proc)
            raise ProcessCancelled("Command interrupted by user") from None


def _kill(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        try:
            if os.name != "nt":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            proc.kill()
    try:
        proc.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        pass
