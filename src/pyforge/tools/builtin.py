from __future__ import annotations
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config.models import CoreConfig
from ..infra.base import CommandInfra, FileSystemInfra, HttpInfra, UserInfra
from ..patch.engine import PatchEngine
from ..undo.ledger import UndoLedger
from .base import Service, ToolDescriptor, ToolKind
from .registry import ToolRegistry

from ..services import fs_find, fs_list, fs_patch, fs_read, fs_remove, fs_undo, fs_write, followup, net_fetch, shell

BUILTIN_DESCRIPTORS: dict[ToolKind, ToolDescriptor] = {
    ToolKind.FS_READ: fs_read.DESCRIPTOR,
    ToolKind.FS_WRITE: fs_write.DESCRIPTOR,
    ToolKind.FS_FIND: fs_find.DESCRIPTOR,
    ToolKind.FS_LIST: fs_list.DESCRIPTOR,
    ToolKind.FS_REMOVE: fs_remove.DESCRIPTOR,
    ToolKind.FS_UNDO: fs_undo.DESCRIPTOR,
    ToolKind.FS_PATCH: fs_patch.DESCRIPTOR,
    ToolKind.NET_FETCH: net_fetch.DESCRIPTOR,
    ToolKind.FOLLOWUP: followup.DESCRIPTOR,
    ToolKind.SHELL: shell.DESCRIPTOR,
}


@dataclass
class Infrastructure:
    fs: FileSystemInfra
    runner: CommandInfra
    http: HttpInfra
    user: UserInfra


def build_services(
    infra: Infrastructure,
    ledger: UndoLedger,
    cwd: Path,
    config: CoreConfig,
    cancel: Optional[threading.Event] = None,
) -> dict[ToolKind, Service]:
    """Construct one service per tool kind, handing each only the adapters it uses."""
    return {
        ToolKind.FS_READ: fs_read.FsReadService(
            infra.fs, cwd, max_read_lines=config.max_read_lines, max_file_size=config.max_file_size
        ),
        ToolKind.FS_WRITE: fs_write.FsWriteService(infra.fs, ledger, cwd),
        ToolKind.FS_FIND: fs_find.FsFindService(
            infra.fs,
            cwd,
            max_results=config.max_find_results,
            ignored_dirs=config.ignored_dirs,
            max_file_size=config.max_file_size,
        ),
        ToolKind.FS_LIST: fs_list.FsListService(
            infra.fs, cwd, max_entries=config.max_list_entries, ignored_dirs=config.ignored_dirs
        ),
        ToolKind.FS_REMOVE: fs_remove.FsRemoveService(infra.fs, ledger, cwd),
        ToolKind.FS_UNDO: fs_undo.FsUndoService(infra.fs, ledger, cwd),
        ToolKind.FS_PATCH: fs_patch.FsPatchService(PatchEngine(infra.fs, ledger), cwd),
        ToolKind.NET_FETCH: net_fetch.NetFetchService(
            infra.http,
            timeout=config.fetch_timeout,
            max_attempts=config.fetch_max_attempts,
            initial_backoff_ms=config.fetch_initial_backoff_ms,
            backoff_factor=config.fetch_backoff_factor,
            retry_status_codes=config.fetch_retry_status_codes,
            max_chars=config.fetch_max_chars,
            respect_robots=config.fetch_respect_robots,
        ),
        ToolKind.FOLLOWUP: followup.FollowupService(infra.user),
        ToolKind.SHELL: shell.ShellService(infra.runner, cwd, timeout=config.shell_timeout, cancel=cancel),
    }


def register_builtin_tools(registry: ToolRegistry, services: dict[ToolKind, Service]) -> None:
    for kind in ToolKind:
        if kind not in services:
            raise RuntimeError(f"No service provided for built-in tool {kind.value}")
        registry.register(BUILTIN_DESCRIPTORS[kind], services[kind])
