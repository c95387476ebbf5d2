from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..mode import OperationMode

DEFAULT_IGNORED_DIRS = (
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    ".mypy_cache",
    ".pytest_cache",
    ".tox",
    "target",
)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


@dataclass
class CoreConfig:
    """Execution-core settings loaded from JSON/YAML.

    Unknown keys are ignored; a value of the wrong type keeps the default.
    """

    default_mode: OperationMode = OperationMode.RESTRICTED

    # fs_read / fs_find / fs_list
    max_read_lines: int = 2000
    max_find_results: int = 200
    max_list_entries: int = 200
    # files larger than this are refused by fs_read and skipped by fs_find
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    ignored_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_DIRS))

    # shell
    shell: str | None = None
    shell_timeout: float = 120.0

    # net_fetch
    fetch_timeout: float = 15.0
    fetch_max_attempts: int = 3
    fetch_initial_backoff_ms: int = 200
    fetch_backoff_factor: float = 2.0
    fetch_retry_status_codes: list[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])
    fetch_max_chars: int = 40000
    fetch_respect_robots: bool = True

    # undo ledger; None keeps every entry for the session
    undo_max_entries_per_path: int | None = None

    loaded_from: Path | None = None
