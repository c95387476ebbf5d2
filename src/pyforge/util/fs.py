from __future__ import annotations
import os
from pathlib import Path

from ..errors import InvalidInput, PermissionDenied

BINARY_SNIFF_BYTES = 8192


def resolve_path(cwd: Path, path_str: str) -> Path:
    """Resolve `path_str` against the workspace root.

    Paths that escape the workspace are rejected, including escapes through a
    symlinked directory or file inside it. The returned path is normalized but
    not symlink-resolved, so it still displays relative to the workspace.
    """
    if not isinstance(path_str, str) or not path_str.strip():
        raise InvalidInput("Missing required field: path")
    root = Path(os.path.normpath(os.path.abspath(cwd)))
    p = Path(path_str).expanduser()
    if not p.is_absolute():
        p = root / p
    p = Path(os.path.normpath(p))
    try:
        p.relative_to(root)
        # realpath resolves the existing prefix and keeps the missing tail
        Path(os.path.realpath(p)).relative_to(os.path.realpath(root))
    except ValueError:
        raise PermissionDenied(f"Path escapes working directory: {path_str}", path=path_str) from None
    return p


def display_path(cwd: Path, path: Path) -> str:
    root = Path(os.path.normpath(os.path.abspath(cwd)))
    try:
        rel = path.relative_to(root)
    except ValueError:
        return str(path)
    return rel.as_posix() or "."


def split_lines(text: str) -> list[str]:
    """Split on "\\n" only, dropping one trailing "\\r" per line.

    Unlike `str.splitlines`, form feeds, U+2028 and friends stay inside the
    line. A final newline does not open an extra empty line, so "\\n" is one
    empty line and "" is none.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [ln[:-1] if ln.endswith("\r") else ln for ln in lines]


def is_binary(data: bytes) -> bool:
    return b"\x00" in data[:BINARY_SNIFF_BYTES]


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")
