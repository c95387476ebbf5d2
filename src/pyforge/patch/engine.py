from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from ..errors import IoError, PatchContextMismatch, wrap_os_error
from ..tools.base import Response
from ..infra.base import FileReaderInfra, FileWriterInfra
from ..undo.ledger import UndoLedger, UndoOperation
from ..util.fs import is_binary
from ..util.syntax import validate
from .parser import PatchSpec


@dataclass
class AppliedPatchSummary(Response):
    path: str
    hunks_applied: int
    lines_added: int
    lines_removed: int
    line_delta: int
    warning: Optional[str] = None


def _split_content(text: str) -> tuple[list[str], list[str], bool]:
    """Split on LF into (lines, terminators, ends_with_newline).

    Lines carry no terminator; a CR before the LF is kept in the
    terminator so untouched lines are written back byte for byte.
    """
    if not text:
        return [], [], False
    segs = text.split("\n")
    trailing = segs[-1] == ""
    if trailing:
        segs.pop()
    lines: list[str] = []
    ends: list[str] = []
    for seg in segs:
        body = seg[:-1] if seg.endswith("\r") else seg
        lines.append(body)
        ends.append(seg[len(body):] + "\n")
    if not trailing:
        ends[-1] = ends[-1][:-1]
    return lines, ends, trailing


def _join_content(lines: list[str], ends: list[str], eol: str, trailing: bool) -> str:
    parts: list[str] = []
    last = len(lines) - 1
    for i, (line, end) in enumerate(zip(lines, ends)):
        if i == last and not trailing:
            parts.append(line + ("\r" if end == "\r" else ""))
            continue
        if not end.endswith("\n"):
            # added lines, or the old unterminated last line
            end = "\r\n" if end == "\r" else eol
        parts.append(line + end)
    return "".join(parts)


def apply_to_text(text: str, spec: PatchSpec) -> tuple[str, int, int]:
    """Apply every hunk of `spec` to `text` in memory.

    Returns (new_text, lines_added, lines_removed). Raises PatchContextMismatch
    for the first hunk whose expected lines are not found; `text` is never
    partially modified from the caller's point of view.
    """
    lines, ends, trailing = _split_content(text)
    eol = "\r\n" if "\r\n" in text else "\n"
    work, work_ends = list(lines), list(ends)
    drift = 0
    added = removed = 0
    for idx, hunk in enumerate(spec.hunks):
        at = hunk.start_line - 1 + drift
        expected = hunk.old_lines
        end = at + len(expected)
        if at < 0 or end > len(work) or work[at:end] != expected:
            found = work[at:end] if 0 <= at <= len(work) else []
            raise PatchContextMismatch(
                idx,
                f"Hunk {idx} does not match the file at line {hunk.start_line}",
                line=hunk.start_line,
                expected=expected,
                found=found,
            )
        touches_end = end == len(work)
        old_ends = work_ends[at:end]
        keep_after = len(hunk.context_after)
        work[at:end] = hunk.new_lines
        work_ends[at:end] = (
            old_ends[: len(hunk.context_before)]
            + [""] * len(hunk.added_lines)
            + (old_ends[len(old_ends) - keep_after:] if keep_after else [])
        )
        drift += hunk.line_delta
        added += len(hunk.added_lines)
        removed += len(hunk.removed_lines)
        if touches_end:
            if hunk.new_no_eol:
                trailing = False
            elif hunk.old_no_eol or not lines:
                trailing = True

    return _join_content(work, work_ends, eol, trailing), added, removed


class _PatchFs(FileReaderInfra, FileWriterInfra, Protocol):
    pass


class PatchEngine:
    """Reads the target, applies a parsed patch in memory, snapshots, then writes.

    Nothing is written unless every hunk matches.
    """

    def __init__(self, fs: _PatchFs, ledger: UndoLedger) -> None:
        self.fs = fs
        self.ledger = ledger

    def apply(self, path: Path, spec: PatchSpec, display: str | None = None) -> AppliedPatchSummary:
        label = display or str(path)
        with self.ledger.lock(path):
            try:
                data = self.fs.read_bytes(path)
            except OSError as e:
                raise wrap_os_error(e, label) from e
            if is_binary(data):
                raise IoError(f"Cannot patch binary file: {label}", path=label)
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                raise IoError(f"File is not valid UTF-8: {label}", path=label) from None

            new_text, added, removed = apply_to_text(text, spec)

            self.ledger.record(path, UndoOperation.PATCH)
            try:
                self.fs.write_bytes(path, new_text.encode("utf-8"))
            except OSError as e:
                raise wrap_os_error(e, label) from e

        return AppliedPatchSummary(
            path=label,
            hunks_applied=len(spec.hunks),
            lines_added=added,
            lines_removed=removed,
            line_delta=added - removed,
            warning=validate(path, new_text),
        )
