"""Unified-diff parsing.

A patch targets a single file. Each ``@@`` block is split into one Hunk per
contiguous change group; context between two groups becomes the
`context_before` of the later hunk.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import PatchMalformed
from ..util.fs import split_lines

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_NO_EOL = "\\ No newline at end of file"
_PREAMBLE_PREFIXES = (
    "diff ",
    "index ",
    "--- ",
    "+++ ",
    "new file mode",
    "deleted file mode",
    "old mode",
    "new mode",
    "similarity index",
    "rename from",
    "rename to",
)


@dataclass(frozen=True)
class Hunk:
    start_line: int                  # 1-based line in the original file where the hunk begins
    context_before: tuple[str, ...]
    removed_lines: tuple[str, ...]
    added_lines: tuple[str, ...]
    context_after: tuple[str, ...]
    old_no_eol: bool = False
    new_no_eol: bool = False

    @property
    def old_lines(self) -> list[str]:
        return [*self.context_before, *self.removed_lines, *self.context_after]

    @property
    def new_lines(self) -> list[str]:
        return [*self.context_before, *self.added_lines, *self.context_after]

    @property
    def old_length(self) -> int:
        return len(self.context_before) + len(self.removed_lines) + len(self.context_after)

    @property
    def line_delta(self) -> int:
        return len(self.added_lines) - len(self.removed_lines)


@dataclass(frozen=True)
class PatchSpec:
    hunks: tuple[Hunk, ...]
    old_path: Optional[str] = None
    new_path: Optional[str] = None


@dataclass
class _RawHunk:
    header_no: int
    old_start: int
    old_count: int
    body: list[tuple[str, str]]
    old_no_eol: bool = False
    new_no_eol: bool = False


def _strip_prefix(path: str) -> str:
    path = path.split("\t", 1)[0].strip()
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def parse_patch(text: str) -> PatchSpec:
    if not isinstance(text, str) or not text.strip():
        raise PatchMalformed("Patch is empty")

    lines = split_lines(text)
    old_path: Optional[str] = None
    new_path: Optional[str] = None
    raw: list[_RawHunk] = []
    i = 0
    n = len(lines)

    while i < n:
        line = lines[i]
        m = _HUNK_HEADER.match(line)
        if m:
            hunk, i = _read_hunk(lines, i, len(raw), m)
            raw.append(hunk)
            continue
        if line.startswith("@@"):
            raise PatchMalformed(f"Unparsable hunk header on line {i + 1}: {line[:80]!r}")
        if not line.strip():
            i += 1
            continue
        if line.startswith(_PREAMBLE_PREFIXES):
            if raw and line.startswith(("diff ", "--- ")):
                raise PatchMalformed("Patch touches more than one file; send one patch per file")
            if line.startswith("--- "):
                if old_path is not None:
                    raise PatchMalformed("Patch touches more than one file; send one patch per file")
                old_path = _strip_prefix(line[4:])
            elif line.startswith("+++ "):
                new_path = _strip_prefix(line[4:])
            i += 1
            continue
        raise PatchMalformed(f"Unexpected line {i + 1} outside of a hunk: {line[:80]!r}")

    if not raw:
        raise PatchMalformed("Patch contains no hunks (missing '@@ -a,b +c,d @@' marker)")

    hunks: list[Hunk] = []
    for r in raw:
        hunks.extend(_split_hunk(r))
    _check_order(hunks)
    return PatchSpec(hunks=tuple(hunks), old_path=old_path, new_path=new_path)


def _read_hunk(lines: list[str], i: int, index: int, m: re.Match) -> tuple[_RawHunk, int]:
    old_start = int(m.group(1))
    old_count = int(m.group(2)) if m.group(2) is not None else 1
    new_count = int(m.group(4)) if m.group(4) is not None else 1
    if old_count > 0 and old_start < 1:
        raise PatchMalformed(f"Hunk {index} starts at line {old_start}; line numbers are 1-based")

    hunk = _RawHunk(header_no=index, old_start=old_start, old_count=old_count, body=[])
    old_seen = new_seen = 0
    last_tag: Optional[str] = None
    i += 1
    while i < len(lines) and (old_seen < old_count or new_seen < new_count):
        line = lines[i]
        if _HUNK_HEADER.match(line):
            break
        if line.startswith("\\"):
            _mark_no_eol(hunk, last_tag, line)
            i += 1
            continue
        tag, body = (line[0], line[1:]) if line else (" ", "")
        if tag not in " -+":
            raise PatchMalformed(f"Invalid line {i + 1} in hunk {index}: {line[:80]!r}")
        if tag in " -":
            old_seen += 1
        if tag in " +":
            new_seen += 1
        if old_seen > old_count or new_seen > new_count:
            raise PatchMalformed(f"Hunk {index} has more lines than its header declares")
        hunk.body.append((tag, body))
        last_tag = tag
        i += 1

    if old_seen != old_count or new_seen != new_count:
        raise PatchMalformed(
            f"Hunk {index} header declares -{old_count} +{new_count} lines but body has -{old_seen} +{new_seen}"
        )
    if i < len(lines) and lines[i].startswith("\\"):
        _mark_no_eol(hunk, last_tag, lines[i])
        i += 1
    return hunk, i


def _mark_no_eol(hunk: _RawHunk, last_tag: Optional[str], line: str) -> None:
    if line.strip() != _NO_EOL or last_tag is None:
        raise PatchMalformed(f"Unexpected marker in hunk {hunk.header_no}: {line[:80]!r}")
    if last_tag in " -":
        hunk.old_no_eol = True
    if last_tag in " +":
        hunk.new_no_eol = True


def _split_hunk(raw: _RawHunk) -> list[Hunk]:
    # alternate runs of context and change lines
    runs: list[tuple[bool, list[tuple[str, str]]]] = []
    for tag, body in raw.body:
        is_change = tag != " "
        if runs and runs[-1][0] == is_change:
            runs[-1][1].append((tag, body))
        else:
            runs.append((is_change, [(tag, body)]))

    # a hunk with no old lines inserts after line `old_start`
    line_no = raw.old_start if raw.old_count > 0 else raw.old_start + 1
    change_idx = [k for k, (is_change, _) in enumerate(runs) if is_change]
    if not change_idx:
        ctx = tuple(b for _, b in raw.body)
        return [Hunk(line_no, ctx, (), (), (), raw.old_no_eol, raw.new_no_eol)]

    # old-file offset at which each run starts
    offsets: list[int] = []
    off = 0
    for _, items in runs:
        offsets.append(off)
        off += sum(1 for t, _ in items if t != "+")

    out: list[Hunk] = []
    for pos, k in enumerate(change_idx):
        last = pos == len(change_idx) - 1
        before: tuple[str, ...] = ()
        start = line_no + offsets[k]
        if k > 0:
            before = tuple(b for _, b in runs[k - 1][1])
            start = line_no + offsets[k - 1]
        after: tuple[str, ...] = ()
        if last and k + 1 < len(runs):
            after = tuple(b for _, b in runs[k + 1][1])
        out.append(Hunk(
            start_line=start,
            context_before=before,
            removed_lines=tuple(b for t, b in runs[k][1] if t == "-"),
            added_lines=tuple(b for t, b in runs[k][1] if t == "+"),
            context_after=after,
            old_no_eol=raw.old_no_eol if last else False,
            new_no_eol=raw.new_no_eol if last else False,
        ))
    return out


def _check_order(hunks: list[Hunk]) -> None:
    for idx, (prev, cur) in enumerate(zip(hunks, hunks[1:]), start=1):
        if cur.start_line < prev.start_line + prev.old_length:
            raise PatchMalformed(f"Hunk {idx} overlaps or precedes hunk {idx - 1}; hunks must be ascending")
