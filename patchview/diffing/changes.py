"""
Change records: groups a primitive edit script into contiguous
add / delete / change records, and the helpers that consume them.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .edit_script import Edit, EditOp, shortest_edit_script

logger = logging.getLogger(__name__)

_WORD_SPLIT = re.compile(r"\s+")


class ChangeKind(Enum):
    ADD = "add"
    DELETE = "delete"
    CHANGE = "change"


@dataclass(frozen=True)
class ChangeRecord:
    """One contiguous change between two line sequences.

    Positions are 1-indexed.  When a side is empty (``old_count == 0`` for
    a pure add, ``new_count == 0`` for a pure delete) its start is the line
    *after which* the change sits on that side, 0 meaning "before the first
    line", as in unified diff headers.
    """
    kind: ChangeKind
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    old_lines: tuple[str, ...] = ()
    new_lines: tuple[str, ...] = ()

    @property
    def old_offset(self) -> int:
        """0-based index in the old sequence where the change begins."""
        return self.old_start - 1 if self.old_count else self.old_start

    @property
    def new_offset(self) -> int:
        """0-based index in the new sequence where the change begins."""
        return self.new_start - 1 if self.new_count else self.new_start


def _classify(old_count: int, new_count: int) -> ChangeKind:
    if old_count and new_count:
        return ChangeKind.CHANGE
    if old_count:
        return ChangeKind.DELETE
    return ChangeKind.ADD


def compute(old: Sequence[str], new: Sequence[str]) -> list[ChangeRecord]:
    """Diff two line sequences into ordered, non-overlapping change records."""
    if not old and not new:
        return []

    if not old:
        return [ChangeRecord(
            kind=ChangeKind.ADD,
            old_start=0, old_count=0,
            new_start=1, new_count=len(new),
            new_lines=tuple(new),
        )]

    if not new:
        return [ChangeRecord(
            kind=ChangeKind.DELETE,
            old_start=1, old_count=len(old),
            new_start=0, new_count=0,
            old_lines=tuple(old),
        )]

    edits = shortest_edit_script(old, new)
    changes = group_edits(edits, old, new)
    logger.debug(
        "[Diff] %d old / %d new lines -> %d change(s)",
        len(old), len(new), len(changes),
    )
    return changes


def group_edits(
    edits: Iterable[Edit],
    old: Sequence[str],
    new: Sequence[str],
) -> list[ChangeRecord]:
    """Coalesce runs of insert/delete primitives between equal runs.

    Only primitives that are adjacent in the script are merged; a delete
    and an add separated by an equal line stay two records.
    """
    changes: list[ChangeRecord] = []
    old_seen = 0    # old lines consumed so far
    new_seen = 0
    group: dict | None = None

    def close() -> None:
        old_lines = group["old_lines"]
        new_lines = group["new_lines"]
        changes.append(ChangeRecord(
            kind=_classify(len(old_lines), len(new_lines)),
            old_start=group["old_anchor"] + (1 if old_lines else 0),
            old_count=len(old_lines),
            new_start=group["new_anchor"] + (1 if new_lines else 0),
            new_count=len(new_lines),
            old_lines=tuple(old_lines),
            new_lines=tuple(new_lines),
        ))

    for edit in edits:
        if edit.op is EditOp.EQUAL:
            if group is not None:
                close()
                group = None
            old_seen += 1
            new_seen += 1
            continue

        if group is None:
            group = {
                "old_anchor": old_seen,
                "new_anchor": new_seen,
                "old_lines": [],
                "new_lines": [],
            }

        if edit.op is EditOp.DELETE:
            group["old_lines"].append(old[edit.old_line - 1])
            old_seen += 1
        else:
            group["new_lines"].append(new[edit.new_line - 1])
            new_seen += 1

    if group is not None:
        close()

    return changes


def split_words(line: str) -> list[str]:
    """Split a line on whitespace runs (leading whitespace yields an empty first word)."""
    return _WORD_SPLIT.split(line)


def compute_inline(old_line: str, new_line: str) -> list[Edit]:
    """Word-level edit script for one line pair.

    Positions in the returned edits index into ``split_words(old_line)``
    and ``split_words(new_line)``.
    """
    return shortest_edit_script(split_words(old_line), split_words(new_line))


def lines_equal(a: Sequence[str], b: Sequence[str]) -> bool:
    """Exact line-by-line equality."""
    return len(a) == len(b) and all(x == y for x, y in zip(a, b))


def apply_changes(
    old: Sequence[str],
    changes: Iterable[ChangeRecord],
) -> list[str]:
    """Patch *old* with *changes* (as produced by :func:`compute`)."""
    result: list[str] = []
    pos = 0
    for change in changes:
        start = change.old_offset
        result.extend(old[pos:start])
        result.extend(change.new_lines)
        pos = start + change.old_count
    result.extend(old[pos:])
    return result


class DiffRegion(Protocol):
    """Both sides of one change; satisfied by records and hunks alike."""

    @property
    def old_start(self) -> int: ...

    @property
    def old_count(self) -> int: ...

    @property
    def new_start(self) -> int: ...

    @property
    def new_count(self) -> int: ...

    @property
    def old_lines(self) -> Sequence[str]: ...

    @property
    def new_lines(self) -> Sequence[str]: ...


def to_unified_diff(change: DiffRegion) -> list[str]:
    """Render one change (record or hunk) as unified diff lines."""
    lines = [
        f"@@ -{change.old_start},{change.old_count} "
        f"+{change.new_start},{change.new_count} @@"
    ]
    lines.extend("-" + line for line in change.old_lines)
    lines.extend("+" + line for line in change.new_lines)
    return lines


def format_unified_diff(
    changes: Iterable[DiffRegion],
    path: str = "",
) -> str:
    """Render a list of changes as a unified diff text with file headers."""
    body: list[str] = []
    for change in changes:
        body.extend(to_unified_diff(change))
    if not body:
        return ""
    header = [f"--- a/{path}", f"+++ b/{path}"] if path else []
    return "\n".join(header + body)
