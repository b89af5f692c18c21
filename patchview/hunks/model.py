"""
Hunk model: stateful, identifiable wrappers around change records.

A hunk carries an immutable :class:`ChangeRecord` plus a status that moves
between pending, accepted and rejected.  Ids come from a process-wide
counter and are never reused.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..classification import ChangeOrigin
from ..diffing.changes import ChangeKind, ChangeRecord

_ids = itertools.count(1)


def _next_id() -> int:
    return next(_ids)


class HunkStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True)
class HunkSnapshot:
    """Value copy of a hunk, used by the undo history."""
    id: int
    change: ChangeRecord
    status: HunkStatus
    origin: ChangeOrigin = ChangeOrigin.EXTERNAL
    context_before: tuple[str, ...] = ()
    context_after: tuple[str, ...] = ()

    def restore(self) -> "Hunk":
        """Rebuild a live hunk (same id) from this snapshot."""
        return Hunk(
            id=self.id,
            change=self.change,
            status=self.status,
            origin=self.origin,
            context_before=self.context_before,
            context_after=self.context_after,
        )


@dataclass
class Hunk:
    """A change record promoted to a reviewable unit."""
    id: int
    change: ChangeRecord
    status: HunkStatus = HunkStatus.PENDING
    origin: ChangeOrigin = ChangeOrigin.EXTERNAL
    context_before: tuple[str, ...] = field(default=())
    context_after: tuple[str, ...] = field(default=())

    @property
    def kind(self) -> ChangeKind:
        return self.change.kind

    @property
    def old_start(self) -> int:
        return self.change.old_start

    @property
    def old_count(self) -> int:
        return self.change.old_count

    @property
    def new_start(self) -> int:
        return self.change.new_start

    @property
    def new_count(self) -> int:
        return self.change.new_count

    @property
    def old_lines(self) -> tuple[str, ...]:
        return self.change.old_lines

    @property
    def new_lines(self) -> tuple[str, ...]:
        return self.change.new_lines

    @property
    def is_pending(self) -> bool:
        return self.status is HunkStatus.PENDING

    def snapshot(self) -> HunkSnapshot:
        return HunkSnapshot(
            id=self.id,
            change=self.change,
            status=self.status,
            origin=self.origin,
            context_before=self.context_before,
            context_after=self.context_after,
        )


@dataclass(frozen=True)
class HunkStats:
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    additions: int = 0
    deletions: int = 0


def create_from_diff(
    changes: Iterable[ChangeRecord],
    context_lines: int = 3,
    new_lines: Sequence[str] | None = None,
    origin: ChangeOrigin = ChangeOrigin.EXTERNAL,
) -> list[Hunk]:
    """Wrap *changes* into fresh pending hunks, preserving order.

    When *new_lines* (the content the changes were computed against) is
    given, up to *context_lines* surrounding lines are captured on each
    hunk for display.
    """
    hunks: list[Hunk] = []
    for change in changes:
        before: tuple[str, ...] = ()
        after: tuple[str, ...] = ()
        if new_lines is not None and context_lines > 0:
            start = change.new_offset
            end = start + change.new_count
            before = tuple(new_lines[max(0, start - context_lines):start])
            after = tuple(new_lines[end:end + context_lines])
        hunks.append(Hunk(
            id=_next_id(),
            change=change,
            origin=origin,
            context_before=before,
            context_after=after,
        ))
    return hunks


def range_of(hunk: Hunk) -> tuple[int, int]:
    """Display range ``(first, last)`` of a hunk, 1-indexed and inclusive.

    Adds and changes cover their new lines; a delete is anchored on its
    first removed old line.
    """
    if hunk.kind is ChangeKind.DELETE:
        return hunk.old_start, hunk.old_start
    start = hunk.new_start
    return start, start + max(hunk.new_count - 1, 0)


def hunk_at_position(hunks: Iterable[Hunk], pos: int) -> Hunk | None:
    for hunk in hunks:
        start, end = range_of(hunk)
        if start <= pos <= end:
            return hunk
    return None


def next_hunk(hunks: Sequence[Hunk], pos: int) -> Hunk | None:
    """First hunk starting strictly after *pos*, wrapping to the first."""
    for hunk in hunks:
        if range_of(hunk)[0] > pos:
            return hunk
    return hunks[0] if hunks else None


def prev_hunk(hunks: Sequence[Hunk], pos: int) -> Hunk | None:
    """Last hunk starting strictly before *pos*, wrapping to the last."""
    prev = None
    for hunk in hunks:
        if range_of(hunk)[0] >= pos:
            break
        prev = hunk
    if prev is not None:
        return prev
    return hunks[-1] if hunks else None


def pending_hunks(hunks: Iterable[Hunk]) -> list[Hunk]:
    return [h for h in hunks if h.status is HunkStatus.PENDING]


def accept(hunk: Hunk) -> None:
    hunk.status = HunkStatus.ACCEPTED


def reject(hunk: Hunk) -> None:
    hunk.status = HunkStatus.REJECTED


def find_by_id(hunks: Iterable[Hunk], hunk_id: int) -> Hunk | None:
    for hunk in hunks:
        if hunk.id == hunk_id:
            return hunk
    return None


def remove_hunk(hunks: Iterable[Hunk], hunk_id: int) -> list[Hunk]:
    return [h for h in hunks if h.id != hunk_id]


def position_key(hunk: Hunk) -> tuple[int, int]:
    """Ordering key: position in the old sequence, then id."""
    return hunk.change.old_offset, hunk.id


def sort_by_position(hunks: Iterable[Hunk]) -> list[Hunk]:
    return sorted(hunks, key=position_key)


def hunk_stats(hunks: Iterable[Hunk]) -> HunkStats:
    total = pending = accepted = rejected = additions = deletions = 0
    for hunk in hunks:
        total += 1
        if hunk.status is HunkStatus.PENDING:
            pending += 1
        elif hunk.status is HunkStatus.ACCEPTED:
            accepted += 1
        elif hunk.status is HunkStatus.REJECTED:
            rejected += 1
        additions += hunk.new_count
        deletions += hunk.old_count
    return HunkStats(
        total=total,
        pending=pending,
        accepted=accepted,
        rejected=rejected,
        additions=additions,
        deletions=deletions,
    )
