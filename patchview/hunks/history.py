"""
Undo history: per-document LIFO stack of accept/reject actions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .model import HunkSnapshot


class UndoAction(Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class UndoEntry:
    """One reversible action.

    ``content_mutated`` records whether the action edited the live
    document, so undo knows whether an inverse edit is required.
    """
    action: UndoAction
    hunk: HunkSnapshot
    content_mutated: bool = False


class UndoHistory:
    """LIFO stack of :class:`UndoEntry`."""

    def __init__(self) -> None:
        self._entries: list[UndoEntry] = []

    def push(self, entry: UndoEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> UndoEntry | None:
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> UndoEntry | None:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
