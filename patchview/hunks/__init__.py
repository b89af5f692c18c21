"""Hunk model: reviewable units, lifecycle, undo history and document edits."""

from .model import (
    Hunk, HunkSnapshot, HunkStatus, HunkStats,
    create_from_diff, range_of, hunk_at_position, next_hunk, prev_hunk,
    pending_hunks, accept, reject, find_by_id, remove_hunk,
    position_key, sort_by_position, hunk_stats,
)
from .history import UndoAction, UndoEntry, UndoHistory
from .editor import (
    DocumentEditor, DocumentEditError, InMemoryDocumentEditor,
    FileDocumentEditor, apply_hunk, revert_hunk,
)

__all__ = [
    "Hunk", "HunkSnapshot", "HunkStatus", "HunkStats",
    "create_from_diff", "range_of", "hunk_at_position", "next_hunk",
    "prev_hunk", "pending_hunks", "accept", "reject", "find_by_id",
    "remove_hunk", "position_key", "sort_by_position", "hunk_stats",
    "UndoAction", "UndoEntry", "UndoHistory",
    "DocumentEditor", "DocumentEditError", "InMemoryDocumentEditor",
    "FileDocumentEditor", "apply_hunk", "revert_hunk",
]
