"""Diff engine: line-level Myers diff grouped into change records."""

from .edit_script import Edit, EditOp, shortest_edit_script
from .changes import (
    ChangeKind, ChangeRecord, DiffRegion, compute, compute_inline, group_edits,
    split_words, lines_equal, apply_changes, to_unified_diff,
    format_unified_diff,
)

__all__ = [
    "Edit", "EditOp", "shortest_edit_script",
    "ChangeKind", "ChangeRecord", "DiffRegion", "compute", "compute_inline",
    "group_edits", "split_words", "lines_equal", "apply_changes", "to_unified_diff",
    "format_unified_diff",
]
