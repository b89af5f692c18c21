"""
Unit tests for patchview.hunks.model

Covers hunk creation, positions and navigation, status lifecycle and
statistics.
"""

from __future__ import annotations

import dataclasses

import pytest

from patchview.classification import ChangeOrigin
from patchview.diffing import ChangeKind, compute
from patchview.hunks.model import (
    HunkStatus, accept, create_from_diff, find_by_id, hunk_at_position,
    hunk_stats, next_hunk, pending_hunks, prev_hunk, range_of, reject,
    remove_hunk, sort_by_position,
)


OLD = ["a", "b", "c", "d", "e", "f", "g"]
NEW = ["a", "B", "c", "d", "e", "f", "G", "h"]


@pytest.fixture
def hunks():
    return create_from_diff(compute(OLD, NEW), context_lines=2, new_lines=NEW)


class TestCreateFromDiff:

    def test_one_pending_hunk_per_change(self, hunks):
        assert len(hunks) == 2
        assert all(h.status is HunkStatus.PENDING for h in hunks)

    def test_ids_strictly_increasing(self):
        first = create_from_diff(compute(["a"], ["b"]))
        second = create_from_diff(compute(["a", "b"], ["c", "b", "d"]))
        ids = [h.id for h in first + second]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_preserves_order_and_fields(self, hunks):
        assert [h.old_start for h in hunks] == [2, 7]
        assert hunks[1].new_lines == ("G", "h")
        assert hunks[1].old_lines == ("g",)

    def test_context_lines(self, hunks):
        assert hunks[0].context_before == ("a",)
        assert hunks[0].context_after == ("c", "d")
        assert hunks[1].context_after == ()

    def test_origin_recorded(self):
        hs = create_from_diff(compute(["a"], ["b"]), origin=ChangeOrigin.STAGED)
        assert hs[0].origin is ChangeOrigin.STAGED

    def test_change_is_immutable(self, hunks):
        with pytest.raises(dataclasses.FrozenInstanceError):
            hunks[0].change.old_start = 99


class TestPositions:

    def test_range_of_change(self, hunks):
        assert range_of(hunks[0]) == (2, 2)
        assert range_of(hunks[1]) == (7, 8)

    def test_range_of_delete(self):
        hunk = create_from_diff(compute(["a", "b", "c"], ["a", "c"]))[0]
        assert hunk.kind is ChangeKind.DELETE
        assert range_of(hunk) == (2, 2)

    def test_range_of_add(self):
        hunk = create_from_diff(compute(["a", "c"], ["a", "b", "c"]))[0]
        assert range_of(hunk) == (2, 2)

    def test_hunk_at_position(self, hunks):
        assert hunk_at_position(hunks, 2) is hunks[0]
        assert hunk_at_position(hunks, 8) is hunks[1]
        assert hunk_at_position(hunks, 4) is None

    def test_next_hunk_wraps(self, hunks):
        assert next_hunk(hunks, 1) is hunks[0]
        assert next_hunk(hunks, 2) is hunks[1]
        assert next_hunk(hunks, 7) is hunks[0]

    def test_prev_hunk_wraps(self, hunks):
        assert prev_hunk(hunks, 8) is hunks[1]
        assert prev_hunk(hunks, 7) is hunks[0]
        assert prev_hunk(hunks, 2) is hunks[1]

    def test_navigation_on_empty_list(self):
        assert next_hunk([], 1) is None
        assert prev_hunk([], 1) is None
        assert hunk_at_position([], 1) is None


class TestLifecycle:

    def test_accept_and_reject(self, hunks):
        accept(hunks[0])
        reject(hunks[1])
        assert hunks[0].status is HunkStatus.ACCEPTED
        assert hunks[1].status is HunkStatus.REJECTED
        assert pending_hunks(hunks) == []

    def test_snapshot_is_a_value_copy(self, hunks):
        snap = hunks[0].snapshot()
        accept(hunks[0])
        assert snap.status is HunkStatus.PENDING
        restored = snap.restore()
        assert restored.id == hunks[0].id
        assert restored.status is HunkStatus.PENDING
        assert restored is not hunks[0]

    def test_find_and_remove(self, hunks):
        target = hunks[1]
        assert find_by_id(hunks, target.id) is target
        assert find_by_id(hunks, -1) is None
        assert remove_hunk(hunks, target.id) == [hunks[0]]

    def test_sort_by_position(self, hunks):
        assert sort_by_position(reversed(hunks)) == hunks


class TestStats:

    def test_hunk_stats(self, hunks):
        accept(hunks[0])
        stats = hunk_stats(hunks)
        assert stats.total == 2
        assert stats.pending == 1
        assert stats.accepted == 1
        assert stats.rejected == 0
        assert stats.additions == 3
        assert stats.deletions == 2

    def test_empty_stats(self):
        stats = hunk_stats([])
        assert stats.total == 0 and stats.pending == 0
