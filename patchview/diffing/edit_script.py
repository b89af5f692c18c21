"""
Edit script - Myers shortest-edit-script search over two sequences.

Produces an ordered list of ``equal`` / ``insert`` / ``delete`` primitives
that transforms one sequence into the other.  Works on any sequence of
comparable items: lines for document diffs, words for inline diffs.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class EditOp(Enum):
    """Kind of a primitive edit."""
    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class Edit:
    """One primitive edit.

    ``old_line`` / ``new_line`` are 1-indexed positions in the old / new
    sequence; 0 when the primitive does not touch that side.
    """
    op: EditOp
    old_line: int = 0
    new_line: int = 0


def shortest_edit_script(old: Sequence, new: Sequence) -> list[Edit]:
    """Return the minimal edit script transforming *old* into *new*.

    Classic O((N+M)·D) search: for each edit distance ``d`` keep the
    furthest-reaching x per diagonal ``k = x - y``, follow runs of equal
    items greedily, and stop at the first ``d`` that reaches the end of
    both sequences.  The per-``d`` frontier is recorded so the path can be
    reconstructed afterwards.
    """
    n = len(old)
    m = len(new)
    if n == 0 and m == 0:
        return []

    v: dict[int, int] = {1: 0}
    trace: list[dict[int, int]] = []

    for d in range(n + m + 1):
        trace.append(dict(v))
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[k - 1] < v[k + 1]):
                x = v[k + 1]        # step down: insertion
            else:
                x = v[k - 1] + 1    # step right: deletion
            y = x - k

            while x < n and y < m and old[x] == new[y]:
                x += 1
                y += 1

            v[k] = x

            if x >= n and y >= m:
                return _backtrack(trace, n, m, d)

    # Unreachable: d = n + m always reaches the corner.
    return []


def _backtrack(
    trace: list[dict[int, int]],
    n: int,
    m: int,
    d: int,
) -> list[Edit]:
    """Walk the recorded frontiers back from (n, m) to (0, 0)."""
    edits: list[Edit] = []
    x = n
    y = m

    for i in range(d, -1, -1):
        v = trace[i]
        k = x - y

        if k == -i or (k != i and v[k - 1] < v[k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1

        prev_x = v[prev_k]
        prev_y = prev_x - prev_k

        while x > prev_x and y > prev_y:
            x -= 1
            y -= 1
            edits.append(Edit(EditOp.EQUAL, old_line=x + 1, new_line=y + 1))

        if i > 0:
            if x == prev_x:
                y -= 1
                edits.append(Edit(EditOp.INSERT, new_line=y + 1))
            else:
                x -= 1
                edits.append(Edit(EditOp.DELETE, old_line=x + 1))

    edits.reverse()
    return edits
