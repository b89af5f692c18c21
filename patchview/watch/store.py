"""
Document store: per-document review state and baseline snapshots.

One :class:`DocumentRegistry` is owned by a review session and handed to
the watch pipeline; nothing here is process-global.  All access happens
on the pipeline's thread.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Hashable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..classification import ChangeOrigin
from ..hunks.history import UndoHistory
from ..hunks.model import Hunk
from .fingerprint import Fingerprint

logger = logging.getLogger(__name__)


class ReviewMode(Enum):
    """How external changes relate to the live document.

    AUTO: the live document already shows the new content; rejecting a
    hunk edits it back.  PREVIEW: the live document keeps showing the
    baseline; accepting a hunk edits it in.
    """
    AUTO = "auto"
    PREVIEW = "preview"


class WatchPhase(Enum):
    IDLE = "idle"
    DEBOUNCE_PENDING = "debounce-pending"
    PROCESSING = "processing"


def normalize_path(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


@dataclass
class DocumentState:
    """Everything tracked for one watched document.

    ``live`` mirrors the content of the live document as far as review
    edits are concerned.  ``retired`` keeps the hunks of a resolved batch
    so undo can bring them back with correct positions.
    """
    doc_id: Hashable
    path: str
    baseline: list[str] = field(default_factory=list)
    hunks: list[Hunk] = field(default_factory=list)
    watching: bool = True
    paused: bool = False
    last_processed_fingerprint: Fingerprint | None = None
    undo: UndoHistory = field(default_factory=UndoHistory)
    phase: WatchPhase = WatchPhase.IDLE
    live: list[str] = field(default_factory=list)
    retired: list[Hunk] = field(default_factory=list)
    mode: ReviewMode = ReviewMode.AUTO
    origin: ChangeOrigin = ChangeOrigin.EXTERNAL
    generation: int = 0

    @property
    def key(self) -> str:
        return normalize_path(self.path)


class DocumentRegistry:
    """Owned collection of :class:`DocumentState`, also the baseline store."""

    def __init__(self) -> None:
        self._docs: dict[Hashable, DocumentState] = {}

    def create(
        self,
        doc_id: Hashable,
        path: str,
        baseline: Sequence[str],
        mode: ReviewMode = ReviewMode.AUTO,
    ) -> DocumentState:
        state = DocumentState(
            doc_id=doc_id,
            path=path,
            baseline=list(baseline),
            live=list(baseline),
            mode=mode,
        )
        self._docs[doc_id] = state
        return state

    def get(self, doc_id: Hashable) -> DocumentState | None:
        return self._docs.get(doc_id)

    def remove(self, doc_id: Hashable) -> DocumentState | None:
        return self._docs.pop(doc_id, None)

    def by_path(self, path: str) -> list[DocumentState]:
        key = normalize_path(path)
        return [s for s in self._docs.values() if s.key == key]

    def paths(self) -> set[str]:
        return {s.key for s in self._docs.values()}

    def snapshot(self, doc_id: Hashable, lines: Sequence[str]) -> bool:
        """Replace the baseline of *doc_id*.  Idempotent."""
        state = self._docs.get(doc_id)
        if state is None:
            return False
        state.baseline = list(lines)
        logger.debug(
            "[Watch] Snapshot for %s: %d line(s)", state.path, len(state.baseline)
        )
        return True

    def read_baseline(self, doc_id: Hashable) -> list[str] | None:
        """Copy of the baseline; callers may keep it for a whole diff pass."""
        state = self._docs.get(doc_id)
        return list(state.baseline) if state is not None else None

    def __iter__(self) -> Iterator[DocumentState]:
        return iter(list(self._docs.values()))

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._docs
