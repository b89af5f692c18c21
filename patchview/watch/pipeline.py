"""
Change watch pipeline: turns raw change notifications into hunk batches.

Per document::

    IDLE --notify--> DEBOUNCE_PENDING --expiry--> PROCESSING --> IDLE
                       ^        |
                       +-notify-+   (timer restarted)

Notifications may arrive from any thread; they are queued and consumed
by whichever thread drives :meth:`ChangeWatchPipeline.pump` or
:meth:`ChangeWatchPipeline.run`.  Document state is only touched there.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable, Hashable, Sequence
from enum import Enum

from ..classification import ChangeOrigin
from ..diffing.changes import compute
from ..hunks.model import Hunk, create_from_diff
from .debounce import Debouncer
from .fingerprint import fingerprint
from .notifier import EventKind, RawEvent
from .reader import read_lines
from .store import DocumentRegistry, DocumentState, ReviewMode, WatchPhase

logger = logging.getLogger(__name__)


class BatchReason(Enum):
    CHANGED = "changed"
    CLEARED = "cleared"
    DELETED = "deleted"


BatchCallback = Callable[[Hashable, list[Hunk], BatchReason], None]
Reader = Callable[[str], "list[str] | None"]
BaselineSource = Callable[[str], "list[str] | None"]
Classifier = Callable[[str, Sequence[str], Sequence[str]], ChangeOrigin]


class ChangeWatchPipeline:
    """Debounce, deduplicate and diff external changes per document.

    Parameters
    ----------
    registry:
        Document states to operate on (owned by the caller).
    on_batch:
        Called with ``(doc_id, hunks, reason)`` whenever a document's hunk
        batch is replaced, cleared, or its file disappears.
    reader:
        ``path -> lines | None``; ``None`` means the file is gone.
    debounce_ms:
        Quiet period before a burst of notifications is processed.
    clock:
        Monotonic time source for debounce deadlines.
    baseline_source:
        Optional ``path -> lines | None`` overriding the stored baseline
        in AUTO mode (git index / HEAD).  ``None`` falls back to the store.
    classifier:
        Optional ``(path, old, new) -> ChangeOrigin`` tagging each batch.
    context_lines:
        Context captured on each hunk.
    mode:
        Review mode given to new batches.
    """

    def __init__(
        self,
        registry: DocumentRegistry,
        on_batch: BatchCallback | None = None,
        *,
        reader: Reader = read_lines,
        debounce_ms: int = 200,
        clock: Callable[[], float] = time.monotonic,
        baseline_source: BaselineSource | None = None,
        classifier: Classifier | None = None,
        context_lines: int = 3,
        mode: ReviewMode = ReviewMode.AUTO,
    ) -> None:
        self._registry = registry
        self._on_batch = on_batch
        self._reader = reader
        self._debouncer = Debouncer(debounce_ms / 1000.0, clock=clock)
        self.baseline_source = baseline_source
        self.classifier = classifier
        self._context_lines = context_lines
        self._events: queue.Queue[RawEvent] = queue.Queue()
        self.mode = mode

    # ------------------------------------------------------------------
    # Watch lifecycle
    # ------------------------------------------------------------------

    def watch(
        self,
        doc_id: Hashable,
        path: str,
        lines: Sequence[str] | None = None,
    ) -> DocumentState:
        """Start tracking *doc_id*; the baseline is *lines* or the file content."""
        self.unwatch(doc_id)
        if lines is None:
            lines = self._reader(path) or []
        state = self._registry.create(doc_id, path, lines, mode=self.mode)
        logger.info("[Watch] Watching %s (%d lines)", path, len(state.baseline))
        return state

    def unwatch(self, doc_id: Hashable) -> DocumentState | None:
        """Stop tracking *doc_id*, cancelling any pending timer."""
        self._debouncer.cancel(doc_id)
        state = self._registry.remove(doc_id)
        if state is None:
            return None
        state.watching = False
        state.generation += 1
        state.phase = WatchPhase.IDLE
        logger.info("[Watch] Stopped watching %s", state.path)
        return state

    def is_watching(self, doc_id: Hashable) -> bool:
        state = self._registry.get(doc_id)
        return state is not None and state.watching

    def pause(self, doc_id: Hashable) -> bool:
        """Ignore notifications for *doc_id* until resumed.

        Hunks, baseline and undo history are kept, and explicit
        :meth:`process` calls still run.
        """
        state = self._registry.get(doc_id)
        if state is None:
            return False
        self._debouncer.cancel(doc_id)
        state.paused = True
        if state.phase is WatchPhase.DEBOUNCE_PENDING:
            state.phase = WatchPhase.IDLE
        logger.info("[Watch] Paused %s", state.path)
        return True

    def resume(self, doc_id: Hashable) -> bool:
        state = self._registry.get(doc_id)
        if state is None:
            return False
        state.paused = False
        logger.info("[Watch] Resumed %s", state.path)
        return True

    def is_paused(self, doc_id: Hashable) -> bool:
        state = self._registry.get(doc_id)
        return state is not None and state.paused

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def notify(self, path: str, kind: EventKind = EventKind.CHANGED) -> None:
        """Queue a raw notification.  Safe to call from any thread."""
        self._events.put(RawEvent(path, kind))

    def _dispatch(self, event: RawEvent) -> None:
        for state in self._registry.by_path(event.path):
            if not state.watching or state.paused:
                continue
            self._debouncer.schedule(state.doc_id)
            state.phase = WatchPhase.DEBOUNCE_PENDING
            logger.debug(
                "[Watch] %s event for %s, debounce restarted",
                event.kind.value, state.path,
            )

    def _drain(self) -> int:
        count = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return count
            self._dispatch(event)
            count += 1

    def pump(self, now: float | None = None) -> int:
        """Drain queued notifications and process expired debounce timers.

        Returns the number of documents processed.
        """
        self._drain()
        processed = 0
        for doc_id in self._debouncer.pop_due(now):
            self.process(doc_id)
            processed += 1
        return processed

    def run(self, stop_event: threading.Event, poll_interval: float = 0.05) -> None:
        """Drive the pipeline until *stop_event* is set."""
        while not stop_event.is_set():
            timeout = self._debouncer.time_until_next()
            if timeout is None or timeout > poll_interval:
                timeout = poll_interval
            try:
                event = self._events.get(timeout=timeout)
            except queue.Empty:
                pass
            else:
                self._dispatch(event)
            self.pump()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process(self, doc_id: Hashable) -> BatchReason | None:
        """Run one detection pass for *doc_id* now.

        Returns the published reason, or ``None`` if nothing was published
        (unknown document, duplicate content, or watch stopped mid-pass).
        """
        state = self._registry.get(doc_id)
        if state is None or not state.watching:
            return None

        self._debouncer.cancel(doc_id)
        state.phase = WatchPhase.PROCESSING
        generation = state.generation
        try:
            return self._process(state, generation)
        finally:
            if state.phase is WatchPhase.PROCESSING:
                state.phase = WatchPhase.IDLE

    def _process(self, state: DocumentState, generation: int) -> BatchReason | None:
        current = self._reader(state.path)
        if current is None:
            if not self._is_current(state, generation):
                return None
            logger.info("[Watch] %s was deleted", state.path)
            state.hunks = []
            state.retired = []
            state.undo.clear()
            state.last_processed_fingerprint = None
            self._publish(state, [], BatchReason.DELETED)
            return BatchReason.DELETED

        fp = fingerprint(current)
        if fp == state.last_processed_fingerprint:
            logger.debug("[Watch] %s unchanged since last pass, skipping", state.path)
            return None
        state.last_processed_fingerprint = fp

        mode = self.mode
        if mode is ReviewMode.PREVIEW and state.live != state.baseline:
            # The preview document already holds accepted content.
            state.baseline = list(state.live)

        baseline = self._read_baseline(state, mode)
        changes = compute(baseline, current)
        origin = ChangeOrigin.EXTERNAL
        if changes and self.classifier is not None:
            origin = self.classifier(state.path, baseline, current)

        if not self._is_current(state, generation):
            logger.debug("[Watch] Dropping pass for %s: watch stopped", state.path)
            return None

        state.mode = mode
        state.origin = origin
        state.live = list(current) if mode is ReviewMode.AUTO else list(state.baseline)
        state.retired = []
        state.undo.clear()

        if not changes:
            state.hunks = []
            logger.info("[Watch] %s matches its baseline", state.path)
            self._publish(state, [], BatchReason.CLEARED)
            return BatchReason.CLEARED

        hunks = create_from_diff(
            changes,
            context_lines=self._context_lines,
            new_lines=current,
            origin=origin,
        )
        state.hunks = hunks
        logger.info(
            "[Watch] %s: %d hunk(s) detected (%s)",
            state.path, len(hunks), origin.value,
        )
        self._publish(state, hunks, BatchReason.CHANGED)
        return BatchReason.CHANGED

    def _read_baseline(self, state: DocumentState, mode: ReviewMode) -> list[str]:
        # Preview hunks are positioned against the live document, which
        # always holds the stored baseline.
        if self.baseline_source is not None and mode is ReviewMode.AUTO:
            lines = self.baseline_source(state.path)
            if lines is not None:
                return list(lines)
        return self._registry.read_baseline(state.doc_id) or []

    def _is_current(self, state: DocumentState, generation: int) -> bool:
        return (
            state.watching
            and state.generation == generation
            and self._registry.get(state.doc_id) is state
        )

    def _publish(
        self,
        state: DocumentState,
        hunks: list[Hunk],
        reason: BatchReason,
    ) -> None:
        if self._on_batch is None:
            return
        try:
            self._on_batch(state.doc_id, list(hunks), reason)
        except Exception as exc:
            logger.warning(
                "[Watch] Batch callback failed for %s: %s", state.path, exc
            )
