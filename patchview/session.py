"""
Review session: the operator-facing surface of patchview.

A :class:`ReviewSession` owns the document registry and the watch
pipeline, and turns accept / reject / undo intents into hunk status
changes and (depending on the review mode) live-document edits.

Threading: every method except :meth:`ReviewSession.notify` must be called
on the thread that drives :meth:`ReviewSession.pump` / :meth:`ReviewSession.run`.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import threading
import time
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from enum import Enum

from .classification import ChangeOrigin, classify_change
from .config import Config
from .git_utils import BASELINE_WORKING_TREE, GitContentProvider
from .hunks.editor import (
    DocumentEditor, InMemoryDocumentEditor, apply_hunk, revert_hunk,
)
from .hunks.history import UndoAction, UndoEntry
from .hunks.model import (
    Hunk, HunkStats, HunkStatus, find_by_id, hunk_at_position, hunk_stats,
    next_hunk, pending_hunks, position_key, prev_hunk, remove_hunk,
    sort_by_position,
)
from .watch.fingerprint import fingerprint
from .watch.notifier import EventKind, FileChangeNotifier
from .watch.pipeline import BatchCallback, BatchReason, ChangeWatchPipeline
from .watch.reader import read_lines
from .watch.store import DocumentRegistry, DocumentState, ReviewMode

logger = logging.getLogger(__name__)


class ActionStatus(Enum):
    OK = "ok"
    NO_HUNKS = "no_hunks"
    NO_PENDING_HUNK = "no_pending_hunk"
    EMPTY_HISTORY = "empty_history"
    NOT_WATCHED = "not_watched"
    UNSUPPORTED = "unsupported"


@dataclass
class ActionResult:
    """Outcome of an operator intent."""
    status: ActionStatus
    message: str
    hunk: Hunk | None = None
    remaining: int = 0

    @property
    def ok(self) -> bool:
        return self.status is ActionStatus.OK


class _LiveMirror:
    """Editor wrapper keeping ``state.live`` in step with the live document."""

    def __init__(self, editor: DocumentEditor, state: DocumentState) -> None:
        self._editor = editor
        self._state = state

    def replace_lines(
        self,
        handle: str,
        start: int,
        end: int,
        new_lines: Sequence[str],
    ) -> None:
        self._editor.replace_lines(handle, start, end, new_lines)
        self._state.live[start:end] = list(new_lines)


def _shows_new(hunk: Hunk, mode: ReviewMode) -> bool:
    if hunk.status is HunkStatus.ACCEPTED:
        return True
    return mode is ReviewMode.AUTO and hunk.status is HunkStatus.PENDING


def _coerce_mode(mode: ReviewMode | str) -> ReviewMode:
    if isinstance(mode, ReviewMode):
        return mode
    return ReviewMode(str(mode).lower())


class ReviewSession:
    """Watch documents and review the hunks external processes produce.

    Parameters
    ----------
    config:
        Settings; defaults to ``Config()`` (env vars + built-in defaults).
    editor:
        Live-document editor.  Defaults to an in-memory buffer per document
        that mirrors what the reviewer would see.
    on_batch:
        ``(doc_id, hunks, reason)`` callback for every published batch,
        including batches cleared by review resolution.
    reader:
        ``path -> lines | None`` used to read documents.
    git:
        VCS content provider; created from the config when git is enabled.
    clock:
        Monotonic time source for debouncing.
    notifier:
        Optional :class:`FileChangeNotifier`; see :meth:`start_notifier`.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        editor: DocumentEditor | None = None,
        on_batch: BatchCallback | None = None,
        reader: Callable[[str], "list[str] | None"] = read_lines,
        git: GitContentProvider | None = None,
        clock: Callable[[], float] = time.monotonic,
        notifier: FileChangeNotifier | None = None,
    ) -> None:
        self.config = config or Config()
        self.editor: DocumentEditor = editor or InMemoryDocumentEditor()
        self.registry = DocumentRegistry()
        self._on_batch = on_batch
        self._reader = reader
        self._notifier = notifier
        self._clock = clock
        self._git_provider = git
        self.git: GitContentProvider | None = None

        self.pipeline = ChangeWatchPipeline(
            self.registry,
            self._handle_batch,
            reader=reader,
            debounce_ms=self.config.DEBOUNCE_MS,
            clock=clock,
            context_lines=self.config.CONTEXT_LINES,
            mode=_coerce_mode(self.config.MODE),
        )
        if self.config.GIT_ENABLED or git is not None:
            self._install_git()

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ReviewMode:
        return self.pipeline.mode

    def set_mode(self, mode: ReviewMode | str) -> ReviewMode:
        """Set the mode for future batches; current batches keep theirs."""
        self.pipeline.mode = _coerce_mode(mode)
        logger.info("[Review] Mode set to %s", self.pipeline.mode.value)
        return self.pipeline.mode

    def toggle_mode(self) -> ReviewMode:
        if self.mode is ReviewMode.AUTO:
            return self.set_mode(ReviewMode.PREVIEW)
        return self.set_mode(ReviewMode.AUTO)

    # ------------------------------------------------------------------
    # Git integration
    # ------------------------------------------------------------------

    @property
    def git_enabled(self) -> bool:
        return self.git is not None

    def set_git_enabled(self, enabled: bool) -> bool:
        """Turn git classification and git baselines on or off for future passes."""
        if enabled:
            self._install_git()
        else:
            self.git = None
            self.pipeline.classifier = None
            self.pipeline.baseline_source = None
        self.config.GIT_ENABLED = enabled
        logger.info("[Review] Git integration %s", "on" if enabled else "off")
        return enabled

    def toggle_git(self) -> bool:
        return self.set_git_enabled(not self.git_enabled)

    def _install_git(self) -> None:
        if self._git_provider is None:
            self._git_provider = GitContentProvider(
                cache_ttl=self.config.GIT_CACHE_TTL, clock=self._clock
            )
        self.git = self._git_provider
        self.pipeline.classifier = self._classify
        if self.config.GIT_BASELINE != BASELINE_WORKING_TREE:
            self.pipeline.baseline_source = self._git_baseline
        else:
            self.pipeline.baseline_source = None

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    def is_ignored(self, path: str) -> bool:
        name = os.path.basename(path)
        for pattern in self.config.IGNORE_PATTERNS:
            if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern):
                return True
        return False

    def start_watching(
        self,
        doc_id: Hashable,
        path: str,
        lines: Sequence[str] | None = None,
    ) -> DocumentState | None:
        """Track *path* as *doc_id*.  Returns ``None`` for ignored paths."""
        if self.is_ignored(path):
            logger.info("[Watch] Ignoring %s (matches ignore pattern)", path)
            return None
        previous = self.registry.get(doc_id)
        if previous is not None and self._notifier is not None:
            self._notifier.remove(previous.path)
        state = self.pipeline.watch(doc_id, path, lines)
        self._sync_buffer(state)
        if self._notifier is not None:
            self._notifier.add(path)
        return state

    def stop_watching(self, doc_id: Hashable) -> bool:
        state = self.pipeline.unwatch(doc_id)
        if state is None:
            return False
        if self._notifier is not None:
            self._notifier.remove(state.path)
        return True

    def close_document(self, doc_id: Hashable) -> bool:
        """Stop watching and drop any buffer held for the document."""
        state = self.registry.get(doc_id)
        if not self.stop_watching(doc_id):
            return False
        if isinstance(self.editor, InMemoryDocumentEditor):
            self.editor.buffers.pop(state.path, None)
        return True

    def toggle_watching(self, doc_id: Hashable, path: str) -> bool:
        """Stop watching *doc_id* if watched, otherwise start.  Returns the new state."""
        if self.is_watching(doc_id):
            self.stop_watching(doc_id)
            return False
        return self.start_watching(doc_id, path) is not None

    def pause(self, doc_id: Hashable) -> bool:
        """Stop reacting to change notifications without dropping review state."""
        return self.pipeline.pause(doc_id)

    def resume(self, doc_id: Hashable) -> bool:
        return self.pipeline.resume(doc_id)

    def is_paused(self, doc_id: Hashable) -> bool:
        return self.pipeline.is_paused(doc_id)

    def is_watching(self, doc_id: Hashable) -> bool:
        return self.pipeline.is_watching(doc_id)

    def state(self, doc_id: Hashable) -> DocumentState | None:
        return self.registry.get(doc_id)

    def take_snapshot(self, doc_id: Hashable, lines: Sequence[str] | None = None) -> bool:
        """Make *lines* (default: the live content) the new baseline."""
        state = self.registry.get(doc_id)
        if state is None:
            return False
        return self.registry.snapshot(doc_id, state.live if lines is None else lines)

    def on_write(self, doc_id: Hashable, lines: Sequence[str] | None = None) -> bool:
        """The document was saved: its content becomes the new baseline.

        Hunks and undo history are dropped.
        """
        state = self.registry.get(doc_id)
        if state is None:
            return False
        if lines is None:
            lines = self._reader(state.path) or []
        had_hunks = bool(state.hunks)
        self.registry.snapshot(doc_id, lines)
        state.live = list(lines)
        state.hunks = []
        state.retired = []
        state.undo.clear()
        state.last_processed_fingerprint = fingerprint(lines)
        if self.git is not None:
            self.git.invalidate(state.path)
        self._sync_buffer(state)
        logger.info("[Review] %s written, baseline updated", state.path)
        if had_hunks:
            self._publish(state, BatchReason.CLEARED)
        return True

    def refresh(self, doc_id: Hashable) -> BatchReason | None:
        """Process *doc_id* immediately, bypassing the debounce."""
        return self.pipeline.process(doc_id)

    def refresh_all(self) -> int:
        published = 0
        for state in self.registry:
            if self.pipeline.process(state.doc_id) is not None:
                published += 1
        return published

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def notify(self, path: str, kind: EventKind = EventKind.CHANGED) -> None:
        """Feed a raw change notification.  Safe from any thread."""
        self.pipeline.notify(path, kind)

    def pump(self, now: float | None = None) -> int:
        return self.pipeline.pump(now)

    def run(self, stop_event: threading.Event, poll_interval: float = 0.05) -> None:
        self.pipeline.run(stop_event, poll_interval)

    def start_notifier(self) -> FileChangeNotifier:
        """Start filesystem notifications for every watched document."""
        if self._notifier is None:
            self._notifier = FileChangeNotifier(self.pipeline.notify)
            for state in self.registry:
                self._notifier.add(state.path)
        self._notifier.start()
        return self._notifier

    def close(self) -> None:
        if self._notifier is not None:
            self._notifier.stop()
        for state in self.registry:
            self.pipeline.unwatch(state.doc_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def hunks(self, doc_id: Hashable) -> list[Hunk]:
        state = self.registry.get(doc_id)
        return list(state.hunks) if state is not None else []

    def stats(self, doc_id: Hashable) -> HunkStats:
        return hunk_stats(self.hunks(doc_id))

    def next_hunk(self, doc_id: Hashable, line: int) -> Hunk | None:
        return next_hunk(pending_hunks(self.hunks(doc_id)), line)

    def prev_hunk(self, doc_id: Hashable, line: int) -> Hunk | None:
        return prev_hunk(pending_hunks(self.hunks(doc_id)), line)

    # ------------------------------------------------------------------
    # Review intents
    # ------------------------------------------------------------------

    def accept_hunk(
        self,
        doc_id: Hashable,
        line: int | None = None,
        hunk_id: int | None = None,
    ) -> ActionResult:
        return self._review(doc_id, UndoAction.ACCEPT, line, hunk_id)

    def reject_hunk(
        self,
        doc_id: Hashable,
        line: int | None = None,
        hunk_id: int | None = None,
    ) -> ActionResult:
        return self._review(doc_id, UndoAction.REJECT, line, hunk_id)

    def accept_all(self, doc_id: Hashable) -> ActionResult:
        return self._review_all(doc_id, UndoAction.ACCEPT)

    def reject_all(self, doc_id: Hashable) -> ActionResult:
        return self._review_all(doc_id, UndoAction.REJECT)

    def undo(self, doc_id: Hashable) -> ActionResult:
        """Reverse the most recent single-hunk accept or reject."""
        state = self.registry.get(doc_id)
        if state is None:
            return ActionResult(ActionStatus.NOT_WATCHED, "Document is not watched")
        entry = state.undo.pop()
        if entry is None:
            return ActionResult(ActionStatus.EMPTY_HISTORY, "Nothing to undo")

        hunk = find_by_id(state.hunks, entry.hunk.id)
        reinserted = hunk is None
        if reinserted:
            hunk = find_by_id(state.retired, entry.hunk.id)
            if hunk is None:
                hunk = entry.hunk.restore()
            else:
                state.retired = remove_hunk(state.retired, hunk.id)
            state.hunks = sort_by_position([*state.hunks, hunk])

        if entry.content_mutated:
            if entry.action is UndoAction.ACCEPT:
                self._revert(state, hunk)
            else:
                self._apply(state, hunk)
        hunk.status = HunkStatus.PENDING

        if reinserted:
            state.baseline = self._pending_baseline(state)
            self._publish(state, BatchReason.CHANGED)
        self._suppress_own_edit(state, entry.content_mutated)

        remaining = len(pending_hunks(state.hunks))
        logger.info(
            "[Review] Undid %s of hunk %d in %s",
            entry.action.value, hunk.id, state.path,
        )
        return ActionResult(
            ActionStatus.OK,
            f"Undid {entry.action.value} of hunk {hunk.id}",
            hunk=hunk,
            remaining=remaining,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _review(
        self,
        doc_id: Hashable,
        action: UndoAction,
        line: int | None,
        hunk_id: int | None,
    ) -> ActionResult:
        state = self.registry.get(doc_id)
        if state is None:
            return ActionResult(ActionStatus.NOT_WATCHED, "Document is not watched")
        if not state.hunks:
            return ActionResult(ActionStatus.NO_HUNKS, "No hunks")

        hunk = self._target(state, line, hunk_id)
        if hunk is None:
            return ActionResult(ActionStatus.NO_PENDING_HUNK, "No pending hunk")

        mutates = self._mutates(state.mode, action)
        refused = self._refuse_edit(state, mutates)
        if refused is not None:
            return refused
        snapshot = hunk.snapshot()
        if mutates:
            if action is UndoAction.ACCEPT:
                self._apply(state, hunk)
            else:
                self._revert(state, hunk)
        hunk.status = (
            HunkStatus.ACCEPTED if action is UndoAction.ACCEPT else HunkStatus.REJECTED
        )
        state.undo.push(UndoEntry(action=action, hunk=snapshot, content_mutated=mutates))
        self._suppress_own_edit(state, mutates)

        remaining = len(pending_hunks(state.hunks))
        verb = "Accepted" if action is UndoAction.ACCEPT else "Rejected"
        logger.info(
            "[Review] %s hunk %d in %s (%d remaining)",
            verb, hunk.id, state.path, remaining,
        )
        self._resolve_if_done(state)
        return ActionResult(
            ActionStatus.OK,
            f"{verb} hunk {hunk.id} ({remaining} remaining)",
            hunk=hunk,
            remaining=remaining,
        )

    def _review_all(self, doc_id: Hashable, action: UndoAction) -> ActionResult:
        state = self.registry.get(doc_id)
        if state is None:
            return ActionResult(ActionStatus.NOT_WATCHED, "Document is not watched")
        if not state.hunks:
            return ActionResult(ActionStatus.NO_HUNKS, "No hunks")
        pending = pending_hunks(state.hunks)
        if not pending:
            return ActionResult(ActionStatus.NO_PENDING_HUNK, "No pending hunk")

        mutates = self._mutates(state.mode, action)
        refused = self._refuse_edit(state, mutates)
        if refused is not None:
            return refused
        status = HunkStatus.ACCEPTED if action is UndoAction.ACCEPT else HunkStatus.REJECTED
        # Last to first: earlier hunks keep their live positions.
        for hunk in reversed(sort_by_position(pending)):
            if mutates:
                if action is UndoAction.ACCEPT:
                    self._apply(state, hunk)
                else:
                    self._revert(state, hunk)
            hunk.status = status
        self._suppress_own_edit(state, mutates)

        state.baseline = list(state.live)
        state.hunks = []
        state.retired = []
        state.undo.clear()
        verb = "Accepted" if action is UndoAction.ACCEPT else "Rejected"
        logger.info("[Review] %s %d hunk(s) in %s", verb, len(pending), state.path)
        self._publish(state, BatchReason.CLEARED)
        return ActionResult(ActionStatus.OK, f"{verb} {len(pending)} hunk(s)")

    def _target(
        self,
        state: DocumentState,
        line: int | None,
        hunk_id: int | None,
    ) -> Hunk | None:
        pending = pending_hunks(state.hunks)
        if hunk_id is not None:
            return find_by_id(pending, hunk_id)
        if not pending:
            return None
        if line is None:
            return pending[0]
        hunk = hunk_at_position(pending, line)
        if hunk is not None:
            return hunk
        return next_hunk(pending, line)

    @staticmethod
    def _mutates(mode: ReviewMode, action: UndoAction) -> bool:
        if mode is ReviewMode.AUTO:
            return action is UndoAction.REJECT
        return action is UndoAction.ACCEPT

    def _refuse_edit(self, state: DocumentState, mutates: bool) -> ActionResult | None:
        # Preview hunks are positioned against the baseline, but the watched
        # file already holds the external content.
        if mutates and state.mode is ReviewMode.PREVIEW and getattr(
            self.editor, "writes_source", False
        ):
            logger.warning(
                "[Review] Refusing preview edit of %s through a file-backed editor",
                state.path,
            )
            return ActionResult(
                ActionStatus.UNSUPPORTED,
                "Preview mode cannot apply hunks with an editor that writes the watched file",
            )
        return None

    def _live_delta(self, state: DocumentState, hunk: Hunk) -> int:
        """Line shift of *hunk* in the live document caused by earlier hunks."""
        key = position_key(hunk)
        delta = 0
        for other in (*state.hunks, *state.retired):
            if other.id == hunk.id or position_key(other) >= key:
                continue
            shown = other.new_count if _shows_new(other, state.mode) else other.old_count
            delta += shown - other.old_count
        return delta

    def _apply(self, state: DocumentState, hunk: Hunk) -> None:
        delta = self._live_delta(state, hunk)
        apply_hunk(_LiveMirror(self.editor, state), state.path, hunk, delta)

    def _revert(self, state: DocumentState, hunk: Hunk) -> None:
        delta = self._live_delta(state, hunk)
        revert_hunk(_LiveMirror(self.editor, state), state.path, hunk, delta)

    def _pending_baseline(self, state: DocumentState) -> list[str]:
        """The live content with every pending hunk showing its old side."""
        buffer = InMemoryDocumentEditor({state.path: list(state.live)})
        for hunk in reversed(sort_by_position(pending_hunks(state.hunks))):
            if _shows_new(hunk, state.mode):
                revert_hunk(buffer, state.path, hunk, self._live_delta(state, hunk))
        return buffer.lines(state.path)

    def _resolve_if_done(self, state: DocumentState) -> None:
        if not state.hunks or pending_hunks(state.hunks):
            return
        state.baseline = list(state.live)
        state.retired.extend(state.hunks)
        state.hunks = []
        logger.info("[Review] All hunks in %s resolved", state.path)
        self._publish(state, BatchReason.CLEARED)

    def _suppress_own_edit(self, state: DocumentState, mutated: bool) -> None:
        # The editor rewrote the watched file; its echo must not re-diff.
        if mutated and state.mode is ReviewMode.AUTO and getattr(
            self.editor, "writes_source", False
        ):
            state.last_processed_fingerprint = fingerprint(state.live)

    def _classify(
        self,
        path: str,
        old_lines: Sequence[str],
        new_lines: Sequence[str],
    ) -> ChangeOrigin:
        return classify_change(path, old_lines, new_lines, self.git)

    def _git_baseline(self, path: str) -> list[str] | None:
        return self.git.baseline_content(path, self.config.GIT_BASELINE)

    def _sync_buffer(self, state: DocumentState) -> None:
        if isinstance(self.editor, InMemoryDocumentEditor):
            self.editor.open(state.path, state.live)

    def _handle_batch(
        self,
        doc_id: Hashable,
        hunks: list[Hunk],
        reason: BatchReason,
    ) -> None:
        state = self.registry.get(doc_id)
        if state is not None and reason is not BatchReason.DELETED:
            self._sync_buffer(state)
        if self._on_batch is not None:
            self._on_batch(doc_id, hunks, reason)

    def _publish(self, state: DocumentState, reason: BatchReason) -> None:
        if self._on_batch is None:
            return
        try:
            self._on_batch(state.doc_id, list(state.hunks), reason)
        except Exception as exc:
            logger.warning(
                "[Review] Batch callback failed for %s: %s", state.path, exc
            )
