"""
Unit tests for patchview.watch.pipeline

The pipeline is driven with a fake clock and an in-memory reader, so no
filesystem watching or sleeping is involved.
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from patchview.classification import ChangeOrigin
from patchview.diffing import ChangeKind
from patchview.watch.notifier import EventKind
from patchview.watch.pipeline import BatchReason, ChangeWatchPipeline
from patchview.watch.store import DocumentRegistry, ReviewMode, WatchPhase


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeFiles:
    """``path -> lines`` reader backed by a dict."""

    def __init__(self):
        self.content: dict[str, list[str]] = {}
        self.reads = 0

    def __call__(self, path):
        self.reads += 1
        lines = self.content.get(path)
        return list(lines) if lines is not None else None


@pytest.fixture
def env(tmp_path):
    files = FakeFiles()
    clock = FakeClock()
    callback = MagicMock()
    registry = DocumentRegistry()
    pipeline = ChangeWatchPipeline(
        registry, callback, reader=files, debounce_ms=200, clock=clock,
    )
    path = str(tmp_path / "doc.txt")
    files.content[path] = ["a", "b", "c"]
    pipeline.watch("doc", path)
    return pipeline, registry, files, clock, callback, path


# ---------------------------------------------------------------------------
# Watch lifecycle
# ---------------------------------------------------------------------------

class TestWatchLifecycle:

    def test_watch_reads_baseline(self, env):
        pipeline, registry, *_ = env
        assert registry.get("doc").baseline == ["a", "b", "c"]
        assert pipeline.is_watching("doc")

    def test_watch_with_explicit_lines(self, env):
        pipeline, registry, files, *_ = env
        pipeline.watch("other", "/tmp/other.txt", ["x"])
        assert registry.get("other").baseline == ["x"]

    def test_unwatch(self, env):
        pipeline, registry, *_ = env
        state = pipeline.unwatch("doc")
        assert state is not None
        assert not state.watching
        assert "doc" not in registry
        assert pipeline.unwatch("doc") is None


# ---------------------------------------------------------------------------
# Debounce and deduplication
# ---------------------------------------------------------------------------

class TestDebounce:

    def test_not_processed_before_expiry(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        clock.now = 0.1
        assert pipeline.pump() == 0
        assert registry.get("doc").phase is WatchPhase.DEBOUNCE_PENDING
        callback.assert_not_called()

    def test_processed_after_expiry(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        pipeline.pump()
        clock.now = 0.25
        assert pipeline.pump() == 1

        callback.assert_called_once()
        doc_id, hunks, reason = callback.call_args[0]
        assert doc_id == "doc"
        assert reason is BatchReason.CHANGED
        assert len(hunks) == 1
        assert hunks[0].kind is ChangeKind.CHANGE
        assert registry.get("doc").phase is WatchPhase.IDLE

    def test_burst_collapses_into_one_pass(self, env):
        pipeline, registry, files, clock, callback, path = env
        for i in range(5):
            files.content[path] = ["a", f"v{i}", "c"]
            pipeline.notify(path)
            pipeline.pump()
            clock.now += 0.1
        clock.now += 0.5
        pipeline.pump()
        callback.assert_called_once()
        hunks = callback.call_args[0][1]
        assert hunks[0].new_lines == ("v4",)

    def test_identical_content_published_once(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        pipeline.pump()
        clock.now = 1.0
        pipeline.pump()
        pipeline.notify(path)
        pipeline.pump()
        clock.now = 2.0
        pipeline.pump()
        assert callback.call_count == 1

    def test_unchanged_file_cleared_once(self, env):
        pipeline, registry, files, clock, callback, path = env
        pipeline.notify(path)
        pipeline.pump()
        clock.now = 1.0
        pipeline.pump()
        callback.assert_called_once()
        assert callback.call_args[0][1:] == ([], BatchReason.CLEARED)

        pipeline.notify(path)
        pipeline.pump()
        clock.now = 2.0
        pipeline.pump()
        assert callback.call_count == 1

    def test_same_shape_edits_are_not_deduplicated(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        assert pipeline.process("doc") is BatchReason.CHANGED
        files.content[path] = ["a", "Y", "c"]
        assert pipeline.process("doc") is BatchReason.CHANGED
        assert registry.get("doc").hunks[0].new_lines == ("Y",)

    def test_unrelated_path_ignored(self, env, tmp_path):
        pipeline, registry, files, clock, callback, path = env
        pipeline.notify(str(tmp_path / "other.txt"))
        pipeline.pump()
        clock.now = 1.0
        assert pipeline.pump() == 0


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------

class TestProcess:

    def test_change_then_revert_clears(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        assert pipeline.process("doc") is BatchReason.CHANGED
        files.content[path] = ["a", "b", "c"]
        assert pipeline.process("doc") is BatchReason.CLEARED
        assert registry.get("doc").hunks == []
        assert callback.call_args[0][1:] == ([], BatchReason.CLEARED)

    def test_deleted_file(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        del files.content[path]

        assert pipeline.process("doc") is BatchReason.DELETED
        state = registry.get("doc")
        assert state.hunks == []
        assert state.last_processed_fingerprint is None
        assert state.watching
        assert callback.call_args[0][2] is BatchReason.DELETED

    def test_recreated_file_diffs_against_baseline(self, env):
        pipeline, registry, files, clock, callback, path = env
        del files.content[path]
        pipeline.process("doc")
        files.content[path] = ["a", "b", "c"]
        assert pipeline.process("doc") is BatchReason.CLEARED

    def test_new_batch_replaces_old(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        first_ids = {h.id for h in registry.get("doc").hunks}
        files.content[path] = ["a", "Y", "c"]
        pipeline.process("doc")
        hunks = registry.get("doc").hunks
        assert len(hunks) == 1
        assert hunks[0].id not in first_ids
        assert hunks[0].new_lines == ("Y",)

    def test_auto_mode_live_mirrors_current(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        state = registry.get("doc")
        assert state.live == ["a", "X", "c"]
        assert state.baseline == ["a", "b", "c"]
        assert state.mode is ReviewMode.AUTO

    def test_preview_mode_live_keeps_baseline(self, env):
        pipeline, registry, files, clock, callback, path = env
        pipeline.mode = ReviewMode.PREVIEW
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        state = registry.get("doc")
        assert state.live == ["a", "b", "c"]
        assert state.mode is ReviewMode.PREVIEW

    def test_preview_baseline_absorbs_live_edits(self, env):
        pipeline, registry, files, clock, callback, path = env
        pipeline.mode = ReviewMode.PREVIEW
        state = registry.get("doc")
        state.live = ["a", "X", "c"]
        files.content[path] = ["a", "X", "c", "d"]
        pipeline.process("doc")
        assert state.baseline == ["a", "X", "c"]
        assert [h.kind for h in state.hunks] == [ChangeKind.ADD]

    def test_new_pass_clears_undo(self, env):
        pipeline, registry, files, clock, callback, path = env
        state = registry.get("doc")
        state.undo.push(MagicMock())
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        assert len(state.undo) == 0

    def test_baseline_source_overrides_store(self, env, tmp_path):
        _, _, files, clock, callback, path = env
        registry = DocumentRegistry()
        pipeline = ChangeWatchPipeline(
            registry, callback, reader=files, clock=clock,
            baseline_source=lambda p: ["a", "b"],
        )
        pipeline.watch("doc", path)
        files.content[path] = ["a", "b", "c", "d"]
        pipeline.process("doc")
        assert registry.get("doc").hunks[0].new_lines == ("c", "d")

    def test_baseline_source_none_falls_back(self, env):
        _, _, files, clock, callback, path = env
        registry = DocumentRegistry()
        pipeline = ChangeWatchPipeline(
            registry, callback, reader=files, clock=clock,
            baseline_source=lambda p: None,
        )
        pipeline.watch("doc", path)
        files.content[path] = ["a", "b", "c", "d"]
        pipeline.process("doc")
        assert registry.get("doc").hunks[0].new_lines == ("d",)

    def test_classifier_tags_hunks(self, env):
        _, _, files, clock, callback, path = env
        classifier = MagicMock(return_value=ChangeOrigin.UNSTAGED)
        registry = DocumentRegistry()
        pipeline = ChangeWatchPipeline(
            registry, callback, reader=files, clock=clock, classifier=classifier,
        )
        pipeline.watch("doc", path)
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        classifier.assert_called_once_with(path, ["a", "b", "c"], ["a", "X", "c"])
        assert registry.get("doc").hunks[0].origin is ChangeOrigin.UNSTAGED
        assert registry.get("doc").origin is ChangeOrigin.UNSTAGED

    def test_callback_error_is_logged_not_raised(self, env):
        pipeline, registry, files, clock, callback, path = env
        callback.side_effect = RuntimeError("boom")
        files.content[path] = ["a", "X", "c"]
        assert pipeline.process("doc") is BatchReason.CHANGED

    def test_unknown_document(self, env):
        pipeline, *_ = env
        assert pipeline.process("missing") is None


# ---------------------------------------------------------------------------
# Pause / resume
# ---------------------------------------------------------------------------

class TestPause:

    def test_paused_document_ignores_notifications(self, env):
        pipeline, registry, files, clock, callback, path = env
        assert pipeline.pause("doc")
        assert pipeline.is_paused("doc")
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        pipeline.pump()
        clock.now = 1.0
        assert pipeline.pump() == 0
        callback.assert_not_called()
        assert registry.get("doc").phase is WatchPhase.IDLE

    def test_pause_cancels_pending_timer(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        pipeline.pump()
        pipeline.pause("doc")
        clock.now = 1.0
        assert pipeline.pump() == 0
        assert registry.get("doc").phase is WatchPhase.IDLE

    def test_pause_keeps_hunks(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.process("doc")
        pipeline.pause("doc")
        state = registry.get("doc")
        assert len(state.hunks) == 1
        assert state.watching
        assert pipeline.is_watching("doc")

    def test_resume_restores_notifications(self, env):
        pipeline, registry, files, clock, callback, path = env
        pipeline.pause("doc")
        assert pipeline.resume("doc")
        assert not pipeline.is_paused("doc")
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        pipeline.pump()
        clock.now = 1.0
        assert pipeline.pump() == 1
        assert callback.call_args[0][2] is BatchReason.CHANGED

    def test_unknown_document(self, env):
        pipeline, *_ = env
        assert not pipeline.pause("missing")
        assert not pipeline.resume("missing")
        assert not pipeline.is_paused("missing")


# ---------------------------------------------------------------------------
# Stop semantics
# ---------------------------------------------------------------------------

class TestStop:

    def test_unwatch_cancels_pending_timer(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]
        pipeline.notify(path)
        pipeline.pump()
        pipeline.unwatch("doc")
        clock.now = 5.0
        assert pipeline.pump() == 0
        callback.assert_not_called()

    def test_pass_finishing_after_stop_is_dropped(self, env):
        pipeline, registry, files, clock, callback, path = env
        files.content[path] = ["a", "X", "c"]

        def classifier(p, old, new):
            # The watch is stopped while the pass is still running.
            pipeline.unwatch("doc")
            return ChangeOrigin.EXTERNAL

        pipeline.classifier = classifier
        assert pipeline.process("doc") is None
        callback.assert_not_called()

    def test_run_stops_on_event(self, env):
        pipeline, registry, files, clock, callback, path = env
        stop = threading.Event()
        stop.set()
        pipeline.run(stop)   # returns immediately

    def test_run_processes_queued_events(self, tmp_path):
        files = FakeFiles()
        path = str(tmp_path / "doc.txt")
        files.content[path] = ["a"]
        stop = threading.Event()
        batches = []

        def on_batch(doc_id, hunks, reason):
            batches.append(reason)
            stop.set()

        pipeline = ChangeWatchPipeline(
            DocumentRegistry(), on_batch, reader=files,
            debounce_ms=0, clock=FakeClock(),
        )
        pipeline.watch("doc", path)
        files.content[path] = ["b"]
        pipeline.notify(path, EventKind.CHANGED)

        timer = threading.Timer(5.0, stop.set)
        timer.start()
        try:
            pipeline.run(stop, poll_interval=0.01)
        finally:
            timer.cancel()
        assert batches == [BatchReason.CHANGED]
