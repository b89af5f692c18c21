"""Change watching: file reads, fingerprints, debounce and the detection pipeline."""

from .reader import read_lines, split_lines
from .fingerprint import Fingerprint, content_digest, fingerprint
from .debounce import Debouncer
from .store import (
    DocumentRegistry, DocumentState, ReviewMode, WatchPhase, normalize_path,
)
from .notifier import EventKind, FileChangeNotifier, RawEvent
from .pipeline import BatchReason, ChangeWatchPipeline

__all__ = [
    "read_lines", "split_lines",
    "Fingerprint", "content_digest", "fingerprint",
    "Debouncer",
    "DocumentRegistry", "DocumentState", "ReviewMode", "WatchPhase",
    "normalize_path",
    "EventKind", "FileChangeNotifier", "RawEvent",
    "BatchReason", "ChangeWatchPipeline",
]
