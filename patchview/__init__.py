"""patchview: detect, classify and review line-level changes made to
documents by external processes."""

from .diffing import ChangeKind, ChangeRecord, compute, compute_inline
from .classification import ChangeOrigin, classify_change
from .hunks import Hunk, HunkStatus, HunkStats
from .watch import BatchReason, ChangeWatchPipeline, ReviewMode
from .git_utils import GitContentProvider
from .config import Config
from .session import ActionResult, ActionStatus, ReviewSession

__version__ = "0.1.0"

__all__ = [
    "ChangeKind", "ChangeRecord", "compute", "compute_inline",
    "ChangeOrigin", "classify_change",
    "Hunk", "HunkStatus", "HunkStats",
    "BatchReason", "ChangeWatchPipeline", "ReviewMode",
    "GitContentProvider", "Config",
    "ActionResult", "ActionStatus", "ReviewSession",
]
