"""
Command-line entry point: ``patchview diff | watch | classify``.
"""

import argparse
import logging
import os
import sys
import threading
from datetime import datetime

from .classification import classify_change
from .config import Config
from .diffing.changes import compute, format_unified_diff, to_unified_diff
from .git_utils import GitContentProvider
from .hunks.model import hunk_stats
from .session import ReviewSession
from .watch.reader import read_lines

logger = logging.getLogger(__name__)


def setup_logger(log_dir: str = ".patchview/logs", verbose: bool = False) -> logging.Logger:
    """Creates a file logger plus a console handler for the CLI."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"patchview_{timestamp}.log")

    log = logging.getLogger("patchview")
    log.setLevel(logging.DEBUG)

    # File handler: captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"
    ))
    log.addHandler(fh)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ch.setFormatter(logging.Formatter("  [%(levelname)s] %(message)s"))
    log.addHandler(ch)

    return log


def _read_or_fail(path: str) -> list[str]:
    lines = read_lines(path)
    if lines is None:
        print(f"\n  [ERROR] Cannot read {path}\n", file=sys.stderr)
        sys.exit(2)
    return lines


def _cmd_diff(args, config: Config) -> int:
    old = _read_or_fail(args.old)
    new = _read_or_fail(args.new)
    changes = compute(old, new)
    if not changes:
        print("  No changes.")
        return 0
    print(format_unified_diff(changes, path=args.new), end="")
    print(f"\n  {len(changes)} change(s)")
    return 1


def _cmd_classify(args, config: Config) -> int:
    old = _read_or_fail(args.old)
    new = _read_or_fail(args.path)
    git = GitContentProvider(cache_ttl=config.GIT_CACHE_TTL)
    origin = classify_change(args.path, old, new, git)
    print(origin.value)
    return 0


def _cmd_watch(args, config: Config) -> int:
    if args.mode:
        config.MODE = args.mode
    if args.no_git:
        config.GIT_ENABLED = False

    def on_batch(doc_id, hunks, reason):
        stats = hunk_stats(hunks)
        print(f"\n  [{reason.value}] {doc_id}: {stats.total} hunk(s), "
              f"+{stats.additions} -{stats.deletions}")
        for hunk in hunks:
            print(f"  hunk {hunk.id} ({hunk.origin.value})")
            print("\n".join(to_unified_diff(hunk.change)))

    session = ReviewSession(config, on_batch=on_batch)
    for path in args.paths:
        abs_path = os.path.abspath(path)
        if session.start_watching(abs_path, abs_path) is None:
            print(f"  Skipping {path} (ignored)")
    if not session.registry:
        print("\n  [ERROR] Nothing to watch.\n", file=sys.stderr)
        return 2

    session.start_notifier()
    print(f"  Watching {len(session.registry)} file(s) in {session.mode.value} mode. "
          "Press Ctrl+C to stop.")
    stop = threading.Event()
    try:
        session.run(stop)
    except KeyboardInterrupt:
        stop.set()
    finally:
        session.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="patchview",
        description="patchview: review line-level changes made by external tools",
    )
    parser.add_argument("--config", default=None,
                        help="Path to a .patchview.yaml config file")
    parser.add_argument("--log-dir", default=".patchview/logs",
                        help="Directory for log files")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Echo debug logging to the console")
    sub = parser.add_subparsers(dest="command", required=True)

    p_diff = sub.add_parser("diff", help="Show the line diff between two files")
    p_diff.add_argument("old", help="Old version")
    p_diff.add_argument("new", help="New version")
    p_diff.set_defaults(func=_cmd_diff)

    p_watch = sub.add_parser("watch", help="Watch files and print hunk batches")
    p_watch.add_argument("paths", nargs="+", help="Files to watch")
    p_watch.add_argument("--mode", choices=["auto", "preview"], default=None,
                         help="Review mode (overrides config)")
    p_watch.add_argument("--no-git", action="store_true",
                         help="Disable git classification")
    p_watch.set_defaults(func=_cmd_watch)

    p_classify = sub.add_parser("classify",
                                help="Classify a file's current content against git")
    p_classify.add_argument("path", help="File whose current content is classified")
    p_classify.add_argument("--old", required=True,
                            help="File holding the previous content")
    p_classify.set_defaults(func=_cmd_classify)

    args = parser.parse_args(argv)
    setup_logger(args.log_dir, verbose=args.verbose)
    config = Config.load(args.config)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
