"""
Git integration: repository detection and index/HEAD content lookup
with a short-lived cache.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass

from .watch.reader import read_lines, split_lines

logger = logging.getLogger(__name__)

BASELINE_WORKING_TREE = "working_tree"
BASELINE_STAGED = "staged"
BASELINE_HEAD = "head"
BASELINES = (BASELINE_WORKING_TREE, BASELINE_STAGED, BASELINE_HEAD)


def _run_git(args: list[str], cwd: str) -> tuple[bool, str]:
    """Run a git command in *cwd* and return ``(success, output)``.

    On success the output is stdout; on failure it is stderr.
    """
    try:
        result = subprocess.run(
            ["git", "-C", cwd, *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        return False, str(e)
    if result.returncode != 0:
        return False, result.stderr.strip()
    return True, result.stdout


@dataclass(frozen=True)
class FileStatus:
    staged: bool = False
    modified: bool = False
    untracked: bool = False


@dataclass
class _CacheEntry:
    lines: list[str] | None
    timestamp: float


class GitContentProvider:
    """Index / HEAD content for files, cached for ``cache_ttl`` seconds.

    Parameters
    ----------
    cache_ttl:
        Seconds a fetched content stays valid.
    clock:
        Monotonic time source (injectable for tests).
    runner:
        ``(args, cwd) -> (ok, output)`` used to invoke git.
    """

    def __init__(
        self,
        cache_ttl: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        runner: Callable[[list[str], str], tuple[bool, str]] = _run_git,
    ) -> None:
        self._ttl = cache_ttl
        self._clock = clock
        self._run = runner
        self._repos: dict[str, tuple[bool, str | None]] = {}
        self._content: dict[str, _CacheEntry] = {}

    # ------------------------------------------------------------------
    # Repository detection
    # ------------------------------------------------------------------

    def is_git_repo(self, path: str) -> tuple[bool, str | None]:
        """Return ``(is_git, repo_root)`` for the directory holding *path*."""
        directory = os.path.dirname(os.path.abspath(path))
        cached = self._repos.get(directory)
        if cached is not None:
            return cached

        ok, output = self._run(["rev-parse", "--show-toplevel"], directory)
        root = output.strip() if ok and output.strip() else None
        result = (root is not None, root)
        self._repos[directory] = result
        return result

    def _relative_path(self, path: str, root: str) -> str | None:
        abs_path = os.path.realpath(os.path.abspath(path))
        abs_root = os.path.realpath(root)
        try:
            rel = os.path.relpath(abs_path, abs_root)
        except ValueError:
            return None
        if rel.startswith(os.pardir):
            return None
        return rel.replace(os.sep, "/")

    # ------------------------------------------------------------------
    # Content lookup
    # ------------------------------------------------------------------

    def _show(self, path: str, revision_prefix: str, cache_tag: str) -> list[str] | None:
        is_git, root = self.is_git_repo(path)
        if not is_git or root is None:
            return None
        rel = self._relative_path(path, root)
        if rel is None:
            return None

        key = f"{os.path.abspath(path)}:{cache_tag}"
        cached = self._content.get(key)
        now = self._clock()
        if cached is not None and now - cached.timestamp < self._ttl:
            return cached.lines

        ok, output = self._run(["show", f"{revision_prefix}{rel}"], root)
        lines = split_lines(output) if ok else None
        if not ok:
            logger.debug("[Git] No %s content for %s: %s", cache_tag, rel, output)
        self._content[key] = _CacheEntry(lines=lines, timestamp=now)
        return lines

    def staged_content(self, path: str) -> list[str] | None:
        """Content of *path* in the index, or ``None``."""
        return self._show(path, ":0:", "staged")

    def head_content(self, path: str) -> list[str] | None:
        """Content of *path* at HEAD, or ``None``."""
        return self._show(path, "HEAD:", "head")

    def working_tree_content(self, path: str) -> list[str] | None:
        return read_lines(path)

    def baseline_content(self, path: str, baseline: str) -> list[str] | None:
        """Content for a baseline mode; ``staged`` falls back to HEAD."""
        if baseline == BASELINE_HEAD:
            return self.head_content(path)
        if baseline == BASELINE_STAGED:
            staged = self.staged_content(path)
            return staged if staged is not None else self.head_content(path)
        return self.working_tree_content(path)

    def file_status(self, path: str) -> FileStatus | None:
        """Porcelain status of *path*, or ``None`` outside a repository."""
        is_git, root = self.is_git_repo(path)
        if not is_git or root is None:
            return None
        rel = self._relative_path(path, root)
        if rel is None:
            return None

        ok, output = self._run(["status", "--porcelain", "--", rel], root)
        if not ok or not output.strip():
            return FileStatus()

        line = output.splitlines()[0]
        index_status = line[0]
        worktree_status = line[1] if len(line) > 1 else " "
        return FileStatus(
            staged=index_status not in (" ", "?"),
            modified=worktree_status == "M",
            untracked=index_status == "?",
        )

    # ------------------------------------------------------------------
    # Cache control
    # ------------------------------------------------------------------

    def invalidate(self, path: str) -> None:
        abs_path = os.path.abspath(path)
        self._repos.pop(os.path.dirname(abs_path), None)
        self._content.pop(f"{abs_path}:staged", None)
        self._content.pop(f"{abs_path}:head", None)

    def clear_cache(self) -> None:
        self._repos.clear()
        self._content.clear()
