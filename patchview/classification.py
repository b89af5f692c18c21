"""
Change classification: attributes a change to the external tool or to
pre-existing version-control state.

This is a heuristic: when a change cannot be told apart from staged or
unstaged git work it is attributed to git.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

from .diffing.changes import compute, lines_equal

logger = logging.getLogger(__name__)


class ChangeOrigin(Enum):
    EXTERNAL = "external"
    UNSTAGED = "git_unstaged"
    STAGED = "git_staged"


class VcsContentProvider(Protocol):
    def is_git_repo(self, path: str) -> tuple[bool, str | None]:
        ...

    def staged_content(self, path: str) -> list[str] | None:
        ...

    def head_content(self, path: str) -> list[str] | None:
        ...


def classify_change(
    path: str,
    old_lines: Sequence[str],
    new_lines: Sequence[str],
    provider: VcsContentProvider | None = None,
) -> ChangeOrigin:
    """Classify the move from *old_lines* to *new_lines* for *path*.

    - outside a repository (or without a provider): external
    - new content equals the index: staged
    - old already differed from HEAD and new still does: unstaged
    - old matched HEAD and new does not: external
    - anything else: external
    """
    if provider is None:
        return ChangeOrigin.EXTERNAL

    is_git, _ = provider.is_git_repo(path)
    if not is_git:
        return ChangeOrigin.EXTERNAL

    staged = provider.staged_content(path)
    if staged is not None and lines_equal(new_lines, staged):
        return ChangeOrigin.STAGED

    head = provider.head_content(path)
    if head is not None:
        head_to_old = compute(head, old_lines)
        head_to_new = compute(head, new_lines)

        if not head_to_old and head_to_new:
            return ChangeOrigin.EXTERNAL
        if head_to_new:
            return ChangeOrigin.UNSTAGED

    logger.debug("[Git] No git match for %s, treating as external", path)
    return ChangeOrigin.EXTERNAL
