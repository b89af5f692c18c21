"""
Document editing: applies or reverts a hunk in the live document
through a caller-supplied editor.

Editors take 0-based ``[start, end)`` line ranges.  Two implementations
are provided: an in-memory buffer store and a file-backed editor that
writes atomically via temp file + rename.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Sequence
from typing import Protocol

from ..watch.reader import read_lines
from .model import Hunk

logger = logging.getLogger(__name__)


class DocumentEditError(Exception):
    """Raised when an edit range does not fit the document."""


class DocumentEditor(Protocol):
    """Interface used to mutate live document content.

    ``writes_source`` tells the reviewer whether edits land in the same
    resource the watcher reads (so the echo of an edit can be ignored).
    """

    writes_source: bool

    def replace_lines(
        self,
        handle: str,
        start: int,
        end: int,
        new_lines: Sequence[str],
    ) -> None:
        ...


def _check_range(lines: list[str], start: int, end: int, handle: str) -> None:
    if start < 0 or end < start or end > len(lines):
        raise DocumentEditError(
            f"Range [{start}, {end}) outside {handle} ({len(lines)} lines)"
        )


class InMemoryDocumentEditor:
    """Editor over in-process line buffers keyed by handle."""

    writes_source = False

    def __init__(self, buffers: dict[str, list[str]] | None = None) -> None:
        self.buffers: dict[str, list[str]] = buffers if buffers is not None else {}

    def open(self, handle: str, lines: Sequence[str]) -> None:
        self.buffers[handle] = list(lines)

    def lines(self, handle: str) -> list[str]:
        return list(self.buffers.get(handle, []))

    def replace_lines(
        self,
        handle: str,
        start: int,
        end: int,
        new_lines: Sequence[str],
    ) -> None:
        lines = self.buffers.setdefault(handle, [])
        _check_range(lines, start, end, handle)
        lines[start:end] = list(new_lines)


class FileDocumentEditor:
    """Editor that rewrites files on disk; the handle is the file path."""

    writes_source = True

    def __init__(self, trailing_newline: bool = True) -> None:
        self._trailing_newline = trailing_newline

    def replace_lines(
        self,
        handle: str,
        start: int,
        end: int,
        new_lines: Sequence[str],
    ) -> None:
        lines = read_lines(handle)
        if lines is None:
            raise DocumentEditError(f"Cannot read {handle}")
        _check_range(lines, start, end, handle)
        lines[start:end] = list(new_lines)
        self._safe_write(handle, lines)
        logger.debug(
            "[Review] Rewrote %s lines [%d, %d) with %d line(s)",
            handle, start, end, len(new_lines),
        )

    def _safe_write(self, file_path: str, lines: list[str]) -> None:
        """Write lines to file atomically via temp file + rename."""
        content = "\n".join(lines)
        if lines and self._trailing_newline:
            content += "\n"
        abs_path = os.path.abspath(file_path)
        tmp_path = abs_path + ".patchview_tmp"

        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(content)

            # On Windows, os.rename fails if destination exists
            if os.path.exists(abs_path):
                shutil.move(tmp_path, abs_path)
            else:
                os.rename(tmp_path, abs_path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


def apply_hunk(
    editor: DocumentEditor,
    handle: str,
    hunk: Hunk,
    delta: int = 0,
) -> None:
    """Replace the hunk's old lines with its new lines in the live document.

    *delta* is the line shift between the hunk's old-side position and its
    position in the live document, caused by earlier hunks that currently
    show a different number of lines.
    """
    start = hunk.change.old_offset + delta
    editor.replace_lines(handle, start, start + hunk.old_count, hunk.new_lines)


def revert_hunk(
    editor: DocumentEditor,
    handle: str,
    hunk: Hunk,
    delta: int = 0,
) -> None:
    """Exact inverse of :func:`apply_hunk`."""
    start = hunk.change.old_offset + delta
    editor.replace_lines(handle, start, start + hunk.new_count, hunk.old_lines)
