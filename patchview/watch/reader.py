"""
Document reader: loads a file as a line sequence.

Missing or unreadable files yield ``None`` rather than raising.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def split_lines(content: str) -> list[str]:
    """Split text on newlines, dropping the empty tail left by a final newline."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def read_lines(path: str) -> list[str] | None:
    """Return the lines of *path*, or ``None`` if it cannot be read."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()
    except OSError as exc:
        logger.debug("[Watch] Cannot read %s: %s", path, exc)
        return None
    return split_lines(content)
