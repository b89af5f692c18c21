"""Content fingerprint: a cheap digest for deduplicating detection passes."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import NamedTuple


class Fingerprint(NamedTuple):
    first: str
    last: str
    count: int
    total_bytes: int
    digest: str


def content_digest(lines: Sequence[str]) -> str:
    h = hashlib.sha256()
    for line in lines:
        h.update(line.encode("utf-8", errors="replace"))
        h.update(b"\n")
    return h.hexdigest()[:16]


def fingerprint(lines: Sequence[str]) -> Fingerprint:
    """Combine first line, last line, line count, byte length and a digest."""
    if not lines:
        return Fingerprint("", "", 0, 0, content_digest([]))
    total = sum(len(line.encode("utf-8", errors="replace")) for line in lines)
    return Fingerprint(lines[0], lines[-1], len(lines), total, content_digest(lines))
