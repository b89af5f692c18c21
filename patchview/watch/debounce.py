"""
Debouncer: cancel-and-restart deadlines keyed by document.

Deadlines are plain timestamps checked by the owning loop, so firing
happens on the loop's thread and never concurrently with other work.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable


class Debouncer:
    """Collapse bursts of triggers into one expiry per key."""

    def __init__(
        self,
        delay_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._delay = max(0.0, delay_seconds)
        self._clock = clock
        self._deadlines: dict[Hashable, float] = {}

    @property
    def delay(self) -> float:
        return self._delay

    def schedule(self, key: Hashable) -> float:
        """(Re)start the timer for *key*; an older deadline is replaced."""
        deadline = self._clock() + self._delay
        self._deadlines[key] = deadline
        return deadline

    def cancel(self, key: Hashable) -> bool:
        return self._deadlines.pop(key, None) is not None

    def is_pending(self, key: Hashable) -> bool:
        return key in self._deadlines

    def pop_due(self, now: float | None = None) -> list[Hashable]:
        """Remove and return keys whose deadline has passed, oldest first."""
        if now is None:
            now = self._clock()
        due = sorted(
            ((deadline, key) for key, deadline in self._deadlines.items()
             if deadline <= now),
            key=lambda item: item[0],
        )
        keys = [key for _, key in due]
        for key in keys:
            del self._deadlines[key]
        return keys

    def time_until_next(self, now: float | None = None) -> float | None:
        """Seconds until the earliest deadline, or ``None`` if none is pending."""
        if not self._deadlines:
            return None
        if now is None:
            now = self._clock()
        return max(0.0, min(self._deadlines.values()) - now)

    def clear(self) -> None:
        self._deadlines.clear()
