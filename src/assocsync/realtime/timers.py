"""Time sources for the poll scheduler.

``LoopTimer`` schedules on the running asyncio event loop.  ``ManualTimer``
only moves when ``advance`` is called, which makes polling cadence, backoff,
and deduplication testable without real delays.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    """Clock plus one-shot callback scheduling."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class LoopTimer:
    """Wall-clock time and ``loop.call_later`` on the running event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)


@dataclass(order=True)
class _Pending:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimer:
    """Deterministic timer driven by ``advance``.

    Callbacks due at the same time run in scheduling order.  Callbacks
    scheduled while advancing run in the same call if they fall due before
    the target time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[_Pending] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        entry = _Pending(self._now + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._heap, entry)
        return entry

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due callbacks.  Returns how many ran."""
        target = self._now + seconds
        ran = 0
        while self._heap and self._heap[0].due <= target:
            entry = heapq.heappop(self._heap)
            if entry.cancelled:
                continue
            self._now = entry.due
            entry.callback()
            ran += 1
        self._now = target
        return ran

    def pending(self) -> list[float]:
        """Due times of callbacks still scheduled, soonest first."""
        return sorted(e.due for e in self._heap if not e.cancelled)
