"""
Clock and Scheduler — the only source of "now" and of delayed callbacks.

Every component receives a Clock (``now()`` in Unix seconds) and a Scheduler
(``after(delay_s, callback) -> handle``). Scheduled callbacks are never the
source of truth: each one is derived from an absolute timestamp that is also
persisted, so a lost timer only delays a correction until the next start.

Implementations:
    SystemClock        wall clock (time.time)
    AsyncioScheduler   loop.call_later on the running event loop
    VirtualClock       both roles at once, advanced manually (tests, simulation)
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> float: ...


class CancellableHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def after(self, delay_s: float, callback: Callable[[], None]) -> CancellableHandle: ...


def local_date(ts: float) -> str:
    """User-local calendar date (YYYY-MM-DD) for a Unix timestamp."""
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d")


def local_date_days_ago(ts: float, days: int) -> str:
    return (datetime.fromtimestamp(ts) - timedelta(days=days)).strftime("%Y-%m-%d")


class SystemClock:

    def now(self) -> float:
        return time.time()


# ---------------------------------------------------------------------------
# asyncio-backed scheduler
# ---------------------------------------------------------------------------

class _LoopHandle:

    def __init__(self, timer, owner: "AsyncioScheduler"):
        self._timer = timer
        self._owner = owner

    def cancel(self) -> None:
        self._timer.cancel()
        self._owner._pending.discard(self)


class AsyncioScheduler:
    """Runs callbacks on the event loop thread, so they never race a request handler."""

    def __init__(self, loop):
        self._loop = loop
        self._pending: set[_LoopHandle] = set()

    def after(self, delay_s: float, callback: Callable[[], None]) -> _LoopHandle:
        handle: Optional[_LoopHandle] = None

        def _fire():
            self._pending.discard(handle)
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback failed")

        handle = _LoopHandle(self._loop.call_later(max(0.0, delay_s), _fire), self)
        self._pending.add(handle)
        return handle

    def pending_count(self) -> int:
        return len(self._pending)

    def cancel_all(self) -> None:
        for handle in list(self._pending):
            handle.cancel()


# ---------------------------------------------------------------------------
# Virtual clock
# ---------------------------------------------------------------------------

class _VirtualHandle:

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """
    Manually advanced clock that is also a Scheduler.

    advance(seconds) moves time forward and fires every callback that falls
    due on the way, in due-time order, with now() equal to each callback's
    due time while it runs.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = float(start)
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, _VirtualHandle]] = []

    def now(self) -> float:
        return self._now

    def after(self, delay_s: float, callback: Callable[[], None]) -> _VirtualHandle:
        handle = _VirtualHandle(self._now + max(0.0, delay_s), callback)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            handle.callback()
        self._now = target

    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)
