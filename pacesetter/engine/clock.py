"""
Session Clock - single pausable logical time source.

Everything timed within a session reads this clock: the driver's elapsed
seconds, Edge/Ruin hold delays, the task interval, task countdowns, media
dwell and ambient cue timers. The clock only moves when ``advance(dt)`` is
called by the frame loop, and never while paused, so pausing the clock
suspends every timer at once and resuming continues them where they stopped.

Usage:
    clock = SessionClock()
    clock.call_later(2.0, lambda: print("two seconds of session time"))
    clock.advance(1.0)   # nothing yet
    clock.advance(1.0)   # callback fires

    # inside a coroutine
    await clock.sleep(8.0)
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Callable, Optional


class TimerHandle:
    """Handle returned by ``call_later`` / ``call_every``; cancellable."""

    __slots__ = ("deadline", "seq", "callback", "interval", "cancelled", "name")

    def __init__(
        self,
        deadline: float,
        seq: int,
        callback: Callable[[], None],
        interval: Optional[float] = None,
        name: str = "",
    ) -> None:
        self.deadline = deadline
        self.seq = seq
        self.callback = callback
        self.interval = interval
        self.cancelled = False
        self.name = name

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "TimerHandle") -> bool:
        return (self.deadline, self.seq) < (other.deadline, other.seq)

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else f"due={self.deadline:.3f}"
        label = f" {self.name}" if self.name else ""
        return f"TimerHandle({state}{label})"


class SessionClock:
    """Logical session clock with deadline-ordered timers.

    Timers due within one ``advance`` call fire in deadline order, and
    ``now()`` reads as the timer's deadline while its callback runs, so a
    timer scheduled from inside another timer is positioned relative to the
    moment it was scheduled rather than the end of the frame.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._paused = False
        self._heap: list[TimerHandle] = []
        self._seq = itertools.count()
        self.logger = logging.getLogger(__name__)

    # ---------------------------------------------------------------- state
    def now(self) -> float:
        return self._now

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers."""
        return sum(1 for h in self._heap if not h.cancelled)

    def pause(self) -> bool:
        if self._paused:
            return False
        self._paused = True
        self.logger.debug("[clock] Paused at t=%.3f", self._now)
        return True

    def resume(self) -> bool:
        if not self._paused:
            return False
        self._paused = False
        self.logger.debug("[clock] Resumed at t=%.3f", self._now)
        return True

    # --------------------------------------------------------------- timers
    def call_later(self, delay: float, callback: Callable[[], None], *, name: str = "") -> TimerHandle:
        """Run *callback* once after *delay* seconds of session time."""
        handle = TimerHandle(self._now + max(0.0, float(delay)), next(self._seq), callback, name=name)
        heapq.heappush(self._heap, handle)
        return handle

    def call_every(
        self,
        interval: float,
        callback: Callable[[], None],
        *,
        first_delay: Optional[float] = None,
        name: str = "",
    ) -> TimerHandle:
        """Run *callback* every *interval* seconds until the handle is cancelled.

        Raises:
            ValueError: If interval is not positive
        """
        interval = float(interval)
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        delay = interval if first_delay is None else max(0.0, float(first_delay))
        handle = TimerHandle(self._now + delay, next(self._seq), callback, interval=interval, name=name)
        heapq.heappush(self._heap, handle)
        return handle

    def cancel_all(self) -> None:
        for handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def reset(self) -> None:
        """Cancel every timer and rewind to t=0 (unpaused)."""
        self.cancel_all()
        self._now = 0.0
        self._paused = False

    # ------------------------------------------------------------- stepping
    def advance(self, dt: float) -> float:
        """Move the clock forward by *dt* seconds, firing due timers.

        Does nothing while paused. If a callback pauses the clock, advancing
        stops at that callback's deadline.

        Returns:
            The clock's time after stepping
        """
        if self._paused or dt <= 0:
            return self._now
        target = self._now + float(dt)
        while self._heap and self._heap[0].deadline <= target:
            handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            self._now = max(self._now, handle.deadline)
            if handle.interval is not None:
                handle.deadline += handle.interval
                heapq.heappush(self._heap, handle)
            try:
                handle.callback()
            except Exception as e:
                self.logger.error("[clock] Timer callback %r failed: %s", handle, e, exc_info=True)
            if self._paused:
                return self._now
        self._now = target
        return self._now

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine for *seconds* of session time.

        Cancelling the awaiting task cancels the underlying timer.
        """
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def _wake() -> None:
            if not future.done():
                future.set_result(None)

        handle = self.call_later(seconds, _wake, name="sleep")
        try:
            await future
        finally:
            handle.cancel()

    def __repr__(self) -> str:
        return f"SessionClock(t={self._now:.3f}, paused={self._paused}, pending={self.pending})"
