"""
Discrete-event scheduler - the single logical clock of a round.

Every delayed action in the engine (countdown ticks, mask/reveal timers,
spawn attempts, anti-spam expiry) is an entry in one priority queue keyed by
(fire time, sequence number). The frame loop drives it with advance(dt);
pausing simply stops the clock, so pending timers keep their remaining
duration and nothing fires twice.

Usage:
    scheduler = EventScheduler()
    handle = scheduler.call_later(900, on_mask_expired, owner=character)
    scheduler.call_every(1000, controller.tick, owner=controller)

    scheduler.advance(16)        # per frame
    scheduler.pause()            # advance() is now a no-op
    scheduler.resume()

    scheduler.cancel_owner(character)
"""

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from maskoff.logging import get_logger

log = get_logger('scheduler')


@dataclass(order=True)
class TimerHandle:
    """A scheduled callback.

    Ordered by (fire_at, seq) so events due at the same instant run in the
    order they were scheduled.

    Attributes:
        fire_at: Logical time (ms) the callback is due
        seq: Tie-breaker, increasing per scheduled event
        callback: Callable invoked with no arguments
        owner: Optional object used for bulk cancellation
        interval: Repeat interval in ms for periodic timers
        cancelled: Set once cancelled; the queue entry is skipped lazily
    """
    fire_at: float
    seq: int
    callback: Callable[[], Any] = field(compare=False)
    owner: Any = field(default=None, compare=False)
    interval: Optional[float] = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)
    fired: bool = field(default=False, compare=False)
    _scheduler: Optional['EventScheduler'] = field(default=None, compare=False, repr=False)

    @property
    def active(self) -> bool:
        """Still waiting to fire (periodic timers stay active until cancelled)."""
        return not self.cancelled and not self.fired

    @property
    def remaining(self) -> float:
        """Logical milliseconds until the callback fires."""
        if self._scheduler is None or not self.active:
            return 0.0
        return max(0.0, self.fire_at - self._scheduler.now)

    def cancel(self) -> None:
        self.cancelled = True


class EventScheduler:
    """Priority queue of timed callbacks driven by a logical clock.

    Callbacks run synchronously inside advance(). An exception raised by a
    callback is logged and does not stop the clock or other callbacks.
    """

    def __init__(self, start_time: float = 0.0):
        self._now = float(start_time)
        self._queue: List[TimerHandle] = []
        self._seq = itertools.count()
        self._paused = False
        self._firing = False
        self.failures = 0

    @property
    def now(self) -> float:
        """Current logical time in milliseconds."""
        return self._now

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) scheduled events."""
        return sum(1 for h in self._queue if not h.cancelled)

    def call_later(self, delay: float, callback: Callable[[], Any], owner: Any = None) -> TimerHandle:
        """Schedule a one-shot callback after delay ms of logical time."""
        return self._push(self._now + max(0.0, delay), callback, owner, None)

    def call_every(
        self,
        interval: float,
        callback: Callable[[], Any],
        owner: Any = None,
        first_delay: Optional[float] = None,
    ) -> TimerHandle:
        """Schedule a periodic callback every interval ms.

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        delay = interval if first_delay is None else max(0.0, first_delay)
        return self._push(self._now + delay, callback, owner, interval)

    def _push(self, fire_at, callback, owner, interval) -> TimerHandle:
        handle = TimerHandle(
            fire_at=fire_at,
            seq=next(self._seq),
            callback=callback,
            owner=owner,
            interval=interval,
            _scheduler=self,
        )
        heapq.heappush(self._queue, handle)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        """Cancel a handle. None and already-finished handles are ignored."""
        if handle is not None:
            handle.cancel()

    def cancel_owner(self, owner: Any) -> int:
        """Cancel every pending event registered with this owner.

        Returns:
            Number of events cancelled
        """
        count = 0
        for handle in self._queue:
            if handle.owner is owner and not handle.cancelled:
                handle.cancel()
                count += 1
        return count

    def clear(self) -> None:
        """Cancel everything."""
        for handle in self._queue:
            handle.cancel()
        self._queue.clear()

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def advance(self, dt: float) -> int:
        """Advance the clock by dt ms, firing everything due on the way.

        Events fire at their own timestamps: while a callback runs, `now`
        equals its fire time, so timers it schedules are relative to that.
        No-op while paused.

        Returns:
            Number of callbacks fired
        """
        if dt < 0:
            raise ValueError(f"Cannot advance by a negative amount ({dt})")
        if self._paused:
            return 0
        return self.run_until(self._now + dt)

    def run_until(self, target: float) -> int:
        """Fire every event due at or before target, then set now = target.

        Stops early if a callback pauses the scheduler; the clock then
        stays at that callback's fire time.
        """
        if self._firing:
            raise RuntimeError("EventScheduler.advance() is not re-entrant")
        fired = 0
        self._firing = True
        try:
            while self._queue and not self._paused:
                head = self._queue[0]
                if head.cancelled:
                    heapq.heappop(self._queue)
                    continue
                if head.fire_at > target:
                    break
                heapq.heappop(self._queue)
                self._now = max(self._now, head.fire_at)
                if head.interval is not None:
                    head.fire_at += head.interval
                    head.seq = next(self._seq)
                    heapq.heappush(self._queue, head)
                else:
                    head.fired = True
                self._invoke(head)
                fired += 1
            if not self._paused:
                self._now = max(self._now, target)
        finally:
            self._firing = False
        return fired

    def _invoke(self, handle: TimerHandle) -> None:
        try:
            handle.callback()
        except Exception:
            self.failures += 1
            log.exception("Scheduled callback %r failed at t=%.1f", handle.callback, self._now)
