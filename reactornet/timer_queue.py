"""One-shot and repeating timers ordered by expiration."""

from __future__ import annotations

import bisect
import itertools
import sys
from dataclasses import dataclass, field
from typing import Any, Optional

from reactornet.channel import TimerCallback
from reactornet.timestamp import Timestamp, add_time

_sequence = itertools.count(1)


class Timer:
    """A callback due at ``expiration``, repeated every ``interval`` seconds if positive."""

    def __init__(self, callback: TimerCallback, expiration: Timestamp, interval: float = 0.0) -> None:
        self.callback = callback
        self.expiration = expiration
        self.interval = interval
        self.sequence = next(_sequence)

    def run(self) -> None:
        self.callback()

    @property
    def repeat(self) -> bool:
        return self.interval > 0.0

    def restart(self, now: Timestamp) -> None:
        """Schedule the next run from ``now``; a one-shot timer becomes invalid."""
        if self.repeat:
            self.expiration = add_time(now, self.interval)
        else:
            self.expiration = Timestamp.invalid()


@dataclass(frozen=True)
class TimerId:
    """Identifies one timer so that it can be cancelled."""

    when: Timestamp = field(default_factory=Timestamp.invalid)
    timer: Optional[Timer] = None


_Entry = tuple[Timestamp, int, Timer]


class TimerQueue:
    """Pending timers of one loop; the loop calls :meth:`handle_expired` when they are due."""

    def __init__(self, loop: Any) -> None:
        self._loop = loop
        self._timers: list[_Entry] = []
        self._active: dict[int, tuple[Timestamp, int]] = {}
        self._calling_expired = False
        self._canceling: set[int] = set()

    def add_timer(self, callback: TimerCallback, when: Timestamp, interval: float = 0.0) -> TimerId:
        """Schedule ``callback`` at ``when``; safe to call from any thread."""
        timer = Timer(callback, when, interval)
        self._loop.run_in_loop(lambda: self._add_timer_in_loop(timer))
        return TimerId(when, timer)

    def cancel_timer(self, timer_id: TimerId) -> None:
        """Cancel a timer; safe to call from any thread."""
        self._loop.run_in_loop(lambda: self._cancel_timer_in_loop(timer_id))

    def next_expiration(self) -> Optional[Timestamp]:
        """Return when the earliest pending timer is due, or None."""
        return self._timers[0][0] if self._timers else None

    def handle_expired(self, now: Timestamp) -> int:
        """Run every timer due at or before ``now``; return how many ran."""
        self._loop.assert_in_loop_thread()
        self._canceling.clear()

        end = bisect.bisect_right(self._timers, (now, sys.maxsize))
        expired = self._timers[:end]
        del self._timers[:end]
        for _, sequence, _ in expired:
            self._active.pop(sequence, None)

        self._calling_expired = True
        try:
            for _, _, timer in expired:
                timer.run()
        finally:
            self._calling_expired = False

        for _, sequence, timer in expired:
            if timer.repeat and sequence not in self._canceling:
                timer.restart(now)
                self._insert(timer)
        return len(expired)

    def __len__(self) -> int:
        return len(self._timers)

    def _insert(self, timer: Timer) -> None:
        key = (timer.expiration, timer.sequence)
        bisect.insort(self._timers, (timer.expiration, timer.sequence, timer))
        self._active[timer.sequence] = key

    def _add_timer_in_loop(self, timer: Timer) -> None:
        self._loop.assert_in_loop_thread()
        self._insert(timer)

    def _cancel_timer_in_loop(self, timer_id: TimerId) -> None:
        self._loop.assert_in_loop_thread()
        timer = timer_id.timer
        if timer is None:
            return
        key = self._active.pop(timer.sequence, None)
        if key is not None:
            index = bisect.bisect_left(self._timers, key)
            del self._timers[index]
        elif self._calling_expired:
            # Already taken out to run; keep it from being rescheduled.
            self._canceling.add(timer.sequence)