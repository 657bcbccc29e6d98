"""Ordered timer queue and a minimal single-threaded timer loop."""

from __future__ import annotations

import argparse
import bisect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

log = logging.getLogger(__name__)

TimerCallback = Callable[[bool], None]

# Longest single sleep of the loop, as the reactor caps its waits.
_MAX_WAIT_USEC = 5 * 60 * 1_000_000


@dataclass(eq=False)
class Timer:
    """A scheduled callback; the callback receives True if it was cancelled."""

    when: float
    callback: TimerCallback
    pending: bool = field(default=False)


class TimerQueue:
    """Timers keyed by expiry time, kept in order; equal times keep insertion order."""

    def __init__(self) -> None:
        self._times: list[float] = []
        self._timers: dict[float, list[Timer]] = {}

    def __len__(self) -> int:
        return sum(len(group) for group in self._timers.values())

    def __bool__(self) -> bool:
        return bool(self._times)

    @property
    def next_time(self) -> float | None:
        """Expiry of the earliest timer, or None when empty."""
        return self._times[0] if self._times else None

    def enqueue(self, when: float, callback: TimerCallback) -> Timer:
        """Add a timer expiring at ``when`` and return it."""
        timer = Timer(when, callback, pending=True)
        group = self._timers.get(when)
        if group is None:
            bisect.insort(self._times, when)
            self._timers[when] = [timer]
        else:
            group.append(timer)
        log.debug("insert a timer which will fire at %s", when)
        return timer

    def cancel(self, timer: Timer) -> bool:
        """Remove a pending timer; return whether it was still pending."""
        if not timer.pending:
            return False
        group = self._timers[timer.when]
        group.remove(timer)
        if not group:
            del self._timers[timer.when]
            self._times.remove(timer.when)
        timer.pending = False
        return True

    def _pop_first(self) -> list[Timer]:
        when = self._times.pop(0)
        group = self._timers.pop(when)
        for timer in group:
            timer.pending = False
        return group

    def pop_ready(self, now: float) -> list[Timer]:
        """Remove and return every timer expiring at or before ``now``."""
        ready: list[Timer] = []
        while self._times and not now < self._times[0]:
            ready.extend(self._pop_first())
        return ready

    def pop_all(self) -> list[Timer]:
        """Remove and return every timer, earliest first."""
        timers: list[Timer] = []
        while self._times:
            timers.extend(self._pop_first())
        return timers

    def _wait(self, max_duration: int, now: float, scale: int) -> int:
        if not self._times:
            return max_duration
        remaining = self._times[0] - now
        if remaining <= 0:
            return 0
        units = int(remaining * scale)
        if units == 0:
            return 1
        return min(units, max_duration)

    def wait_duration_msec(self, max_duration: int, now: float) -> int:
        """Milliseconds until the next timer, capped at ``max_duration``."""
        return self._wait(max_duration, now, 1_000)

    def wait_duration_usec(self, max_duration: int, now: float) -> int:
        """Microseconds until the next timer, capped at ``max_duration``."""
        return self._wait(max_duration, now, 1_000_000)


class TimerLoop:
    """Runs timer callbacks until no timers are left."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._queue = TimerQueue()
        self._aborted: deque[Timer] = deque()
        self._clock = clock
        self._sleep = sleep

    def call_at(self, when: float, callback: TimerCallback) -> Timer:
        """Schedule ``callback`` at the absolute clock time ``when``."""
        return self._queue.enqueue(when, callback)

    def call_later(self, delay: float, callback: TimerCallback) -> Timer:
        """Schedule ``callback`` after ``delay`` seconds."""
        return self.call_at(self._clock() + delay, callback)

    def cancel(self, timer: Timer) -> bool:
        """Cancel a pending timer; its callback then runs with ``True``."""
        if self._queue.cancel(timer):
            self._aborted.append(timer)
            return True
        return False

    def run(self) -> int:
        """Run until no work is left; return the number of callbacks run."""
        handled = 0
        while self._queue or self._aborted:
            while self._aborted:
                self._aborted.popleft().callback(True)
                handled += 1
            now = self._clock()
            ready = self._queue.pop_ready(now)
            if ready:
                for timer in ready:
                    timer.callback(False)
                    handled += 1
                continue
            if self._queue:
                usec = self._queue.wait_duration_usec(_MAX_WAIT_USEC, now)
                self._sleep(usec / 1_000_000)
        return handled


def _basic(loop: TimerLoop) -> None:
    def on_timer1(cancelled: bool) -> None:
        if not cancelled:
            print("timer1 timeout")

    timer1 = loop.call_later(1, on_timer1)

    def on_timer2(cancelled: bool) -> None:
        loop.cancel(timer1)
        print("timer2 timeout")

    loop.call_later(0.1, on_timer2)


def _custom(loop: TimerLoop) -> None:
    loop.call_later(10, lambda cancelled: print("fire after 10 sec."))
    loop.call_later(5, lambda cancelled: print("fire after 5 sec."))


def _repeated(loop: TimerLoop, times: int | None) -> None:
    remaining = times
    timer = None

    def tick(cancelled: bool) -> None:
        nonlocal remaining, timer
        print("time out...")
        if remaining is not None:
            remaining -= 1
            if remaining <= 0:
                return
        timer = loop.call_at(timer.when + 1, tick)

    timer = loop.call_later(1, tick)


def main(argv=None) -> int:
    """Run one of the timer demonstrations."""
    parser = argparse.ArgumentParser(prog="timer-demo")
    parser.add_argument(
        "demo",
        nargs="?",
        default="basic",
        choices=["basic", "custom", "repeated", "performance"],
    )
    parser.add_argument("--count", type=int, default=1_000_000,
                        help="number of timers for the performance demo")
    parser.add_argument("--times", type=int, default=None,
                        help="stop the repeated demo after this many ticks")
    args = parser.parse_args(argv)

    loop = TimerLoop()
    if args.demo == "basic":
        _basic(loop)
        loop.run()
    elif args.demo == "custom":
        _custom(loop)
        loop.run()
    elif args.demo == "repeated":
        _repeated(loop, args.times)
        loop.run()
    else:
        total = 0

        def timeout(cancelled: bool) -> None:
            nonlocal total
            total += 1

        for _ in range(args.count):
            loop.call_later(0.001, timeout)
        loop.run()
        print(total)
    return 0