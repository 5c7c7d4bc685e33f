"""Time sources for the transport."""

import time


class MonotonicClock:
    """Wall clock in seconds, unaffected by system time changes."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to; used offline and in tests."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def set(self, value: float) -> None:
        self._now = float(value)

    def advance(self, seconds: float) -> float:
        self._now += seconds
        return self._now
