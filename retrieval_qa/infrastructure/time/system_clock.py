"""System clock adapter used for retry back-off sleeps.

This is the production implementation of ClockPort.
For tests, inject FakeClock or similar test doubles.
"""

from __future__ import annotations

import time

from ...application.ports.clock_port import ClockPort


class SystemClock(ClockPort):
    """Production clock adapter backed by ``time.sleep``."""

    def sleep(self, seconds: float) -> None:  # pragma: no cover - trivial
        time.sleep(seconds)
