from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Session and countdown logic depend on this interface rather than calling
    real time directly, so tests can drive time with a fake clock.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


def utc_now_iso() -> str:
    """Wall-clock timestamp for records (started/completed at)."""

    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))
