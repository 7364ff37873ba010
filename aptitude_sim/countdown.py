"""Cooperative countdown for an active session.

The driver never runs on its own thread. The host loop (the pygame frame
loop, or ``run_until_submitted`` for headless use) calls :meth:`pump`, which
compares the injected clock against the next due time and delivers one
``tick()`` per elapsed interval, catching up if the loop was late. Once the
session leaves ACTIVE (submit, timer expiry, reset) the driver cancels itself
and delivers nothing further.

A tick that raises is logged and retried one interval later; the owed
seconds are delivered then. After ``stall_threshold`` consecutive failures
``status().stalled`` turns on so presentation can warn the user.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from .clock import Clock
from .errors import InvalidStateTransition
from .session import AptitudeSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DriverStatus:
    running: bool
    stalled: bool
    consecutive_failures: int
    ticks_delivered: int


class CountdownDriver:
    def __init__(
        self,
        session: AptitudeSession,
        *,
        clock: Clock,
        interval_s: float = 1.0,
        stall_threshold: int = 3,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        if stall_threshold < 1:
            raise ValueError("stall_threshold must be >= 1")

        self._session = session
        self._clock = clock
        self._interval_s = float(interval_s)
        self._stall_threshold = int(stall_threshold)
        self._lock = threading.RLock()

        self._running = False
        self._next_due_s: float | None = None
        self._retry_at_s: float | None = None
        self._failures = 0
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    def status(self) -> DriverStatus:
        return DriverStatus(
            running=self._running,
            stalled=self._failures >= self._stall_threshold,
            consecutive_failures=self._failures,
            ticks_delivered=self._ticks,
        )

    def start(self) -> None:
        with self._lock:
            if not self._session.is_active:
                raise InvalidStateTransition("start_countdown", self._session.phase.value)
            self._running = True
            self._next_due_s = self._clock.now() + self._interval_s
            self._retry_at_s = None
            self._failures = 0
            self._ticks = 0

    def cancel(self) -> None:
        """Stop the countdown. Blocks until an in-flight pump finishes."""

        with self._lock:
            self._running = False
            self._next_due_s = None
            self._retry_at_s = None

    def seconds_until_next_tick(self) -> float | None:
        with self._lock:
            if not self._running or self._next_due_s is None:
                return None
            due = self._next_due_s if self._retry_at_s is None else max(self._next_due_s, self._retry_at_s)
            return max(0.0, due - self._clock.now())

    def pump(self) -> int:
        """Deliver every tick that has come due. Returns how many landed."""

        with self._lock:
            if not self._running:
                return 0
            if not self._session.is_active:
                self.cancel()
                return 0

            now = self._clock.now()
            if self._retry_at_s is not None:
                if now < self._retry_at_s:
                    return 0
                self._retry_at_s = None

            delivered = 0
            while self._running and self._next_due_s is not None and now >= self._next_due_s:
                try:
                    self._session.tick()
                except InvalidStateTransition:
                    # Session was submitted or reset between frames.
                    self.cancel()
                    break
                except Exception:
                    self._failures += 1
                    self._retry_at_s = now + self._interval_s
                    if self._failures >= self._stall_threshold:
                        logger.error("countdown stalled after %d failed ticks", self._failures, exc_info=True)
                    else:
                        logger.warning("countdown tick failed, retrying next interval", exc_info=True)
                    break

                self._next_due_s += self._interval_s
                self._failures = 0
                self._ticks += 1
                delivered += 1
                if not self._session.is_active:
                    self.cancel()

            return delivered


def run_until_submitted(
    driver: CountdownDriver,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_tick: Callable[[], None] | None = None,
) -> None:
    """Block, pumping the driver, until it stops (submission or cancel)."""

    while driver.running:
        wait = driver.seconds_until_next_tick()
        if wait is None:
            break
        if wait > 0:
            sleep(wait)
        if driver.pump() and on_tick is not None:
            on_tick()
