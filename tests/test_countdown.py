from __future__ import annotations

from dataclasses import dataclass

import pytest

from aptitude_sim.countdown import CountdownDriver, run_until_submitted
from aptitude_sim.errors import InvalidStateTransition
from aptitude_sim.question_bank import Category, Question
from aptitude_sim.results import Result
from aptitude_sim.session import AptitudeSession, SessionPhase
from aptitude_sim.set_builder import QuestionSet


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


class FlakySession(AptitudeSession):
    """Session whose tick() raises while ``failing`` is set."""

    failing = False

    def tick(self) -> int:
        if self.failing:
            raise RuntimeError("tick failed")
        return super().tick()


def _question_set() -> QuestionSet:
    return QuestionSet(
        questions=(
            Question(id="q1", category=Category.QUANTITATIVE, prompt="1", options=("a", "b"), correct_option_index=0),
            Question(id="v1", category=Category.VERBAL, prompt="2", options=("a", "b"), correct_option_index=1),
        )
    )


def _setup(duration_s: int = 1500, session_cls: type[AptitudeSession] = AptitudeSession):
    clock = FakeClock()
    results: list[Result] = []
    session = session_cls(clock=clock, duration_s=duration_s, on_result=results.append)
    session.start(_question_set())
    driver = CountdownDriver(session, clock=clock)
    driver.start()
    return clock, session, driver, results


def test_start_requires_active_session() -> None:
    clock = FakeClock()
    session = AptitudeSession(clock=clock)
    driver = CountdownDriver(session, clock=clock)
    with pytest.raises(InvalidStateTransition):
        driver.start()
    assert driver.running is False


def test_one_tick_per_elapsed_second() -> None:
    clock, session, driver, _ = _setup()
    assert driver.seconds_until_next_tick() == pytest.approx(1.0)

    clock.advance(0.5)
    assert driver.pump() == 0
    assert session.remaining_s == 1500

    clock.advance(0.5)
    assert driver.pump() == 1
    assert session.remaining_s == 1499

    # Repeated pumps within the same second deliver nothing.
    assert driver.pump() == 0
    assert driver.seconds_until_next_tick() == pytest.approx(1.0)


def test_late_frames_catch_up() -> None:
    clock, session, driver, _ = _setup()
    clock.advance(3.2)
    assert driver.pump() == 3
    assert session.remaining_s == 1497
    assert driver.status().ticks_delivered == 3


def test_expiry_auto_submits_once_and_stops() -> None:
    clock, session, driver, results = _setup(duration_s=5)
    clock.advance(60.0)
    assert driver.pump() == 5
    assert session.phase is SessionPhase.SUBMITTED
    assert session.remaining_s == 0
    assert driver.running is False
    assert len(results) == 1
    assert results[0].auto_submitted is True

    clock.advance(10.0)
    assert driver.pump() == 0
    assert len(results) == 1


def test_cancel_stops_ticks_immediately() -> None:
    clock, session, driver, _ = _setup()
    clock.advance(2.0)
    driver.pump()
    driver.cancel()
    clock.advance(30.0)
    assert driver.pump() == 0
    assert session.remaining_s == 1498
    assert driver.seconds_until_next_tick() is None


def test_manual_submit_then_timer_yields_one_result() -> None:
    clock, session, driver, results = _setup(duration_s=3)
    clock.advance(2.0)
    driver.pump()
    session.submit()
    clock.advance(5.0)
    assert driver.pump() == 0
    assert driver.running is False
    assert len(results) == 1
    assert results[0].auto_submitted is False
    assert results[0].time_taken_s == 2


def test_reset_stops_driver() -> None:
    clock, session, driver, results = _setup()
    session.reset()
    clock.advance(5.0)
    assert driver.pump() == 0
    assert driver.running is False
    assert results == []


def test_failed_tick_is_retried_next_interval() -> None:
    clock, session, driver, _ = _setup(session_cls=FlakySession)
    assert isinstance(session, FlakySession)

    session.failing = True
    clock.advance(1.0)
    assert driver.pump() == 0
    status = driver.status()
    assert status.running is True
    assert status.consecutive_failures == 1
    assert status.stalled is False

    session.failing = False
    clock.advance(0.5)
    assert driver.pump() == 0  # waits for the retry interval

    clock.advance(0.5)
    # The owed second and the current one both land.
    assert driver.pump() == 2
    assert session.remaining_s == 1498
    assert driver.status().consecutive_failures == 0


def test_repeated_failures_raise_stall_signal_then_recover() -> None:
    clock, session, driver, _ = _setup(session_cls=FlakySession)
    assert isinstance(session, FlakySession)

    session.failing = True
    for _ in range(3):
        clock.advance(1.0)
        driver.pump()
    status = driver.status()
    assert status.stalled is True
    assert status.running is True
    assert session.remaining_s == 1500

    session.failing = False
    clock.advance(1.0)
    assert driver.pump() == 4
    assert driver.status().stalled is False
    assert session.remaining_s == 1496


def test_run_until_submitted_blocks_until_expiry() -> None:
    clock, session, driver, results = _setup(duration_s=3)
    ticks: list[int] = []

    run_until_submitted(driver, sleep=clock.advance, on_tick=lambda: ticks.append(session.remaining_s))

    assert session.phase is SessionPhase.SUBMITTED
    assert len(results) == 1
    assert ticks == [2, 1, 0]
    assert clock.t == pytest.approx(3.0)


@pytest.mark.parametrize(("interval", "threshold"), [(0.0, 3), (-1.0, 3), (1.0, 0)])
def test_invalid_driver_arguments(interval: float, threshold: int) -> None:
    clock = FakeClock()
    session = AptitudeSession(clock=clock)
    with pytest.raises(ValueError):
        CountdownDriver(session, clock=clock, interval_s=interval, stall_threshold=threshold)
