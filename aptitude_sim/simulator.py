from __future__ import annotations

import logging
import random

from .clock import Clock, RealClock
from .config import SimulatorConfig, default_db_path
from .countdown import CountdownDriver, DriverStatus
from .persistence import HistoryRecorder, Identity, InMemoryHistoryStore, SqliteHistoryStore
from .question_bank import QuestionBank, load_default_bank
from .results import Result
from .session import AptitudeSession
from .set_builder import build_question_set
from .stats import HistorySummary, summarize

logger = logging.getLogger(__name__)

LOCAL_IDENTITY = Identity(user_id="local", verified=True)

# Seconds between history flush attempts after a failed write.
HISTORY_RETRY_S = 2.0


class Simulator:
    """Owns one session, its countdown and the history recorder.

    The session object is created once and reused across attempts; each
    ``start_test`` builds a fresh question set and a fresh countdown.
    """

    def __init__(
        self,
        *,
        bank: QuestionBank,
        config: SimulatorConfig,
        clock: Clock,
        recorder: HistoryRecorder | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._bank = bank
        self._config = config
        self._clock = clock
        self._rng = rng
        self._recorder = recorder or HistoryRecorder(InMemoryHistoryStore(), LOCAL_IDENTITY)

        self._session = AptitudeSession(
            clock=clock,
            duration_s=config.session_duration_s,
            low_time_warning_s=config.low_time_warning_s,
        )
        self._recorder.attach(self._session)
        self._driver: CountdownDriver | None = None
        self._flush_after_s = 0.0

    @property
    def config(self) -> SimulatorConfig:
        return self._config

    @property
    def session(self) -> AptitudeSession:
        return self._session

    @property
    def recorder(self) -> HistoryRecorder:
        return self._recorder

    def start_test(self) -> AptitudeSession:
        # Raises InsufficientBankSize before the session is touched.
        question_set = build_question_set(self._bank, self._config.quotas, rng=self._rng)

        self._cancel_driver()
        self._session.start(question_set)
        self._driver = CountdownDriver(self._session, clock=self._clock)
        self._driver.start()
        self._flush_after_s = 0.0
        return self._session

    def retake(self) -> AptitudeSession:
        self.end_test()
        return self.start_test()

    def submit(self) -> Result | None:
        result = self._session.submit()
        self._cancel_driver()
        return result

    def end_test(self) -> None:
        self._cancel_driver()
        self._session.reset()

    def pump(self) -> int:
        """Per-frame work: deliver due countdown ticks, then flush history.

        Runs outside every session call, so a slow or locked store never
        delays submit. After a failed flush the next attempt waits
        ``HISTORY_RETRY_S``.
        """

        ticks = 0 if self._driver is None else self._driver.pump()
        self._flush_history()
        return ticks

    def _flush_history(self) -> None:
        if not self._recorder.pending_count:
            return
        now = self._clock.now()
        if now < self._flush_after_s:
            return
        self._recorder.retry_pending()
        if self._recorder.pending_count:
            self._flush_after_s = now + HISTORY_RETRY_S

    def driver_status(self) -> DriverStatus | None:
        return None if self._driver is None else self._driver.status()

    def history(self) -> list[Result]:
        return self._recorder.load()

    def summary(self) -> HistorySummary:
        return summarize(self.history())

    def is_saved(self, result: Result) -> bool:
        return self._recorder.is_saved(result.id)

    def _cancel_driver(self) -> None:
        if self._driver is not None:
            self._driver.cancel()
            self._driver = None


def build_simulator(
    *,
    config: SimulatorConfig | None = None,
    bank: QuestionBank | None = None,
    clock: Clock | None = None,
    identity: Identity = LOCAL_IDENTITY,
) -> Simulator:
    """Production wiring: bundled bank, sqlite history, real clock."""

    cfg = config or SimulatorConfig.from_env()
    db_path = cfg.db_path or default_db_path()
    recorder = HistoryRecorder(SqliteHistoryStore(db_path), identity)
    logger.info("history database: %s", db_path)
    return Simulator(
        bank=bank or load_default_bank(),
        config=cfg,
        clock=clock or RealClock(),
        recorder=recorder,
    )
