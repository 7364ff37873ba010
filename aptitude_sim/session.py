"""Session state machine for one timed attempt.

Lifecycle::

    IDLE --start--> ACTIVE --submit / timer expiry--> SUBMITTED
      ^                |                                  |
      +-----reset------+------------reset-----------------+

``start`` is also accepted from SUBMITTED (retake). Every mutation goes
through the methods below and is serialised by a single lock, so a tick from
the countdown driver and a user intent cannot interleave. Calling an
ACTIVE-only operation from another phase raises ``InvalidStateTransition``;
navigation targets and answer indices that are not in-range integers are
rejected: the call returns False and nothing changes.

The session has no knowledge of storage. Submitting emits the Result to the
registered listeners (the history recorder subscribes there).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .clock import Clock, utc_now_iso
from .config import DEFAULT_LOW_TIME_WARNING_S, DEFAULT_SESSION_DURATION_S
from .errors import EmptyQuestionSet, InvalidStateTransition
from .question_bank import Question, is_index
from .results import Result, build_result
from .scoring import format_time, score_answers
from .set_builder import QuestionSet

logger = logging.getLogger(__name__)

ResultListener = Callable[[Result], None]


class SessionPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    SUBMITTED = "submitted"


class SubmitReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class QuestionState:
    index: int
    question_id: str
    answered: bool
    marked: bool
    current: bool


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for presentation (pure data)."""

    phase: SessionPhase
    question: Question | None
    current_index: int
    total_questions: int
    selected_option: int | None
    is_marked: bool
    answered_count: int
    marked_count: int
    remaining_s: int
    time_text: str
    low_time: bool
    question_states: tuple[QuestionState, ...]
    result: Result | None = None


class AptitudeSession:
    def __init__(
        self,
        *,
        clock: Clock,
        duration_s: int = DEFAULT_SESSION_DURATION_S,
        low_time_warning_s: int = DEFAULT_LOW_TIME_WARNING_S,
        on_result: ResultListener | None = None,
    ) -> None:
        if duration_s <= 0:
            raise ValueError("duration_s must be > 0")

        self._clock = clock
        self._duration_s = int(duration_s)
        self._low_time_warning_s = int(low_time_warning_s)
        self._lock = threading.RLock()
        self._listeners: list[ResultListener] = []
        if on_result is not None:
            self._listeners.append(on_result)

        self._phase = SessionPhase.IDLE
        self._question_set: QuestionSet | None = None
        self._current_index = 0
        self._answers: dict[str, int] = {}
        self._marked: set[str] = set()
        self._remaining_s = self._duration_s
        self._started_at: str | None = None
        self._started_at_s: float | None = None
        self._result: Result | None = None

    # -- read-only accessors ------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_active(self) -> bool:
        return self._phase is SessionPhase.ACTIVE

    @property
    def duration_s(self) -> int:
        return self._duration_s

    @property
    def question_set(self) -> QuestionSet | None:
        return self._question_set

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question | None:
        if self._question_set is None:
            return None
        return self._question_set[self._current_index]

    @property
    def answers(self) -> dict[str, int]:
        with self._lock:
            return dict(self._answers)

    @property
    def marked_ids(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._marked)

    @property
    def remaining_s(self) -> int:
        return self._remaining_s

    @property
    def started_at(self) -> str | None:
        return self._started_at

    @property
    def result(self) -> Result | None:
        return self._result

    @property
    def answered_count(self) -> int:
        return len(self._answers)

    @property
    def marked_count(self) -> int:
        return len(self._marked)

    def elapsed_s(self) -> float:
        """Monotonic seconds since start (0 when idle)."""

        if self._started_at_s is None:
            return 0.0
        return max(0.0, self._clock.now() - self._started_at_s)

    def add_result_listener(self, listener: ResultListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_result_listener(self, listener: ResultListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # -- transitions ----------------------------------------------------------

    def start(self, question_set: QuestionSet) -> None:
        with self._lock:
            if self._phase is SessionPhase.ACTIVE:
                raise InvalidStateTransition("start", self._phase.value)
            if len(question_set) == 0:
                raise EmptyQuestionSet("cannot start a session with no questions")

            self._question_set = question_set
            self._current_index = 0
            self._answers = {}
            self._marked = set()
            self._remaining_s = self._duration_s
            self._started_at = utc_now_iso()
            self._started_at_s = self._clock.now()
            self._result = None
            self._phase = SessionPhase.ACTIVE
        logger.info("session started: %d questions, %ds", len(question_set), self._duration_s)

    def select_answer(self, question_id: str, option_index: int) -> bool:
        """Record an answer. Returns False (and stores nothing) for an unknown
        question or an option index that is not an integer within the
        question's options."""

        with self._lock:
            qs = self._require_active("select_answer")
            question = qs.get(question_id)
            if question is None or not question.is_valid_option(option_index):
                logger.debug("ignoring answer %r for question %r", option_index, question_id)
                return False
            self._answers[question_id] = option_index
            return True

    def select_current(self, option_index: int) -> bool:
        with self._lock:
            qs = self._require_active("select_current")
            return self.select_answer(qs[self._current_index].id, option_index)

    def clear_answer(self, question_id: str) -> bool:
        with self._lock:
            self._require_active("clear_answer")
            return self._answers.pop(question_id, None) is not None

    def navigate(self, to_index: int) -> bool:
        with self._lock:
            qs = self._require_active("navigate")
            if not is_index(to_index) or not (0 <= to_index < len(qs)):
                return False
            self._current_index = to_index
            return True

    def next_question(self) -> bool:
        with self._lock:
            self._require_active("next_question")
            return self.navigate(self._current_index + 1)

    def previous_question(self) -> bool:
        with self._lock:
            self._require_active("previous_question")
            return self.navigate(self._current_index - 1)

    def toggle_mark(self, question_id: str) -> bool:
        """Flip the review flag; returns the new marked state."""

        with self._lock:
            qs = self._require_active("toggle_mark")
            if qs.get(question_id) is None:
                return False
            if question_id in self._marked:
                self._marked.discard(question_id)
                return False
            self._marked.add(question_id)
            return True

    def tick(self) -> int:
        """Advance the clock by one second. Reaching zero auto-submits once."""

        with self._lock:
            self._require_active("tick")
            self._remaining_s = max(0, self._remaining_s - 1)
            if self._remaining_s == 0:
                logger.info("time expired, auto-submitting")
                self.submit(reason=SubmitReason.TIMEOUT)
            return self._remaining_s

    def submit(self, reason: SubmitReason = SubmitReason.MANUAL) -> Result | None:
        """Score and close the attempt.

        The first call wins: once SUBMITTED, further calls return None
        without producing another Result, so a timer expiry racing a manual
        submit yields exactly one Result.
        """

        with self._lock:
            if self._phase is SessionPhase.SUBMITTED:
                return None
            qs = self._require_active("submit")

            breakdown = score_answers(self._answers, qs)
            result = build_result(
                breakdown,
                time_taken_s=self._duration_s - self._remaining_s,
                started_at=self._started_at or "",
                answers=self._answers,
                auto_submitted=reason is SubmitReason.TIMEOUT,
            )
            self._result = result
            self._phase = SessionPhase.SUBMITTED
            listeners = list(self._listeners)

        logger.info(
            "session submitted (%s): %d/%d (%d%%) in %ds",
            reason.value,
            result.score,
            result.total_questions,
            result.percentage,
            result.time_taken_s,
        )
        for listener in listeners:
            try:
                listener(result)
            except Exception:
                logger.exception("result listener %r failed", listener)
        return result

    def reset(self) -> None:
        with self._lock:
            self._phase = SessionPhase.IDLE
            self._question_set = None
            self._current_index = 0
            self._answers = {}
            self._marked = set()
            self._remaining_s = self._duration_s
            self._started_at = None
            self._started_at_s = None
            self._result = None
        logger.debug("session reset")

    # -- presentation -----------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            qs = self._question_set
            question = None if qs is None else qs[self._current_index]
            states: tuple[QuestionState, ...] = ()
            if qs is not None:
                states = tuple(
                    QuestionState(
                        index=i,
                        question_id=q.id,
                        answered=q.id in self._answers,
                        marked=q.id in self._marked,
                        current=i == self._current_index,
                    )
                    for i, q in enumerate(qs)
                )
            return SessionSnapshot(
                phase=self._phase,
                question=question,
                current_index=self._current_index,
                total_questions=0 if qs is None else len(qs),
                selected_option=None if question is None else self._answers.get(question.id),
                is_marked=question is not None and question.id in self._marked,
                answered_count=len(self._answers),
                marked_count=len(self._marked),
                remaining_s=self._remaining_s,
                time_text=format_time(self._remaining_s),
                low_time=self._phase is SessionPhase.ACTIVE and self._remaining_s < self._low_time_warning_s,
                question_states=states,
                result=self._result,
            )

    def _require_active(self, operation: str) -> QuestionSet:
        if self._phase is not SessionPhase.ACTIVE or self._question_set is None:
            raise InvalidStateTransition(operation, self._phase.value)
        return self._question_set
