"""Pure scoring for a finished attempt.

Nothing here touches the clock, the session or storage: the scorer takes the
answer map and the question set that was used and returns counts. Unanswered
questions are simply incorrect.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import EmptyQuestionSet
from .set_builder import QuestionSet


def round_half_up(x: float) -> int:
    # For consistent educational-style rounding (0.5 always rounds up).
    return int(math.floor(x + 0.5))


def percent_of(correct: int, total: int) -> int:
    """``round_half_up(100 * correct / total)`` in exact integer arithmetic."""

    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


@dataclass(frozen=True, slots=True)
class CategoryScore:
    correct: int
    total: int

    @property
    def percentage(self) -> int:
        return percent_of(self.correct, self.total)


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    score: int
    total_questions: int
    percentage: int
    category_scores: dict[str, CategoryScore]


def score_answers(answers: Mapping[str, int], question_set: QuestionSet) -> ScoreBreakdown:
    """Score ``answers`` (question id -> option index) against ``question_set``.

    Raises ``EmptyQuestionSet`` for an empty set rather than reporting 0%.
    """

    if len(question_set) == 0:
        raise EmptyQuestionSet("cannot score an empty question set")

    correct = 0
    buckets: dict[str, list[int]] = {}
    for q in question_set:
        bucket = buckets.setdefault(q.category.value, [0, 0])
        bucket[1] += 1
        if answers.get(q.id) == q.correct_option_index:
            bucket[0] += 1
            correct += 1

    total = len(question_set)
    return ScoreBreakdown(
        score=correct,
        total_questions=total,
        percentage=percent_of(correct, total),
        category_scores={name: CategoryScore(correct=c, total=t) for name, (c, t) in buckets.items()},
    )


@dataclass(frozen=True, slots=True)
class AnswerReview:
    index: int
    question_id: str
    category: str
    prompt: str
    options: tuple[str, ...]
    chosen_index: int | None
    correct_index: int
    is_correct: bool
    explanation: str = ""


def review_answers(answers: Mapping[str, int], question_set: QuestionSet) -> list[AnswerReview]:
    """Per-question breakdown for the post-test review screen."""

    out: list[AnswerReview] = []
    for i, q in enumerate(question_set):
        chosen = answers.get(q.id)
        out.append(
            AnswerReview(
                index=i,
                question_id=q.id,
                category=q.category.value,
                prompt=q.prompt,
                options=q.options,
                chosen_index=chosen,
                correct_index=q.correct_option_index,
                is_correct=chosen == q.correct_option_index,
                explanation=q.explanation,
            )
        )
    return out


@dataclass(frozen=True, slots=True)
class PerformanceLevel:
    label: str
    min_percentage: int


PERFORMANCE_LEVELS: tuple[PerformanceLevel, ...] = (
    PerformanceLevel("Excellent", 90),
    PerformanceLevel("Very Good", 80),
    PerformanceLevel("Good", 70),
    PerformanceLevel("Average", 60),
    PerformanceLevel("Needs Improvement", 0),
)


def performance_level(percentage: int) -> PerformanceLevel:
    for level in PERFORMANCE_LEVELS:
        if percentage >= level.min_percentage:
            return level
    return PERFORMANCE_LEVELS[-1]


def format_time(seconds: int) -> str:
    """MM:SS, minutes not wrapped at 60."""

    s = max(0, int(seconds))
    return f"{s // 60:02d}:{s % 60:02d}"
