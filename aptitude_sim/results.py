from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .clock import utc_now_iso
from .scoring import CategoryScore, ScoreBreakdown


@dataclass(frozen=True, slots=True)
class Result:
    """Persistable summary of one submitted attempt.

    Created once per submission and appended to history; never mutated.
    """

    id: str
    completed_at: str
    score: int
    total_questions: int
    percentage: int
    time_taken_s: int
    category_scores: Mapping[str, CategoryScore]

    started_at: str = ""
    answers: Mapping[str, int] = field(default_factory=dict)
    auto_submitted: bool = False

    def __post_init__(self) -> None:
        # Read-only views over private copies; a stored Result never changes.
        object.__setattr__(self, "category_scores", MappingProxyType(dict(self.category_scores)))
        object.__setattr__(self, "answers", MappingProxyType(dict(self.answers)))

        if self.score != sum(c.correct for c in self.category_scores.values()):
            raise ValueError("score must equal the sum of category correct counts")
        if self.total_questions != sum(c.total for c in self.category_scores.values()):
            raise ValueError("total_questions must equal the sum of category totals")
        if not (0 <= self.percentage <= 100):
            raise ValueError("percentage must be in [0, 100]")
        if self.time_taken_s < 0:
            raise ValueError("time_taken_s must be >= 0")


def build_result(
    breakdown: ScoreBreakdown,
    *,
    time_taken_s: int,
    started_at: str = "",
    answers: Mapping[str, int] | None = None,
    auto_submitted: bool = False,
    result_id: str | None = None,
    completed_at: str | None = None,
) -> Result:
    """Build a Result from a score breakdown and session timing."""

    return Result(
        id=result_id or uuid.uuid4().hex,
        completed_at=completed_at or utc_now_iso(),
        score=int(breakdown.score),
        total_questions=int(breakdown.total_questions),
        percentage=int(breakdown.percentage),
        time_taken_s=int(time_taken_s),
        category_scores=breakdown.category_scores,
        started_at=str(started_at),
        answers=answers or {},
        auto_submitted=bool(auto_submitted),
    )
