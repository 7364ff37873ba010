"""Summary statistics over attempt history.

All functions are pure and accept an ordered sequence of Results (oldest
first). Every one of them returns a defined value for an empty history: 0 for
numbers, an empty container otherwise.

Averages use each Result's stored ``percentage`` rather than recomputing from
raw counts, so a report always matches what the attempt originally showed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .results import Result
from .scoring import round_half_up


def average_percentage(history: Sequence[Result]) -> int:
    if not history:
        return 0
    return round_half_up(sum(r.percentage for r in history) / len(history))


def best_percentage(history: Sequence[Result]) -> int:
    if not history:
        return 0
    return max(r.percentage for r in history)


def average_time_taken(history: Sequence[Result]) -> int:
    if not history:
        return 0
    return round_half_up(sum(r.time_taken_s for r in history) / len(history))


def score_trend(history: Sequence[Result]) -> list[int]:
    return [r.percentage for r in history]


def latest_category_breakdown(history: Sequence[Result]) -> dict[str, int]:
    """Per-category percentage from the most recent attempt covering it."""

    latest: dict[str, int] = {}
    for r in history:
        for name, cs in r.category_scores.items():
            if cs.total > 0:
                latest[name] = cs.percentage
    return latest


@dataclass(frozen=True, slots=True)
class HistorySummary:
    tests_taken: int
    average_percentage: int
    best_percentage: int
    average_time_taken_s: int
    trend: list[int]
    latest_categories: dict[str, int]

    @property
    def has_data(self) -> bool:
        return self.tests_taken > 0


def summarize(history: Sequence[Result]) -> HistorySummary:
    return HistorySummary(
        tests_taken=len(history),
        average_percentage=average_percentage(history),
        best_percentage=best_percentage(history),
        average_time_taken_s=average_time_taken(history),
        trend=score_trend(history),
        latest_categories=latest_category_breakdown(history),
    )
