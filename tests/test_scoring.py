from __future__ import annotations

import pytest

from aptitude_sim.errors import EmptyQuestionSet
from aptitude_sim.question_bank import Category, Question
from aptitude_sim.scoring import (
    format_time,
    percent_of,
    performance_level,
    review_answers,
    round_half_up,
    score_answers,
)
from aptitude_sim.set_builder import QuestionSet


def _q(qid: str, correct: int, category: Category = Category.QUANTITATIVE) -> Question:
    return Question(id=qid, category=category, prompt=qid, options=("a", "b", "c", "d"), correct_option_index=correct)


def test_three_question_example() -> None:
    qs = QuestionSet(questions=(_q("q1", 0), _q("q2", 1), _q("q3", 2)))
    s = score_answers({"q1": 0, "q2": 1, "q3": 0}, qs)
    assert s.score == 2
    assert s.total_questions == 3
    assert s.percentage == 67
    assert s.category_scores["quantitative"].correct == 2
    assert s.category_scores["quantitative"].total == 3


def test_unanswered_counts_as_incorrect() -> None:
    qs = QuestionSet(questions=(_q("q1", 0), _q("q2", 1), _q("q3", 2)))
    assert score_answers({}, qs).score == 0
    assert score_answers({"q2": 1}, qs).score == 1
    # Answers for questions outside the set are ignored.
    assert score_answers({"zzz": 0, "q3": 2}, qs).score == 1


def test_category_breakdown_sums_to_totals() -> None:
    qs = QuestionSet(
        questions=(
            _q("q1", 0),
            _q("l1", 1, Category.LOGICAL),
            _q("l2", 2, Category.LOGICAL),
            _q("v1", 3, Category.VERBAL),
        )
    )
    s = score_answers({"q1": 1, "l1": 1, "l2": 2, "v1": 3}, qs)
    assert s.score == 3
    assert {k: (v.correct, v.total) for k, v in s.category_scores.items()} == {
        "quantitative": (0, 1),
        "logical": (2, 2),
        "verbal": (1, 1),
    }
    assert s.score == sum(v.correct for v in s.category_scores.values())
    assert s.total_questions == sum(v.total for v in s.category_scores.values())
    assert s.percentage == 75


def test_empty_set_raises() -> None:
    with pytest.raises(EmptyQuestionSet):
        score_answers({}, QuestionSet(questions=()))


@pytest.mark.parametrize(
    ("correct", "total", "expected"),
    [(0, 25, 0), (1, 8, 13), (1, 200, 1), (1, 3, 33), (2, 3, 67), (20, 25, 80), (1, 40, 3), (25, 25, 100), (3, 0, 0)],
)
def test_percent_of_rounds_half_up(correct: int, total: int, expected: int) -> None:
    assert percent_of(correct, total) == expected


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(66.4) == 66
    assert round_half_up(0.5) == 1


@pytest.mark.parametrize(
    ("pct", "label"),
    [(100, "Excellent"), (90, "Excellent"), (89, "Very Good"), (80, "Very Good"), (70, "Good"), (60, "Average"), (59, "Needs Improvement"), (0, "Needs Improvement")],
)
def test_performance_level(pct: int, label: str) -> None:
    assert performance_level(pct).label == label


def test_format_time() -> None:
    assert format_time(1500) == "25:00"
    assert format_time(299) == "04:59"
    assert format_time(0) == "00:00"
    assert format_time(-3) == "00:00"
    assert format_time(3725) == "62:05"


def test_review_answers() -> None:
    qs = QuestionSet(questions=(_q("q1", 0), _q("q2", 1)))
    reviews = review_answers({"q1": 0}, qs)
    assert [(r.question_id, r.chosen_index, r.is_correct) for r in reviews] == [("q1", 0, True), ("q2", None, False)]
    assert reviews[1].correct_index == 1
