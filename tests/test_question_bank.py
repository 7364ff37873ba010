from __future__ import annotations

import json
from pathlib import Path

import pytest

from aptitude_sim.errors import QuestionBankError
from aptitude_sim.question_bank import (
    Category,
    Question,
    QuestionBank,
    load_default_bank,
    load_question_bank,
)


def _record(qid: str, correct: int = 0, options: list[str] | None = None) -> dict[str, object]:
    return {"id": qid, "question": f"Prompt {qid}", "options": options or ["a", "b", "c", "d"], "correct": correct}


def test_default_bank_covers_default_quotas() -> None:
    bank = load_default_bank()
    assert bank.count(Category.QUANTITATIVE) >= 15
    assert bank.count(Category.LOGICAL) >= 8
    assert bank.count(Category.VERBAL) >= 2
    for q in bank:
        assert 0 <= q.correct_option_index < len(q.options)


def test_from_mapping_partitions_by_category() -> None:
    bank = QuestionBank.from_mapping(
        {
            "quantitative": [_record("q1"), _record("q2", correct=3)],
            "Logical": [_record("l1", correct=1)],
        }
    )
    assert len(bank) == 3
    assert [q.id for q in bank.pool(Category.QUANTITATIVE)] == ["q1", "q2"]
    assert bank.count(Category.LOGICAL) == 1
    assert bank.count(Category.VERBAL) == 0
    assert bank.pool(Category.VERBAL) == ()
    assert "l1" in bank
    q2 = bank.get("q2")
    assert q2 is not None and q2.correct_option == "d"


def test_duplicate_ids_rejected() -> None:
    with pytest.raises(QuestionBankError, match="duplicate"):
        QuestionBank.from_mapping({"quantitative": [_record("x")], "verbal": [_record("x")]})


@pytest.mark.parametrize(
    "record",
    [
        {"id": "bad", "question": "?", "options": ["only"], "correct": 0},
        {"id": "bad", "question": "?", "options": ["a", "b"], "correct": 2},
        {"id": "bad", "question": "?", "options": ["a", "b"], "correct": -1},
        {"id": "bad", "question": "?", "options": ["a", "b"], "correct": True},
        {"id": "bad", "question": "?", "options": ["a", "b"], "correct": 1.0},
        {"id": "bad", "question": "?", "options": "ab", "correct": 0},
        {"id": "bad", "options": ["a", "b"], "correct": 0},
    ],
)
def test_malformed_records_fail_at_load(record: dict[str, object]) -> None:
    with pytest.raises(QuestionBankError):
        QuestionBank.from_mapping({"logical": [record]})


def test_unknown_category_rejected() -> None:
    with pytest.raises(QuestionBankError, match="unknown category"):
        QuestionBank.from_mapping({"spatial": [_record("s1")]})


def test_question_validates_correct_index() -> None:
    with pytest.raises(QuestionBankError):
        Question(id="q", category=Category.VERBAL, prompt="?", options=("a", "b"), correct_option_index=5)


@pytest.mark.parametrize("index", [1.0, 0.5, True, "1", None, -1, 2])
def test_is_valid_option_only_accepts_in_range_ints(index: object) -> None:
    q = Question(id="q", category=Category.VERBAL, prompt="?", options=("a", "b"), correct_option_index=1)
    assert q.is_valid_option(index) is False
    assert q.is_valid_option(0) is True
    assert q.is_valid_option(1) is True


def test_load_question_bank_from_file(tmp_path: Path) -> None:
    path = tmp_path / "bank.json"
    path.write_text(json.dumps({"verbal": [_record("v1", correct=1)]}), encoding="utf-8")
    bank = load_question_bank(path)
    assert bank.categories() == [Category.VERBAL]


def test_load_question_bank_bad_json(tmp_path: Path) -> None:
    path = tmp_path / "bank.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(QuestionBankError, match="not valid JSON"):
        load_question_bank(path)


def test_load_question_bank_missing_file(tmp_path: Path) -> None:
    with pytest.raises(QuestionBankError, match="cannot read"):
        load_question_bank(tmp_path / "missing.json")
