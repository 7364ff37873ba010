"""Static question bank.

The bank is a read-only collection of multiple-choice questions partitioned by
category. It is loaded once at startup (normally from the bundled
``data/questions.json``) and never mutated afterwards. All record validation
happens here so malformed data fails at load time instead of mid-session.

Bank file format: a JSON object keyed by category name, each value a list of
records::

    {"id": "q1", "question": "...", "options": ["a", "b"], "correct": 0,
     "explanation": "..."}
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from .errors import QuestionBankError

DEFAULT_BANK_PATH = Path(__file__).resolve().parent / "data" / "questions.json"


class Category(StrEnum):
    QUANTITATIVE = "quantitative"
    LOGICAL = "logical"
    VERBAL = "verbal"

    @property
    def display_name(self) -> str:
        return _CATEGORY_TITLES[self]


_CATEGORY_TITLES: dict[Category, str] = {
    Category.QUANTITATIVE: "Quantitative Aptitude",
    Category.LOGICAL: "Logical Reasoning",
    Category.VERBAL: "Verbal Ability",
}


def parse_category(value: object) -> Category:
    try:
        return Category(str(value).strip().lower())
    except ValueError:
        raise QuestionBankError(f"unknown category: {value!r}") from None


def is_index(value: object) -> bool:
    # bool is an int subclass; True/False are never indices.
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    category: Category
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int
    explanation: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise QuestionBankError("question id must be non-empty")
        if len(self.options) < 2:
            raise QuestionBankError(f"question {self.id!r} needs at least 2 options")
        if not self.is_valid_option(self.correct_option_index):
            raise QuestionBankError(
                f"question {self.id!r} correct option {self.correct_option_index} "
                f"is outside 0..{len(self.options) - 1}"
            )

    def is_valid_option(self, option_index: object) -> bool:
        return is_index(option_index) and 0 <= option_index < len(self.options)  # type: ignore[operator]

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_option_index]


class QuestionBank:
    """Immutable pool of questions, indexed by id and by category."""

    def __init__(self, questions: Iterable[Question]) -> None:
        by_id: dict[str, Question] = {}
        pools: dict[Category, list[Question]] = {}
        for q in questions:
            if q.id in by_id:
                raise QuestionBankError(f"duplicate question id: {q.id!r}")
            by_id[q.id] = q
            pools.setdefault(q.category, []).append(q)

        self._by_id = by_id
        self._pools: dict[Category, tuple[Question, ...]] = {c: tuple(qs) for c, qs in pools.items()}

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "QuestionBank":
        if not isinstance(data, Mapping):
            raise QuestionBankError("question bank must be an object keyed by category")

        questions: list[Question] = []
        for raw_category, records in data.items():
            category = parse_category(raw_category)
            if not isinstance(records, list):
                raise QuestionBankError(f"category {category.value!r} must hold a list of questions")
            for record in records:
                questions.append(_question_from_record(category, record))
        return cls(questions)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._by_id.values())

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def categories(self) -> list[Category]:
        return list(self._pools)

    def pool(self, category: Category) -> tuple[Question, ...]:
        return self._pools.get(category, ())

    def count(self, category: Category) -> int:
        return len(self.pool(category))


def _question_from_record(category: Category, record: object) -> Question:
    if not isinstance(record, Mapping):
        raise QuestionBankError(f"question record in {category.value!r} must be an object")

    try:
        qid = str(record["id"])
        prompt = str(record["question"])
        options = record["options"]
        correct = record["correct"]
    except KeyError as e:
        raise QuestionBankError(f"question record in {category.value!r} is missing {e.args[0]!r}") from None

    if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
        raise QuestionBankError(f"question {qid!r} options must be a list of strings")
    if not is_index(correct):
        raise QuestionBankError(f"question {qid!r} correct index must be an integer")

    return Question(
        id=qid,
        category=category,
        prompt=prompt,
        options=tuple(options),
        correct_option_index=correct,
        explanation=str(record.get("explanation", "")),
    )


def load_question_bank(path: Path) -> QuestionBank:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise QuestionBankError(f"cannot read question bank {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise QuestionBankError(f"question bank {path} is not valid JSON: {e}") from e
    return QuestionBank.from_mapping(data)


def load_default_bank() -> QuestionBank:
    """Load the question bank bundled with the package."""

    return load_question_bank(DEFAULT_BANK_PATH)
