from __future__ import annotations

import random
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TypeVar

from .config import validate_quotas
from .errors import InsufficientBankSize
from .question_bank import Category, Question, QuestionBank

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class QuestionSet:
    """Ordered questions selected for one attempt."""

    questions: tuple[Question, ...]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for q in self.questions:
            if q.id in seen:
                raise ValueError(f"duplicate question id in set: {q.id!r}")
            seen.add(q.id)

    def __len__(self) -> int:
        return len(self.questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self.questions)

    def __getitem__(self, index: int) -> Question:
        return self.questions[index]

    def ids(self) -> list[str]:
        return [q.id for q in self.questions]

    def get(self, question_id: str) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def index_of(self, question_id: str) -> int | None:
        for i, q in enumerate(self.questions):
            if q.id == question_id:
                return i
        return None

    def category_counts(self) -> dict[Category, int]:
        counts: dict[Category, int] = {}
        for q in self.questions:
            counts[q.category] = counts.get(q.category, 0) + 1
        return counts


def shuffled(items: Sequence[T], rng: random.Random) -> list[T]:
    """Fisher-Yates shuffle into a new list; ``items`` is left untouched."""

    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randrange(i + 1)
        out[i], out[j] = out[j], out[i]
    return out


def build_question_set(
    bank: QuestionBank,
    quotas: Mapping[Category, int],
    *,
    rng: random.Random | None = None,
) -> QuestionSet:
    """Draw ``quotas[category]`` questions per category, then mix the sections.

    Each call without an explicit ``rng`` uses a fresh generator, so repeated
    builds are independent. Raises ``InsufficientBankSize`` before drawing
    anything if any category pool is too small.
    """

    validate_quotas(quotas)
    r = rng if rng is not None else random.Random()

    for category, required in quotas.items():
        available = bank.count(category)
        if available < required:
            raise InsufficientBankSize(category.value, required=required, available=available)

    selected: list[Question] = []
    for category, required in quotas.items():
        if required == 0:
            continue
        selected.extend(shuffled(bank.pool(category), r)[:required])

    # Second, independent permutation so section order is not positional.
    return QuestionSet(questions=tuple(shuffled(selected, r)))
