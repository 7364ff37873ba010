from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError, QuestionBankError
from .question_bank import Category, parse_category

DB_PATH_ENV = "APTITUDE_DB_PATH"
SESSION_DURATION_ENV = "APTITUDE_SESSION_DURATION_S"
QUOTAS_ENV = "APTITUDE_QUOTAS"
LOW_TIME_WARNING_ENV = "APTITUDE_LOW_TIME_WARNING_S"

DEFAULT_SESSION_DURATION_S = 25 * 60
DEFAULT_LOW_TIME_WARNING_S = 5 * 60


def default_quotas() -> dict[Category, int]:
    # 25-question paper: 15 quantitative, 8 logical, 2 verbal.
    return {Category.QUANTITATIVE: 15, Category.LOGICAL: 8, Category.VERBAL: 2}


def default_db_path() -> Path:
    override = os.environ.get(DB_PATH_ENV, "").strip()
    if override:
        return Path(override)
    return Path.home() / ".aptitude_sim" / "history.sqlite3"


@dataclass(frozen=True, slots=True)
class SimulatorConfig:
    session_duration_s: int = DEFAULT_SESSION_DURATION_S
    quotas: Mapping[Category, int] = field(default_factory=default_quotas)
    # Presentation-only; the session never enforces it.
    low_time_warning_s: int = DEFAULT_LOW_TIME_WARNING_S
    db_path: Path | None = None

    def __post_init__(self) -> None:
        if isinstance(self.session_duration_s, bool) or not isinstance(self.session_duration_s, int):
            raise ConfigError("session_duration_s must be an integer")
        if self.session_duration_s <= 0:
            raise ConfigError("session_duration_s must be > 0")
        if self.low_time_warning_s < 0:
            raise ConfigError("low_time_warning_s must be >= 0")
        validate_quotas(self.quotas)

    @property
    def total_questions(self) -> int:
        return sum(self.quotas.values())

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SimulatorConfig":
        env = os.environ if environ is None else environ
        defaults = cls()

        duration = _int_from_env(env, SESSION_DURATION_ENV, defaults.session_duration_s)
        warning = _int_from_env(env, LOW_TIME_WARNING_ENV, defaults.low_time_warning_s)
        raw_quotas = env.get(QUOTAS_ENV, "").strip()
        quotas = parse_quotas(raw_quotas) if raw_quotas else default_quotas()
        raw_db = env.get(DB_PATH_ENV, "").strip()

        return cls(
            session_duration_s=duration,
            quotas=quotas,
            low_time_warning_s=warning,
            db_path=Path(raw_db) if raw_db else None,
        )


def validate_quotas(quotas: Mapping[Category, int]) -> None:
    if not quotas:
        raise ConfigError("quotas must name at least one category")
    for category, count in quotas.items():
        if not isinstance(category, Category):
            raise ConfigError(f"unknown quota category: {category!r}")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ConfigError(f"quota for {category.value!r} must be a non-negative integer")
    if sum(quotas.values()) <= 0:
        raise ConfigError("quotas must sum to more than zero")


def parse_quotas(text: str) -> dict[Category, int]:
    """Parse ``"quantitative=15,logical=8,verbal=2"``."""

    quotas: dict[Category, int] = {}
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, value = part.partition("=")
        if not sep:
            raise ConfigError(f"quota entry {part!r} must look like category=count")
        try:
            category = parse_category(name)
        except QuestionBankError as e:
            raise ConfigError(str(e)) from None
        try:
            quotas[category] = int(value.strip())
        except ValueError:
            raise ConfigError(f"quota for {category.value!r} must be an integer, got {value!r}") from None
    validate_quotas(quotas)
    return quotas


def _int_from_env(env: Mapping[str, str], key: str, fallback: int) -> int:
    raw = env.get(key, "").strip()
    if raw == "":
        return fallback
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
