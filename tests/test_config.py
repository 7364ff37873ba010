from __future__ import annotations

from pathlib import Path

import pytest

from aptitude_sim.config import SimulatorConfig, parse_quotas
from aptitude_sim.errors import ConfigError
from aptitude_sim.question_bank import Category


def test_defaults() -> None:
    cfg = SimulatorConfig()
    assert cfg.session_duration_s == 1500
    assert cfg.low_time_warning_s == 300
    assert dict(cfg.quotas) == {Category.QUANTITATIVE: 15, Category.LOGICAL: 8, Category.VERBAL: 2}
    assert cfg.total_questions == 25
    assert cfg.db_path is None


def test_from_env_overrides() -> None:
    cfg = SimulatorConfig.from_env(
        {
            "APTITUDE_SESSION_DURATION_S": "600",
            "APTITUDE_QUOTAS": "quantitative=5, logical=3, verbal=0",
            "APTITUDE_LOW_TIME_WARNING_S": "60",
            "APTITUDE_DB_PATH": "/tmp/history.sqlite3",
        }
    )
    assert cfg.session_duration_s == 600
    assert dict(cfg.quotas) == {Category.QUANTITATIVE: 5, Category.LOGICAL: 3, Category.VERBAL: 0}
    assert cfg.total_questions == 8
    assert cfg.low_time_warning_s == 60
    assert cfg.db_path == Path("/tmp/history.sqlite3")


def test_from_env_empty_uses_defaults() -> None:
    assert SimulatorConfig.from_env({}) == SimulatorConfig()


@pytest.mark.parametrize(
    "env",
    [
        {"APTITUDE_SESSION_DURATION_S": "soon"},
        {"APTITUDE_SESSION_DURATION_S": "0"},
        {"APTITUDE_LOW_TIME_WARNING_S": "-1"},
        {"APTITUDE_QUOTAS": "quantitative=x"},
        {"APTITUDE_QUOTAS": "spatial=3"},
        {"APTITUDE_QUOTAS": "quantitative"},
        {"APTITUDE_QUOTAS": "quantitative=0,logical=0"},
        {"APTITUDE_QUOTAS": "logical=-2"},
    ],
)
def test_invalid_env_raises_config_error(env: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        SimulatorConfig.from_env(env)


def test_parse_quotas_keeps_order() -> None:
    quotas = parse_quotas("verbal=2,quantitative=15")
    assert list(quotas) == [Category.VERBAL, Category.QUANTITATIVE]


def test_config_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        SimulatorConfig(session_duration_s=-5)
