from __future__ import annotations


class AptitudeSimError(Exception):
    """Base class for all simulator errors."""


class ConfigError(AptitudeSimError, ValueError):
    """Invalid simulator configuration (durations, quotas, thresholds)."""


class QuestionBankError(AptitudeSimError, ValueError):
    """Malformed question record or bank file."""


class InsufficientBankSize(AptitudeSimError):
    """The bank holds fewer questions in a category than its quota."""

    def __init__(self, category: str, *, required: int, available: int) -> None:
        super().__init__(
            f"category {category!r} needs {required} questions but the bank has {available}"
        )
        self.category = category
        self.required = required
        self.available = available


class InvalidStateTransition(AptitudeSimError):
    """An operation was invoked in a session phase that forbids it."""

    def __init__(self, operation: str, phase: str) -> None:
        super().__init__(f"{operation}() is not allowed while the session is {phase}")
        self.operation = operation
        self.phase = phase


class PersistenceUnavailable(AptitudeSimError):
    """The history store failed to append or load."""


class EmptyQuestionSet(AptitudeSimError, ValueError):
    """Scoring or starting a session with no questions."""
