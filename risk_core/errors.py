"""Exceptions raised by the assessment engine."""
from __future__ import annotations

from typing import Optional

from .types import CriterionId, OptionId


class RiskEngineError(Exception):
    """Base class for engine failures."""


class ConfigurationError(RiskEngineError):
    """The loaded criteria, selection modes or thresholds cannot be used.

    Fatal for the session: an assessment cannot start against an invalid
    snapshot.
    """


class ValidationError(RiskEngineError):
    """A wizard transition was refused; the message names the unmet condition."""


class SubmissionFailure(RiskEngineError):
    """The external collaborator rejected or failed to store the assessment."""


class StaleReferenceWarning(UserWarning):
    """An option id no longer exists in the loaded catalog and was skipped."""

    def __init__(self, option_id: OptionId, criterion_id: Optional[CriterionId] = None):
        self.option_id = option_id
        self.criterion_id = criterion_id
        where = f" (criterion {criterion_id})" if criterion_id is not None else ""
        super().__init__(f"option {option_id!r}{where} is not in the loaded catalog; skipped")


__all__ = [
    "RiskEngineError",
    "ConfigurationError",
    "ValidationError",
    "SubmissionFailure",
    "StaleReferenceWarning",
]
