"""
Tagged Outcomes for Experiment Operations
=========================================

Every operation in the engine returns either its result or a ``Failure``.
Failures carry a code drawn from a closed set (``ErrorCode``) plus a
human-readable message, so callers can branch on the code and show the
message.

Example Usage:
--------------
>>> from ab_winner.outcomes import ErrorCode, Failure, is_failure
>>>
>>> outcome = Failure(ErrorCode.NO_WINNER, "No winner declared")
>>> if is_failure(outcome):
...     print(outcome.code.value, outcome.message)
no_winner No winner declared
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Closed set of error codes returned by the engine."""

    # Input errors
    INVALID_SAMPLE_SIZE = "invalid_sample_size"
    ZERO_STANDARD_ERROR = "zero_standard_error"

    # Not-found errors
    CAMPAIGN_NOT_FOUND = "campaign_not_found"
    VARIATION_NOT_FOUND = "variation_not_found"
    VARIATION_MISMATCH = "variation_mismatch"

    # Precondition errors
    INSUFFICIENT_VARIANTS = "insufficient_variants"
    INSUFFICIENT_VARIATIONS = "insufficient_variations"
    INSUFFICIENT_DATA = "insufficient_data"
    WINNER_EXISTS = "winner_exists"
    NO_WINNER = "no_winner"
    NO_IMPRESSIONS = "no_impressions"
    INVALID_TRANSITION = "invalid_transition"

    # Persistence errors
    UPDATE_FAILED = "update_failed"
    SAVE_FAILED = "save_failed"


@dataclass(frozen=True)
class Failure:
    """Container for a failed operation."""
    code: ErrorCode
    message: str

    def to_dict(self) -> dict:
        return {'error': self.code.value, 'message': self.message}


def is_failure(value: Any) -> bool:
    """Return True when ``value`` is a ``Failure``."""
    return isinstance(value, Failure)
