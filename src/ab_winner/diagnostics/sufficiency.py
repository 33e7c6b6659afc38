"""
Data Sufficiency Checks
=======================

Flags comparisons whose variations have too few impressions or conversions for
the significance result to be trusted, and reports progress toward the
minimum thresholds.

Example Usage:
--------------
>>> from ab_winner.diagnostics import sufficiency
>>>
>>> check = sufficiency.check_data_sufficiency(50, 4, 50, 4)
>>> print(check.sufficient)
False
>>> for warning in check.warnings:
...     print(warning)
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Tuple

MIN_IMPRESSIONS = 100
MIN_CONVERSIONS = 10


@dataclass(frozen=True)
class SufficiencyResult:
    """Container for a data sufficiency check."""
    sufficient: bool
    warnings: Tuple[str, ...] = ()
    progress: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'sufficient': self.sufficient,
            'warnings': list(self.warnings),
            'progress': dict(self.progress),
        }


def progress_percent(actual: int, threshold: int) -> int:
    """
    Percent of ``threshold`` reached, rounded half up and capped at 100.

    Example
    -------
    >>> progress_percent(45, 100)
    45
    >>> progress_percent(250, 100)
    100
    """
    if threshold <= 0:
        return 100
    ratio = max(actual, 0) * 100 / threshold
    return min(100, int(math.floor(ratio + 0.5)))


def check_data_sufficiency(
    impressions_a: int,
    conversions_a: int,
    impressions_b: int,
    conversions_b: int,
    min_impressions: int = MIN_IMPRESSIONS,
    min_conversions: int = MIN_CONVERSIONS,
) -> SufficiencyResult:
    """
    Check whether both variations have enough data for reliable results.

    Parameters
    ----------
    impressions_a, conversions_a : int
        Counts for the control
    impressions_b, conversions_b : int
        Counts for the treatment
    min_impressions : int, default=100
        Minimum impressions per variation
    min_conversions : int, default=10
        Minimum conversions per variation

    Returns
    -------
    SufficiencyResult
        - sufficient: True when no threshold is missed
        - warnings: one message per missed metric (impressions, conversions)
        - progress: percent of threshold per variation and metric

    Notes
    -----
    These thresholds are about statistical reliability. The absolute floor
    for declaring a winner (30 impressions) lives in the winner service.
    """
    warnings = []

    if impressions_a < min_impressions or impressions_b < min_impressions:
        warnings.append(
            f"Insufficient impressions. Aim for at least {min_impressions} "
            f"impressions per variation."
        )

    if conversions_a < min_conversions or conversions_b < min_conversions:
        warnings.append(
            f"Insufficient conversions. Aim for at least {min_conversions} "
            f"conversions per variation for reliable results."
        )

    return SufficiencyResult(
        sufficient=not warnings,
        warnings=tuple(warnings),
        progress={
            'impressions_a': progress_percent(impressions_a, min_impressions),
            'impressions_b': progress_percent(impressions_b, min_impressions),
            'conversions_a': progress_percent(conversions_a, min_conversions),
            'conversions_b': progress_percent(conversions_b, min_conversions),
        },
    )
