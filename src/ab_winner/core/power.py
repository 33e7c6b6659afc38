"""
Sample Size Recommendations for Conversion Experiments
======================================================

Estimates how many impressions each variation needs before a conversion-rate
difference of a given relative size can be detected, and how much power the
sample collected so far actually has.

Example Usage:
--------------
>>> from ab_winner.core import power
>>>
>>> # Observed rates of 5% and 6% after 400 impressions each
>>> rec = power.recommend_sample_size(rate_a=0.05, rate_b=0.06, current_per_variation=400)
>>> print(f"Need {rec.recommended_per_variation:,} per variation "
...       f"({rec.additional_needed:,} more)")
>>>
>>> pwr = power.power_binary(p1=0.05, p2=0.06, n=400)
>>> print(f"Power: {pwr:.1%}")
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from statsmodels.stats.power import zt_ind_solve_power

# Relative lift the recommendation is sized to detect
DEFAULT_MDE = 0.20

# Assumed baseline when no conversions have been recorded yet
FALLBACK_BASELINE = 0.05


@dataclass(frozen=True)
class SampleSizeRecommendation:
    """Container for a per-variation sample size recommendation."""
    recommended_per_variation: int
    total_recommended: int
    baseline_rate: float
    additional_needed: int = 0

    def to_dict(self) -> dict:
        return {
            'recommended_per_variation': self.recommended_per_variation,
            'total_recommended': self.total_recommended,
            'baseline_rate': self.baseline_rate,
            'additional_needed': self.additional_needed,
        }


def recommend_sample_size(
    rate_a: float,
    rate_b: float,
    mde: float = DEFAULT_MDE,
    current_per_variation: Optional[int] = None,
) -> SampleSizeRecommendation:
    """
    Recommend the sample size per variation for a two-variation test.

    Uses the rule-of-thumb n = 16 * p * (1 - p) / (mde * p)², which
    corresponds to roughly 80% power at a 5% two-sided significance level.

    Parameters
    ----------
    rate_a : float
        Observed conversion rate of the control (fraction)
    rate_b : float
        Observed conversion rate of the treatment (fraction)
    mde : float, default=0.20
        Minimum detectable effect as RELATIVE lift
    current_per_variation : int, optional
        Impressions already collected by the smaller variation; used to
        report how many more are needed

    Returns
    -------
    SampleSizeRecommendation
        Per-variation and total recommendation, baseline rate in percent,
        and the additional impressions still needed per variation

    Notes
    -----
    - Baseline is the larger of the two observed rates
    - Falls back to a 5% baseline when neither side has converted
    - A baseline of 100% needs no further data (required = 0)

    Example
    -------
    >>> rec = recommend_sample_size(0.05, 0.08)
    >>> print(rec.baseline_rate)
    8.0
    """
    if mde <= 0:
        raise ValueError("MDE must be positive")

    baseline = max(rate_a, rate_b)
    if baseline <= 0:
        baseline = FALLBACK_BASELINE
    baseline = min(baseline, 1.0)

    required = int(np.ceil(16 * baseline * (1 - baseline) / (mde * baseline) ** 2))

    additional = 0
    if current_per_variation is not None:
        additional = max(0, required - max(0, int(current_per_variation)))

    return SampleSizeRecommendation(
        recommended_per_variation=required,
        total_recommended=required * 2,
        baseline_rate=round(baseline * 100, 2),
        additional_needed=additional,
    )


def cohens_h(p1: float, p2: float) -> float:
    """
    Calculate Cohen's h effect size for proportions.

    h = 2 * (arcsin(√p2) - arcsin(√p1))
    """
    if not (0 <= p1 <= 1 and 0 <= p2 <= 1):
        raise ValueError("Proportions must be between 0 and 1")

    return float(2 * (np.arcsin(np.sqrt(p2)) - np.arcsin(np.sqrt(p1))))


def power_binary(
    p1: float,
    p2: float,
    n: int,
    alpha: float = 0.05,
) -> float:
    """
    Power of a two-sided test to detect p1 vs p2 with n impressions per variation.

    Parameters
    ----------
    p1 : float
        Control conversion rate, between 0 and 1
    p2 : float
        Treatment conversion rate, between 0 and 1
    n : int
        Impressions per variation
    alpha : float, default=0.05
        Significance level

    Returns
    -------
    float
        Statistical power between 0 and 1. Equal rates have no detectable
        effect, so the power equals alpha.

    Example
    -------
    >>> pwr = power_binary(p1=0.05, p2=0.08, n=1000)
    >>> print(f"Power: {pwr:.1%}")
    """
    if n <= 0:
        raise ValueError("Sample size must be positive")
    if not (0 < alpha < 1):
        raise ValueError("alpha must be between 0 and 1")

    effect_size = cohens_h(p1, p2)
    if effect_size == 0:
        return float(alpha)

    return float(zt_ind_solve_power(
        effect_size=effect_size,
        nobs1=n,
        alpha=alpha,
        alternative='two-sided',
        ratio=1.0,
    ))
