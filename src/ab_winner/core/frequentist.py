"""
Significance Testing for Conversion Experiments
===============================================

Two-proportion Z-test between a control (A) and a treatment (B), with
confidence flags at 90/95/99%, relative lift, Wald confidence intervals per
variation, a sample size recommendation and a plain-English interpretation.

The standard normal CDF uses the Abramowitz & Stegun rational approximation
(formula 26.2.17), accurate to about 7.5e-8, so the calculator has no
special-function dependency.

Example Usage:
--------------
>>> from ab_winner.core import frequentist
>>>
>>> result = frequentist.calculate_significance(
...     impressions_a=1000, conversions_a=50,
...     impressions_b=1000, conversions_b=80,
... )
>>> print(f"Lift: {result.lift:.1f}%, confidence: {result.confidence_level}")
>>> print(frequentist.interpret_results(result, 'Original', 'New headline'))
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from ab_winner.core.power import SampleSizeRecommendation, recommend_sample_size
from ab_winner.outcomes import ErrorCode, Failure, is_failure

logger = logging.getLogger(__name__)

# Critical |z| values for two-tailed tests
Z_90 = 1.645
Z_95 = 1.96
Z_99 = 2.576

NOT_SIGNIFICANT = "Not significant"


@dataclass(frozen=True)
class ConfidenceInterval:
    """95% interval for a conversion rate, in percent."""
    lower: float
    upper: float

    def to_dict(self) -> dict:
        return {'lower': self.lower, 'upper': self.upper}


@dataclass(frozen=True)
class SignificanceResult:
    """Container for a control vs treatment significance test."""
    rate_a: float
    rate_b: float
    z_score: float
    p_value: float
    confidence_90: bool
    confidence_95: bool
    confidence_99: bool
    lift: float
    interval_a: ConfidenceInterval
    interval_b: ConfidenceInterval
    winner: Optional[str]
    sample_size: SampleSizeRecommendation
    confidence_level: str

    @property
    def is_significant(self) -> bool:
        return self.confidence_95

    def to_dict(self) -> dict:
        """Rounded reporting view, rates in percent."""
        return {
            'conversion_rate_a': round(self.rate_a * 100, 2),
            'conversion_rate_b': round(self.rate_b * 100, 2),
            'z_score': round(self.z_score, 4),
            'p_value': round(self.p_value, 4),
            'confidence_90': self.confidence_90,
            'confidence_95': self.confidence_95,
            'confidence_99': self.confidence_99,
            'is_significant': self.is_significant,
            'lift': round(self.lift, 2),
            'confidence_interval_a': self.interval_a.to_dict(),
            'confidence_interval_b': self.interval_b.to_dict(),
            'winner': self.winner,
            'sample_size_recommendation': self.sample_size.to_dict(),
            'confidence_level': self.confidence_level,
        }


def normal_cdf(x: float) -> float:
    """
    Standard normal CDF via the Abramowitz & Stegun approximation.

    Parameters
    ----------
    x : float
        Point at which to evaluate Φ

    Returns
    -------
    float
        Φ(x), between 0 and 1

    Notes
    -----
    For x ≥ 0:
        t = 1 / (1 + 0.2316419·x)
        d = 0.3989423·exp(-x²/2)
        Φ(x) = 1 - d·t·(0.3193815 + t·(-0.3565638 + t·(1.781478
               + t·(-1.821256 + t·1.330274))))
    For x < 0, Φ(x) = 1 - Φ(-x).
    """
    if x < 0:
        return 1.0 - normal_cdf(-x)

    t = 1.0 / (1.0 + 0.2316419 * x)
    d = 0.3989423 * np.exp(-x * x / 2.0)
    tail = d * t * (0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274))))
    return float(1.0 - tail)


def confidence_interval(rate: float, sample_size: int) -> ConfidenceInterval:
    """
    Wald 95% confidence interval for a conversion rate.

    rate ± 1.96·√(rate·(1 - rate) / n), converted to percent, rounded to
    two decimals and clamped to [0, 100].
    """
    se = np.sqrt(max(rate * (1 - rate), 0.0) / sample_size)
    margin = Z_95 * se

    return ConfidenceInterval(
        lower=max(0.0, round(float((rate - margin) * 100), 2)),
        upper=min(100.0, round(float((rate + margin) * 100), 2)),
    )


def confidence_label(conf_90: bool, conf_95: bool, conf_99: bool) -> str:
    """Label for the highest confidence level reached."""
    if conf_99:
        return "99%"
    elif conf_95:
        return "95%"
    elif conf_90:
        return "90%"
    else:
        return NOT_SIGNIFICANT


def _clamp_counts(impressions: int, conversions: int, side: str) -> Tuple[int, int]:
    clamped_conversions = min(max(conversions, 0), max(impressions, 0))
    if clamped_conversions != conversions:
        logger.warning(
            "Variation %s reported %d conversions for %d impressions; using %d",
            side, conversions, impressions, clamped_conversions,
        )
    return impressions, clamped_conversions


def calculate_significance(
    impressions_a: int,
    conversions_a: int,
    impressions_b: int,
    conversions_b: int,
) -> Union[SignificanceResult, Failure]:
    """
    Two-proportion Z-test between control (A) and treatment (B).

    Uses the pooled standard error for the test statistic and a per-variation
    Wald interval for the confidence intervals.

    Parameters
    ----------
    impressions_a : int
        Exposures of the control
    conversions_a : int
        Conversions of the control
    impressions_b : int
        Exposures of the treatment
    conversions_b : int
        Conversions of the treatment

    Returns
    -------
    SignificanceResult or Failure
        Failure with ``invalid_sample_size`` when either variation has no
        impressions, ``zero_standard_error`` when the pooled variance is zero
        (no conversions anywhere, or every impression converted).

    Notes
    -----
    - Pooled p̄ = (x_a + x_b) / (n_a + n_b)
    - SE = √[p̄(1-p̄)(1/n_a + 1/n_b)]
    - z = (rate_b - rate_a) / SE, p = 2·(1 - Φ(|z|))
    - Conversions outside [0, impressions] are clamped and logged

    Example
    -------
    >>> result = calculate_significance(1000, 50, 1000, 80)
    >>> result.winner
    'b'
    """
    if impressions_a <= 0 or impressions_b <= 0:
        return Failure(ErrorCode.INVALID_SAMPLE_SIZE, "Invalid sample sizes")

    impressions_a, conversions_a = _clamp_counts(impressions_a, conversions_a, 'A')
    impressions_b, conversions_b = _clamp_counts(impressions_b, conversions_b, 'B')

    rate_a = conversions_a / impressions_a
    rate_b = conversions_b / impressions_b

    pooled = (conversions_a + conversions_b) / (impressions_a + impressions_b)
    se = np.sqrt(pooled * (1 - pooled) * (1 / impressions_a + 1 / impressions_b))

    if se == 0:
        return Failure(ErrorCode.ZERO_STANDARD_ERROR, "Standard error is zero")

    z_score = float((rate_b - rate_a) / se)
    p_value = 2 * (1 - normal_cdf(abs(z_score)))

    conf_90 = abs(z_score) >= Z_90
    conf_95 = abs(z_score) >= Z_95
    conf_99 = abs(z_score) >= Z_99

    lift = (rate_b - rate_a) / rate_a * 100 if rate_a > 0 else 0.0

    winner = None
    if conf_95 and rate_b > rate_a:
        winner = 'b'
    elif conf_95 and rate_a > rate_b:
        winner = 'a'

    return SignificanceResult(
        rate_a=rate_a,
        rate_b=rate_b,
        z_score=z_score,
        p_value=p_value,
        confidence_90=conf_90,
        confidence_95=conf_95,
        confidence_99=conf_99,
        lift=lift,
        interval_a=confidence_interval(rate_a, impressions_a),
        interval_b=confidence_interval(rate_b, impressions_b),
        winner=winner,
        sample_size=recommend_sample_size(
            rate_a, rate_b, current_per_variation=min(impressions_a, impressions_b)
        ),
        confidence_level=confidence_label(conf_90, conf_95, conf_99),
    )


def interpret_results(
    stats: Union[SignificanceResult, Failure],
    control_name: Optional[str] = None,
    variant_name: Optional[str] = None,
) -> str:
    """
    Plain-English reading of a significance result.

    Parameters
    ----------
    stats : SignificanceResult or Failure
        Output of ``calculate_significance``
    control_name : str, optional
        Display name of the control, defaults to "Variation A"
    variant_name : str, optional
        Display name of the treatment, defaults to "Variation B"

    Returns
    -------
    str
        The failure message, a "keep testing" message, or a sentence naming
        the better variation, the confidence level and the size of the lift
    """
    if is_failure(stats):
        return stats.message

    if not stats.is_significant:
        return (
            "The difference between variations is not yet statistically significant. "
            "Continue testing to gather more data."
        )

    name_a = control_name or 'Variation A'
    name_b = variant_name or 'Variation B'

    better = name_b if stats.rate_b > stats.rate_a else name_a
    verdict = f"{better} is performing better with {stats.confidence_level} confidence."

    # Lift is relative to the control, undefined at a 0% control rate
    if stats.rate_a <= 0:
        return verdict

    direction = 'increase' if stats.rate_b > stats.rate_a else 'decrease'
    return f"{verdict} It shows a {abs(stats.lift):.1f}% {direction} in conversion rate."


if __name__ == "__main__":
    # Demo
    print("=" * 80)
    print("Significance Calculator Demo")
    print("=" * 80)

    scenarios = [
        ("Clear winner", (1000, 50, 1000, 80)),
        ("No difference", (1000, 50, 1000, 50)),
        ("Small sample", (50, 4, 50, 6)),
    ]
    for title, counts in scenarios:
        print(f"\n📊 {title.upper()}")
        print("-" * 80)
        result = calculate_significance(*counts)
        if is_failure(result):
            print(f"Error: {result.message}")
            continue
        print(f"Control: {result.rate_a:.2%}  Treatment: {result.rate_b:.2%}")
        print(f"Lift: {result.lift:+.1f}%")
        print(f"Z-score: {result.z_score:.4f}  P-value: {result.p_value:.4f}")
        print(f"Confidence: {result.confidence_level}")
        print(f"Sample needed: {result.sample_size.recommended_per_variation:,} per variation")
        print(interpret_results(result))
