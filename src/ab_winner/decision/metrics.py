"""
Campaign Metrics Aggregation
============================

Runs the significance test and the data sufficiency check for every treatment
of a campaign against its control, producing one comparison record per
treatment.

Example Usage:
--------------
>>> from ab_winner.decision import metrics
>>> from ab_winner.decision.campaign import Variant
>>>
>>> variants = [
...     Variant(id=1, campaign_id=7, name='Original', is_control=True,
...             impressions=1000, conversions=50),
...     Variant(id=2, campaign_id=7, name='Short form', impressions=1000, conversions=80),
...     Variant(id=3, campaign_id=7, name='Long form', impressions=1000, conversions=55),
... ]
>>> comparisons = metrics.calculate_campaign_metrics(variants)
>>> for c in comparisons:
...     print(c.variation_name, c.interpretation)
>>>
>>> df = metrics.comparisons_frame(comparisons)
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd

from ab_winner.core.frequentist import (
    SignificanceResult,
    calculate_significance,
    interpret_results,
)
from ab_winner.decision.campaign import Variant
from ab_winner.diagnostics.sufficiency import SufficiencyResult, check_data_sufficiency
from ab_winner.outcomes import ErrorCode, Failure, is_failure


@dataclass(frozen=True)
class VariantComparison:
    """Container for one treatment compared against the control."""
    variation_id: int
    variation_name: str
    control_id: int
    control_name: str
    conversion_rate: float
    control_rate: float
    stats: Union[SignificanceResult, Failure]
    interpretation: str
    data_check: SufficiencyResult

    @property
    def is_significant(self) -> bool:
        return not is_failure(self.stats) and self.stats.is_significant

    def to_dict(self) -> dict:
        return {
            'variation_id': self.variation_id,
            'variation_name': self.variation_name,
            'control_id': self.control_id,
            'control_name': self.control_name,
            'stats': self.stats.to_dict(),
            'interpretation': self.interpretation,
            'data_check': self.data_check.to_dict(),
        }


def split_control(variants: Sequence[Variant]) -> Tuple[Variant, List[Variant]]:
    """
    Separate the control from the treatments.

    The control is the first variant flagged ``is_control``; when none is
    flagged, the first listed variant is used. Order of treatments is kept.
    """
    control = next((v for v in variants if v.is_control), variants[0])
    treatments = [v for v in variants if v is not control]
    return control, treatments


def compare(control: Variant, variant: Variant) -> VariantComparison:
    """Compare a single treatment against the control."""
    stats = calculate_significance(
        control.impressions,
        control.conversions,
        variant.impressions,
        variant.conversions,
    )

    return VariantComparison(
        variation_id=variant.id,
        variation_name=variant.name,
        control_id=control.id,
        control_name=control.name,
        conversion_rate=variant.conversion_rate,
        control_rate=control.conversion_rate,
        stats=stats,
        interpretation=interpret_results(stats, control.name, variant.name),
        data_check=check_data_sufficiency(
            control.impressions,
            control.conversions,
            variant.impressions,
            variant.conversions,
        ),
    )


def calculate_campaign_metrics(
    variants: Sequence[Variant],
) -> Union[List[VariantComparison], Failure]:
    """
    Compare every treatment of a campaign against its control.

    Parameters
    ----------
    variants : sequence of Variant
        All variants of one campaign, as read from the store

    Returns
    -------
    list of VariantComparison or Failure
        One comparison per non-control variant, in listed order.
        Failure ``insufficient_variants`` when fewer than two variants exist.

    Notes
    -----
    A comparison whose significance test failed (e.g. a variant with no
    impressions yet) is still returned; its ``stats`` holds the Failure and
    its interpretation the failure message.
    """
    if len(variants) < 2:
        return Failure(
            ErrorCode.INSUFFICIENT_VARIANTS,
            "Need at least 2 variations for analysis",
        )

    control, treatments = split_control(variants)
    return [compare(control, variant) for variant in treatments]


def comparisons_frame(comparisons: Sequence[VariantComparison]) -> pd.DataFrame:
    """
    Tabular summary of comparisons for reporting surfaces.

    One row per treatment; statistics columns are NaN/None when the
    significance test failed for that treatment.
    """
    rows = []
    for c in comparisons:
        stats: Optional[SignificanceResult] = None if is_failure(c.stats) else c.stats
        rows.append({
            'variation_id': c.variation_id,
            'variation_name': c.variation_name,
            'control_name': c.control_name,
            'control_rate': c.control_rate,
            'conversion_rate': c.conversion_rate,
            'lift_pct': stats.lift if stats else float('nan'),
            'z_score': stats.z_score if stats else float('nan'),
            'p_value': stats.p_value if stats else float('nan'),
            'confidence_level': stats.confidence_level if stats else None,
            'significant': c.is_significant,
            'sufficient_data': c.data_check.sufficient,
            'error': c.stats.code.value if stats is None else None,
        })

    columns = [
        'variation_id', 'variation_name', 'control_name', 'control_rate',
        'conversion_rate', 'lift_pct', 'z_score', 'p_value', 'confidence_level',
        'significant', 'sufficient_data', 'error',
    ]
    return pd.DataFrame(rows, columns=columns)
