"""
A/B Winner - Significance and Winner Declaration for Content Experiments
========================================================================

Turns per-variant impression and conversion counts into a confidence-scored
recommendation, and concludes experiments safely: declare a winner once,
route all traffic to it, archive the campaign.

Modules:
--------
- core: Two-proportion Z-test and sample size recommendations
- diagnostics: Data sufficiency checks
- decision: Campaign records, per-campaign aggregation, winner declaration
- data: Repository and notification interfaces (plus in-memory versions)
- config: Auto-winner settings
- outcomes: Tagged failure values returned by every operation

Example Usage:
--------------
>>> from ab_winner.core import frequentist
>>> from ab_winner.diagnostics import sufficiency
>>>
>>> result = frequentist.calculate_significance(1000, 50, 1000, 80)
>>> print(result.confidence_level, f"{result.lift:+.1f}%")
>>>
>>> check = sufficiency.check_data_sufficiency(1000, 50, 1000, 80)
>>> print(check.sufficient)

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__license__ = "MIT"

from ab_winner.outcomes import ErrorCode, Failure, is_failure
from ab_winner.config import AutoWinnerSettings
from ab_winner.core import power, frequentist
from ab_winner.diagnostics import sufficiency
from ab_winner.decision import campaign, metrics, winner
from ab_winner.data import repository, notifications

__all__ = [
    "ErrorCode",
    "Failure",
    "is_failure",
    "AutoWinnerSettings",
    "power",
    "frequentist",
    "sufficiency",
    "campaign",
    "metrics",
    "winner",
    "repository",
    "notifications",
]
