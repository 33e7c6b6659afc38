"""
Winner Declaration
==================

State machine for concluding an experiment safely:

1. **Declare**: record the winning variant once (the winner latch)
2. **Apply**: route 100% of traffic to the winner and complete the campaign
3. **Archive**: move the campaign to the archived state (restorable)

Plus unattended auto-detection, a non-binding recommendation and a summary of
a declared winner.

Manual declarations only need the absolute data floor (30 impressions per
variant); auto-detection additionally requires the configured running time,
conversions per variant and confidence level.

Every operation returns its result or a ``Failure``; auto-detection returns
``False`` when the campaign is simply not ready yet.

Example Usage:
--------------
>>> from ab_winner.data.repository import InMemoryStore
>>> from ab_winner.decision.winner import WinnerDeclarationService
>>> from ab_winner.outcomes import is_failure
>>>
>>> store = InMemoryStore()
>>> # ... add a campaign and its variants ...
>>> service = WinnerDeclarationService(store.campaigns, store.variants)
>>> summary = service.declare(campaign_id=1, variant_id=11, actor=5, auto_apply=True)
>>> if is_failure(summary):
...     print(summary.code.value, summary.message)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ab_winner.config import AutoWinnerSettings
from ab_winner.core.frequentist import SignificanceResult
from ab_winner.core.power import power_binary
from ab_winner.data.notifications import (
    WINNER_DECLARED,
    LoggingNotificationSink,
    NotificationSink,
)
from ab_winner.data.repository import CampaignRepository, VariantRepository
from ab_winner.decision.campaign import (
    Campaign,
    CampaignStatus,
    Variant,
    can_transition,
)
from ab_winner.decision.metrics import (
    VariantComparison,
    calculate_campaign_metrics,
    split_control,
)
from ab_winner.diagnostics.sufficiency import SufficiencyResult
from ab_winner.outcomes import ErrorCode, Failure, is_failure

logger = logging.getLogger(__name__)

# Absolute floor for any declaration, independent of statistical power
MIN_IMPRESSIONS = 30

# Actor recorded for automatic declarations
SYSTEM_ACTOR = 0


@dataclass(frozen=True)
class DeclarationSummary:
    """Container for a successful winner declaration."""
    campaign_id: int
    variation_id: int
    variation_name: str
    declared_at: datetime
    declared_by: int
    auto_detected: bool
    applied: bool
    archived: bool

    def to_dict(self) -> dict:
        return {
            'success': True,
            'campaign_id': self.campaign_id,
            'variation_id': self.variation_id,
            'variation_name': self.variation_name,
            'declared_at': self.declared_at.isoformat(),
            'declared_by': self.declared_by,
            'auto_detected': self.auto_detected,
            'applied': self.applied,
            'archived': self.archived,
        }


@dataclass(frozen=True)
class Recommendation:
    """Container for a non-binding winner recommendation."""
    variation_id: int
    variation_name: str
    is_control: bool
    conversion_rate: float
    control_id: int
    control_name: str
    control_rate: float
    lift: float
    is_significant: bool
    z_score: Optional[float]
    p_value: Optional[float]
    achieved_power: Optional[float]
    comparison: Optional[VariantComparison]
    data_check: Optional[SufficiencyResult]
    interpretation: str
    recommendation: str


@dataclass(frozen=True)
class WinnerSummary:
    """Container describing a declared winner and its current effect."""
    campaign_id: int
    campaign_name: str
    winner_id: int
    winner_name: str
    declared_at: Optional[datetime]
    declared_by: Optional[int]
    is_applied: bool
    is_archived: bool
    stats: Optional[VariantComparison]
    total_variations: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def reaches_confidence(stats: SignificanceResult, confidence_level: int) -> bool:
    """Whether ``stats`` reaches the configured confidence level (90/95/99)."""
    if confidence_level >= 99:
        return stats.confidence_99
    elif confidence_level >= 95:
        return stats.confidence_95
    elif confidence_level >= 90:
        return stats.confidence_90
    return False


def recommendation_text(stats: Union[SignificanceResult, Failure, None]) -> str:
    """Confidence-tiered advice for a recommendation."""
    if stats is None or is_failure(stats):
        return "Insufficient data for recommendation."
    if stats.confidence_99:
        return "Strong recommendation - 99% confidence level reached."
    if stats.confidence_95:
        return "Good recommendation - 95% confidence level reached."
    if stats.confidence_90:
        return (
            "Moderate recommendation - 90% confidence level reached. "
            "Consider running test longer."
        )
    return (
        "Weak recommendation - Statistical significance not yet reached. "
        "Continue testing."
    )


class WinnerDeclarationService:
    """
    Declares, applies and archives experiment winners.

    Parameters
    ----------
    campaigns : CampaignRepository
        Store for campaign records; must provide an atomic ``claim_winner``
    variants : VariantRepository
        Store for variant records
    notifier : NotificationSink, optional
        Receives ``winner_declared`` events; defaults to logging them
    settings : AutoWinnerSettings, optional
        Auto-detection thresholds; defaults to 100 conversions, 7 days, 95%
    clock : callable, optional
        Returns the current timezone-aware datetime; defaults to UTC now
    """

    def __init__(
        self,
        campaigns: CampaignRepository,
        variants: VariantRepository,
        notifier: Optional[NotificationSink] = None,
        settings: Optional[AutoWinnerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.campaigns = campaigns
        self.variants = variants
        self.notifier = notifier or LoggingNotificationSink()
        self.settings = settings or AutoWinnerSettings()
        self.clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _load(self, campaign_id: int) -> Union[Campaign, Failure]:
        campaign = self.campaigns.get(campaign_id)
        if campaign is None:
            return Failure(ErrorCode.CAMPAIGN_NOT_FOUND, "Campaign not found.")
        return campaign

    def _validate(
        self, campaign_id: int, variant_id: int
    ) -> Union[Tuple[Campaign, Variant], Failure]:
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        if campaign.has_winner:
            return Failure(
                ErrorCode.WINNER_EXISTS,
                "A winner has already been declared for this campaign.",
            )

        variant = self.variants.get(variant_id)
        if variant is None:
            return Failure(ErrorCode.VARIATION_NOT_FOUND, "Variation not found.")

        if variant.campaign_id != campaign_id:
            return Failure(
                ErrorCode.VARIATION_MISMATCH,
                "Variation does not belong to this campaign.",
            )

        data_check = self.check_minimum_data(campaign_id)
        if is_failure(data_check):
            return data_check

        return campaign, variant

    def validate_declaration(self, campaign_id: int, variant_id: int) -> Union[bool, Failure]:
        """
        Check that ``variant_id`` may be declared winner of ``campaign_id``.

        Returns True, or a Failure with one of campaign_not_found,
        winner_exists, variation_not_found, variation_mismatch,
        insufficient_variations, insufficient_data.
        """
        outcome = self._validate(campaign_id, variant_id)
        if is_failure(outcome):
            return outcome
        return True

    def check_minimum_data(self, campaign_id: int) -> Union[bool, Failure]:
        """
        Check the absolute data floor: at least 2 variants, each with at
        least 30 impressions.
        """
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        variants = self.variants.list_for_campaign(campaign_id)
        if len(variants) < 2:
            return Failure(
                ErrorCode.INSUFFICIENT_VARIATIONS,
                "Campaign must have at least 2 variations to declare a winner.",
            )

        for variant in variants:
            if variant.impressions < MIN_IMPRESSIONS:
                return Failure(
                    ErrorCode.INSUFFICIENT_DATA,
                    f'Variation "{variant.name}" has insufficient data '
                    f'(minimum {MIN_IMPRESSIONS} impressions required).',
                )

        return True

    # ------------------------------------------------------------------
    # Declaration
    # ------------------------------------------------------------------

    def declare(
        self,
        campaign_id: int,
        variant_id: int,
        actor: int = SYSTEM_ACTOR,
        auto_detected: bool = False,
        auto_apply: bool = False,
        archive: bool = False,
        notify: bool = True,
    ) -> Union[DeclarationSummary, Failure]:
        """
        Declare ``variant_id`` the winner of ``campaign_id``.

        Parameters
        ----------
        campaign_id : int
            Campaign to conclude
        variant_id : int
            Winning variant, must belong to the campaign
        actor : int, default=0
            User declaring the winner (0 for the system)
        auto_detected : bool, default=False
            Whether the winner came from auto-detection
        auto_apply : bool, default=False
            Route 100% of traffic to the winner afterwards
        archive : bool, default=False
            Archive the campaign afterwards
        notify : bool, default=True
            Emit a ``winner_declared`` notification

        Returns
        -------
        DeclarationSummary or Failure
            Failures come from validation, or ``winner_exists`` when another
            declaration set the latch first.

        Notes
        -----
        The latch is set through the repository's conditional update, so of
        two concurrent declarations exactly one succeeds. Failures of the
        follow-up apply/archive steps are logged and reported through the
        ``applied`` / ``archived`` flags; the declaration itself stands.
        """
        outcome = self._validate(campaign_id, variant_id)
        if is_failure(outcome):
            return outcome
        campaign, variant = outcome

        declared_at = self.clock()
        if not self.campaigns.claim_winner(campaign_id, variant_id, declared_at, actor):
            if self.campaigns.get(campaign_id) is None:
                return Failure(ErrorCode.CAMPAIGN_NOT_FOUND, "Campaign not found.")
            return Failure(
                ErrorCode.WINNER_EXISTS,
                "A winner has already been declared for this campaign.",
            )

        logger.info(
            'Winner declared for campaign "%s" (ID: %s): Variation "%s" (ID: %s) '
            '| Method: %s | User: %s',
            campaign.name, campaign_id, variant.name, variant_id,
            'Auto-detected' if auto_detected else 'Manual', actor,
        )

        applied = False
        if auto_apply:
            result = self.apply_winner(campaign_id)
            if is_failure(result):
                logger.error(
                    "Failed to auto-apply winner for campaign %s: %s",
                    campaign_id, result.message,
                )
            else:
                applied = True

        archived = False
        if archive:
            result = self.archive_campaign(campaign_id, actor)
            if is_failure(result):
                logger.error(
                    "Failed to archive campaign %s: %s", campaign_id, result.message,
                )
            else:
                archived = True

        if notify:
            self._notify(WINNER_DECLARED, campaign_id, {
                'variation_id': variant_id,
                'variation_name': variant.name,
                'auto_detected': auto_detected,
            })

        return DeclarationSummary(
            campaign_id=campaign_id,
            variation_id=variant_id,
            variation_name=variant.name,
            declared_at=declared_at,
            declared_by=actor,
            auto_detected=auto_detected,
            applied=applied,
            archived=archived,
        )

    # ------------------------------------------------------------------
    # Traffic and status
    # ------------------------------------------------------------------

    def _transition(self, campaign: Campaign, requested: CampaignStatus) -> Optional[Failure]:
        if not can_transition(campaign.status, requested):
            return Failure(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot move campaign from {campaign.status.value} to {requested.value}.",
            )
        campaign.status = requested
        return None

    def change_status(self, campaign_id: int, status: CampaignStatus) -> Union[bool, Failure]:
        """Move a campaign to ``status`` if the transition table allows it."""
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        previous = campaign.status
        failure = self._transition(campaign, CampaignStatus(status))
        if failure is not None:
            return failure
        if not self.campaigns.save(campaign):
            return Failure(ErrorCode.SAVE_FAILED, "Failed to update campaign status.")

        self._log_action(campaign_id, 'status_changed', {
            'from': previous.value, 'to': campaign.status.value,
        })
        return True

    def apply_winner(self, campaign_id: int) -> Union[bool, Failure]:
        """
        Route all traffic to the declared winner and complete the campaign.

        Sets the winner's weight to 100 and every other variant's to 0. Each
        variant is saved on its own; if any save fails the result is
        ``update_failed``, already-saved variants keep their new weight and
        the campaign status is left unchanged. Re-read the variants to see
        the actual effect.
        """
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        if not campaign.has_winner:
            return Failure(ErrorCode.NO_WINNER, "No winner declared for this campaign.")

        already_completed = campaign.status == CampaignStatus.COMPLETED
        if not already_completed and not can_transition(campaign.status, CampaignStatus.COMPLETED):
            return Failure(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot apply winner to a {campaign.status.value} campaign.",
            )

        variants = self.variants.list_for_campaign(campaign_id)
        if not any(v.id == campaign.winner_variant_id for v in variants):
            return Failure(
                ErrorCode.VARIATION_NOT_FOUND,
                "Winning variation not found among the campaign's variations.",
            )

        failed = []
        for variant in variants:
            variant.weight_percentage = 100.0 if variant.id == campaign.winner_variant_id else 0.0
            if not self.variants.save(variant):
                failed.append(variant.id)
                logger.error("Failed to update variation %s weight", variant.id)

        if failed:
            return Failure(
                ErrorCode.UPDATE_FAILED,
                f"Failed to update variation weights: {failed}",
            )

        if not already_completed:
            self._transition(campaign, CampaignStatus.COMPLETED)
            if not self.campaigns.save(campaign):
                return Failure(ErrorCode.SAVE_FAILED, "Failed to complete campaign.")

        self._log_action(campaign_id, 'winner_applied', {
            'variation_id': campaign.winner_variant_id,
        })
        return True

    def archive_losers(self, campaign_id: int) -> Union[bool, Failure]:
        """
        Stop traffic to every non-winning variant.

        Lighter than ``apply_winner``: the winner keeps its current weight and
        the campaign status is untouched.
        """
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        if not campaign.has_winner:
            return Failure(ErrorCode.NO_WINNER, "No winner declared.")

        variants = self.variants.list_for_campaign(campaign_id)
        if not any(v.id == campaign.winner_variant_id for v in variants):
            return Failure(
                ErrorCode.VARIATION_NOT_FOUND,
                "Winning variation not found among the campaign's variations.",
            )

        failed = []
        for variant in variants:
            if variant.id == campaign.winner_variant_id:
                continue
            variant.weight_percentage = 0.0
            if not self.variants.save(variant):
                failed.append(variant.id)
                logger.error("Failed to archive variation %s", variant.id)

        if failed:
            return Failure(
                ErrorCode.UPDATE_FAILED,
                f"Failed to update variation weights: {failed}",
            )

        self._log_action(campaign_id, 'losers_archived', {
            'variation_id': campaign.winner_variant_id,
        })
        return True

    def archive_campaign(self, campaign_id: int, actor: int = SYSTEM_ACTOR) -> Union[bool, Failure]:
        """Archive a campaign; allowed from any non-draft, non-archived status."""
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        failure = self._transition(campaign, CampaignStatus.ARCHIVED)
        if failure is not None:
            return failure
        campaign.archived_at = self.clock()
        campaign.archived_by = actor

        if not self.campaigns.save(campaign):
            return Failure(ErrorCode.SAVE_FAILED, "Failed to archive campaign.")

        self._log_action(campaign_id, 'campaign_archived', {'user_id': actor})
        return True

    def restore_campaign(self, campaign_id: int) -> Union[bool, Failure]:
        """Bring an archived campaign back to active."""
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        if campaign.status != CampaignStatus.ARCHIVED:
            return Failure(
                ErrorCode.INVALID_TRANSITION,
                f"Only archived campaigns can be restored (status is {campaign.status.value}).",
            )

        self._transition(campaign, CampaignStatus.ACTIVE)
        campaign.archived_at = None
        campaign.archived_by = None

        if not self.campaigns.save(campaign):
            return Failure(ErrorCode.SAVE_FAILED, "Failed to restore campaign.")

        self._log_action(campaign_id, 'campaign_restored', {})
        return True

    # ------------------------------------------------------------------
    # Auto-detection and advice
    # ------------------------------------------------------------------

    def auto_detect_winner(self, campaign_id: int) -> Union[DeclarationSummary, Failure, bool]:
        """
        Declare a winner automatically once the configured thresholds are met.

        Returns
        -------
        DeclarationSummary, Failure or False
            False means "not ready": a winner already exists, the campaign
            has not run ``min_days`` yet, some variant has fewer than
            ``min_conversions`` conversions, or no variant reaches the
            configured confidence level. False is not an error.

        Notes
        -----
        Each comparison reaching the confidence level nominates its better
        side (the treatment, or the control when the control is ahead).
        Among the nominees the one with the highest conversion rate is
        declared, not the one with the largest z-score.
        """
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        settings = self.settings

        if campaign.has_winner:
            logger.debug("Campaign %s already has a winner", campaign_id)
            return False

        days_running = campaign.days_running(self.clock())
        if days_running < settings.min_days:
            logger.debug(
                "Campaign %s has run %d of %d days", campaign_id, days_running, settings.min_days,
            )
            return False

        variants = self.variants.list_for_campaign(campaign_id)
        if len(variants) < 2:
            return Failure(ErrorCode.INSUFFICIENT_VARIATIONS, "Need at least 2 variations.")

        for variant in variants:
            if variant.conversions < settings.min_conversions:
                logger.debug(
                    "Variation %s has %d of %d conversions",
                    variant.id, variant.conversions, settings.min_conversions,
                )
                return False

        comparisons = calculate_campaign_metrics(variants)
        if is_failure(comparisons):
            return comparisons

        winner_id = None
        winner_rate = -1.0
        for comparison in comparisons:
            stats = comparison.stats
            if is_failure(stats) or not reaches_confidence(stats, settings.confidence_level):
                continue

            if stats.rate_b > stats.rate_a:
                nominee, rate = comparison.variation_id, stats.rate_b
            elif stats.rate_a > stats.rate_b:
                nominee, rate = comparison.control_id, stats.rate_a
            else:
                continue

            if rate > winner_rate:
                winner_id, winner_rate = nominee, rate

        if winner_id is None:
            logger.debug(
                "Campaign %s has no variation at %d%% confidence",
                campaign_id, settings.confidence_level,
            )
            return False

        return self.declare(
            campaign_id,
            winner_id,
            actor=SYSTEM_ACTOR,
            auto_detected=True,
            auto_apply=settings.auto_apply,
            archive=settings.auto_archive,
            notify=True,
        )

    def get_recommendation(self, campaign_id: int) -> Union[Recommendation, Failure]:
        """
        Advise which variant currently looks best, significant or not.

        The best variant is the one with the highest observed conversion
        rate among variants with at least one impression (first listed wins
        ties). For a treatment the comparison against the control is
        attached; when the control itself leads, the comparison against its
        strongest challenger is attached instead and lift is 0.
        """
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        variants = self.variants.list_for_campaign(campaign_id)
        if len(variants) < 2:
            return Failure(
                ErrorCode.INSUFFICIENT_VARIATIONS,
                "Campaign needs at least 2 variations to recommend a winner.",
            )

        shown = [v for v in variants if v.impressions > 0]
        if not shown:
            return Failure(
                ErrorCode.NO_IMPRESSIONS,
                "No impression data available yet. The campaign needs to collect data first.",
            )

        comparisons = calculate_campaign_metrics(variants)
        if is_failure(comparisons):
            return comparisons

        control, _ = split_control(variants)

        best = shown[0]
        for variant in shown[1:]:
            if variant.conversion_rate > best.conversion_rate:
                best = variant

        by_variant: Dict[int, VariantComparison] = {c.variation_id: c for c in comparisons}
        if best is control:
            comparison = self._strongest_challenger(comparisons, variants)
            lift = 0.0
        else:
            comparison = by_variant[best.id]
            lift = 0.0 if is_failure(comparison.stats) else comparison.stats.lift

        stats = comparison.stats if comparison is not None else None
        valid_stats = stats if stats is not None and not is_failure(stats) else None

        achieved_power = None
        if valid_stats is not None:
            impressions = {v.id: v.impressions for v in variants}
            achieved_power = power_binary(
                valid_stats.rate_a,
                valid_stats.rate_b,
                n=min(control.impressions, impressions[comparison.variation_id]),
            )

        return Recommendation(
            variation_id=best.id,
            variation_name=best.name,
            is_control=best is control,
            conversion_rate=best.conversion_rate,
            control_id=control.id,
            control_name=control.name,
            control_rate=control.conversion_rate,
            lift=lift,
            is_significant=valid_stats.is_significant if valid_stats else False,
            z_score=valid_stats.z_score if valid_stats else None,
            p_value=valid_stats.p_value if valid_stats else None,
            achieved_power=achieved_power,
            comparison=comparison,
            data_check=comparison.data_check if comparison is not None else None,
            interpretation=comparison.interpretation if comparison is not None else '',
            recommendation=recommendation_text(stats),
        )

    @staticmethod
    def _strongest_challenger(
        comparisons: List[VariantComparison], variants: List[Variant]
    ) -> Optional[VariantComparison]:
        impressions = {v.id: v.impressions for v in variants}
        best = None
        for comparison in comparisons:
            if impressions.get(comparison.variation_id, 0) <= 0:
                continue
            if best is None or comparison.conversion_rate > best.conversion_rate:
                best = comparison
        return best

    def get_winner_summary(self, campaign_id: int) -> Union[WinnerSummary, Failure]:
        """Describe the declared winner, whether it was applied and how it performed."""
        campaign = self._load(campaign_id)
        if is_failure(campaign):
            return campaign

        if not campaign.has_winner:
            return Failure(ErrorCode.NO_WINNER, "No winner declared.")

        winner = self.variants.get(campaign.winner_variant_id)
        if winner is None:
            return Failure(ErrorCode.VARIATION_NOT_FOUND, "Winning variation not found.")

        variants = self.variants.list_for_campaign(campaign_id)
        comparisons = calculate_campaign_metrics(variants)
        winner_stats = None
        if not is_failure(comparisons):
            winner_stats = next(
                (c for c in comparisons if c.variation_id == winner.id), None
            )

        return WinnerSummary(
            campaign_id=campaign_id,
            campaign_name=campaign.name,
            winner_id=winner.id,
            winner_name=winner.name,
            declared_at=campaign.winner_declared_at,
            declared_by=campaign.winner_declared_by,
            is_applied=winner.weight_percentage >= 100,
            is_archived=campaign.is_archived,
            stats=winner_stats,
            total_variations=len(variants),
        )

    # ------------------------------------------------------------------
    # Side channels
    # ------------------------------------------------------------------

    def _notify(self, event_type: str, campaign_id: int, payload: Dict[str, Any]) -> None:
        try:
            self.notifier.emit(event_type, campaign_id, payload)
        except Exception:
            logger.exception(
                "Notification %s for campaign %s failed", event_type, campaign_id,
            )

    @staticmethod
    def _log_action(campaign_id: int, action: str, data: Dict[str, Any]) -> None:
        logger.info('Action "%s" for campaign %s - Data: %s', action, campaign_id, data)
