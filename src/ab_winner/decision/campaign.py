"""
Campaign and Variant Records
============================

Plain records for an experiment (``Campaign``) and its content variants
(``Variant``), plus the single table of allowed campaign status transitions.

Status Lifecycle:
- draft -> active
- active <-> paused
- active / paused -> completed
- any non-draft status -> archived
- archived -> active (restore)

The winner latch (``winner_variant_id``) is independent of status: once set
it is never cleared by this package.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


TRANSITIONS: Dict[CampaignStatus, FrozenSet[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.ACTIVE}),
    CampaignStatus.ACTIVE: frozenset({
        CampaignStatus.PAUSED, CampaignStatus.COMPLETED, CampaignStatus.ARCHIVED,
    }),
    CampaignStatus.PAUSED: frozenset({
        CampaignStatus.ACTIVE, CampaignStatus.COMPLETED, CampaignStatus.ARCHIVED,
    }),
    CampaignStatus.COMPLETED: frozenset({CampaignStatus.ARCHIVED}),
    CampaignStatus.ARCHIVED: frozenset({CampaignStatus.ACTIVE}),
}

SECONDS_PER_DAY = 86400


def can_transition(current: CampaignStatus, requested: CampaignStatus) -> bool:
    """Return True when a campaign may move from ``current`` to ``requested``."""
    return CampaignStatus(requested) in TRANSITIONS[CampaignStatus(current)]


@dataclass
class Variant:
    """One variation of the content under test."""
    id: int
    campaign_id: int
    name: str = ''
    is_control: bool = False
    impressions: int = 0
    conversions: int = 0
    weight_percentage: float = 50.0

    @property
    def conversion_rate(self) -> float:
        """Conversions per impression in [0, 1], 0 when nothing was shown yet."""
        if self.impressions <= 0:
            return 0.0
        conversions = min(max(self.conversions, 0), self.impressions)
        return conversions / self.impressions


@dataclass
class Campaign:
    """An experiment over a set of variants."""
    id: int
    name: str = ''
    status: CampaignStatus = CampaignStatus.DRAFT
    start_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    winner_variant_id: Optional[int] = None
    winner_declared_at: Optional[datetime] = None
    winner_declared_by: Optional[int] = None
    archived_at: Optional[datetime] = None
    archived_by: Optional[int] = None

    def __post_init__(self):
        self.status = CampaignStatus(self.status)

    @property
    def has_winner(self) -> bool:
        return self.winner_variant_id is not None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def days_running(self, now: datetime) -> int:
        """
        Whole days since the campaign started (or was created), never negative.

        Returns 0 when neither ``start_date`` nor ``created_at`` is known.
        Naive datetimes, as stored by most SQL DATETIME columns, are read
        as UTC.
        """
        start = self.start_date or self.created_at
        if start is None:
            return 0
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        elapsed = (now - start).total_seconds()
        return max(0, int(elapsed // SECONDS_PER_DAY))
