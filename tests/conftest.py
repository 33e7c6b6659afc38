"""Shared fixtures: an in-memory store, a fixed clock and a campaign builder."""

from datetime import datetime, timedelta, timezone

import pytest

from ab_winner.config import AutoWinnerSettings
from ab_winner.data.notifications import RecordingNotificationSink
from ab_winner.data.repository import InMemoryStore
from ab_winner.decision.campaign import Campaign, CampaignStatus, Variant
from ab_winner.decision.winner import WinnerDeclarationService

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifier():
    return RecordingNotificationSink()


@pytest.fixture
def make_campaign(store):
    """
    Build a campaign with variants in the store.

    ``counts`` is a list of (impressions, conversions); the first variant is
    the control. Variant ids are campaign_id * 10 + position.
    """
    def _make(
        counts,
        campaign_id=1,
        days_old=30,
        status=CampaignStatus.ACTIVE,
        names=None,
    ):
        campaign = Campaign(
            id=campaign_id,
            name=f"Campaign {campaign_id}",
            status=status,
            start_date=NOW - timedelta(days=days_old),
            created_at=NOW - timedelta(days=days_old),
        )
        store.add_campaign(campaign)

        weight = round(100 / max(len(counts), 1), 2)
        variants = []
        for position, (impressions, conversions) in enumerate(counts):
            variant = Variant(
                id=campaign_id * 10 + position,
                campaign_id=campaign_id,
                name=names[position] if names else f"Variant {position}",
                is_control=position == 0,
                impressions=impressions,
                conversions=conversions,
                weight_percentage=weight,
            )
            store.add_variant(variant)
            variants.append(variant)
        return campaign, variants

    return _make


@pytest.fixture
def make_service(store, notifier):
    def _make(settings=None, clock=None):
        return WinnerDeclarationService(
            store.campaigns,
            store.variants,
            notifier=notifier,
            settings=settings or AutoWinnerSettings(),
            clock=clock or (lambda: NOW),
        )

    return _make


@pytest.fixture
def service(make_service):
    return make_service()
