"""Tests for campaign records and the status transition table."""

from datetime import datetime, timedelta, timezone

import pytest

from ab_winner.decision.campaign import (
    TRANSITIONS,
    Campaign,
    CampaignStatus,
    Variant,
    can_transition,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class TestTransitions:
    """Tests for can_transition."""

    @pytest.mark.parametrize("current, requested", [
        (CampaignStatus.DRAFT, CampaignStatus.ACTIVE),
        (CampaignStatus.ACTIVE, CampaignStatus.PAUSED),
        (CampaignStatus.PAUSED, CampaignStatus.ACTIVE),
        (CampaignStatus.ACTIVE, CampaignStatus.COMPLETED),
        (CampaignStatus.PAUSED, CampaignStatus.COMPLETED),
        (CampaignStatus.ACTIVE, CampaignStatus.ARCHIVED),
        (CampaignStatus.PAUSED, CampaignStatus.ARCHIVED),
        (CampaignStatus.COMPLETED, CampaignStatus.ARCHIVED),
        (CampaignStatus.ARCHIVED, CampaignStatus.ACTIVE),
    ])
    def test_allowed(self, current, requested):
        """Documented transitions are allowed."""
        assert can_transition(current, requested)

    @pytest.mark.parametrize("current, requested", [
        (CampaignStatus.DRAFT, CampaignStatus.ARCHIVED),
        (CampaignStatus.DRAFT, CampaignStatus.COMPLETED),
        (CampaignStatus.COMPLETED, CampaignStatus.ACTIVE),
        (CampaignStatus.ARCHIVED, CampaignStatus.COMPLETED),
        (CampaignStatus.ARCHIVED, CampaignStatus.ARCHIVED),
        (CampaignStatus.ACTIVE, CampaignStatus.DRAFT),
    ])
    def test_forbidden(self, current, requested):
        """Anything not in the table is refused."""
        assert not can_transition(current, requested)

    def test_accepts_strings(self):
        """Plain status strings are accepted."""
        assert can_transition('active', 'paused')

    def test_every_status_has_entry(self):
        """The table covers every status."""
        assert set(TRANSITIONS) == set(CampaignStatus)

    def test_only_archived_reverses_to_active(self):
        """No status other than paused/draft/archived leads back to active."""
        sources = {s for s, targets in TRANSITIONS.items() if CampaignStatus.ACTIVE in targets}
        assert sources == {CampaignStatus.DRAFT, CampaignStatus.PAUSED, CampaignStatus.ARCHIVED}


class TestCampaign:
    """Tests for Campaign helpers."""

    def test_status_coerced(self):
        """String status becomes an enum member."""
        assert Campaign(id=1, status='paused').status is CampaignStatus.PAUSED

    def test_days_running_from_start_date(self):
        """Whole days since start_date, floored."""
        campaign = Campaign(
            id=1,
            start_date=NOW - timedelta(days=6, hours=23),
            created_at=NOW - timedelta(days=30),
        )
        assert campaign.days_running(NOW) == 6

    def test_days_running_falls_back_to_created_at(self):
        """created_at is used when start_date is missing."""
        campaign = Campaign(id=1, created_at=NOW - timedelta(days=9))
        assert campaign.days_running(NOW) == 9

    def test_days_running_future_start(self):
        """A start in the future counts as 0 days."""
        campaign = Campaign(id=1, start_date=NOW + timedelta(days=3))
        assert campaign.days_running(NOW) == 0

    def test_days_running_unknown(self):
        """No dates at all means 0 days."""
        assert Campaign(id=1).days_running(NOW) == 0

    def test_winner_and_archive_flags(self):
        """has_winner and is_archived follow their fields."""
        campaign = Campaign(id=1)
        assert not campaign.has_winner
        assert not campaign.is_archived

        campaign.winner_variant_id = 3
        campaign.archived_at = NOW
        assert campaign.has_winner
        assert campaign.is_archived


class TestVariant:
    """Tests for Variant helpers."""

    def test_conversion_rate(self):
        """Rate is conversions over impressions."""
        assert Variant(id=1, campaign_id=1, impressions=200, conversions=10).conversion_rate == 0.05

    def test_conversion_rate_no_impressions(self):
        """No impressions means a rate of 0."""
        assert Variant(id=1, campaign_id=1).conversion_rate == 0.0

    def test_conversion_rate_clamped(self):
        """More conversions than impressions caps the rate at 1."""
        assert Variant(id=1, campaign_id=1, impressions=100, conversions=150).conversion_rate == 1.0
        assert Variant(id=1, campaign_id=1, impressions=100, conversions=-3).conversion_rate == 0.0


class TestNaiveDates:
    """Timezone-less dates, as stored in SQL DATETIME columns."""

    def test_naive_start_read_as_utc(self):
        campaign = Campaign(id=1, start_date=datetime(2024, 6, 5, 12, 0))
        assert campaign.days_running(NOW) == 10

    def test_naive_now(self):
        campaign = Campaign(id=1, created_at=NOW - timedelta(days=4))
        assert campaign.days_running(datetime(2024, 6, 15, 12, 0)) == 4
