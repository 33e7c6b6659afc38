"""
Campaign and Variant Repositories
=================================

The winner service reads and writes campaigns and variants only through the
two interfaces below, so any backing store (SQL table, document store, test
double) can be plugged in.

Requirements on implementations:
- ``list_for_campaign`` returns a snapshot; it may be stale relative to
  concurrent writers.
- ``save`` replaces the whole record or nothing, and reports success.
- ``claim_winner`` is an atomic conditional update: it sets the winner only
  if none is set yet (``UPDATE ... WHERE winner_variant_id IS NULL``) and
  reports whether this call set it.

``InMemoryStore`` implements both interfaces under one lock.

Example Usage:
--------------
>>> from ab_winner.data.repository import InMemoryStore
>>> from ab_winner.decision.campaign import Campaign, Variant
>>>
>>> store = InMemoryStore()
>>> store.add_campaign(Campaign(id=1, name='Homepage hero', status='active'))
>>> store.add_variant(Variant(id=10, campaign_id=1, name='Original', is_control=True))
>>> store.add_variant(Variant(id=11, campaign_id=1, name='New headline'))
>>> [v.name for v in store.list_for_campaign(1)]
['Original', 'New headline']
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from ab_winner.decision.campaign import Campaign, Variant


class CampaignRepository(Protocol):
    def get(self, campaign_id: int) -> Optional[Campaign]:
        ...

    def save(self, campaign: Campaign) -> bool:
        ...

    def claim_winner(
        self,
        campaign_id: int,
        variant_id: int,
        declared_at: datetime,
        declared_by: int,
    ) -> bool:
        ...


class VariantRepository(Protocol):
    def get(self, variant_id: int) -> Optional[Variant]:
        ...

    def list_for_campaign(self, campaign_id: int) -> List[Variant]:
        ...

    def save(self, variant: Variant) -> bool:
        ...


class InMemoryStore:
    """Thread-safe in-memory backing store for campaigns and variants."""

    def __init__(self):
        self._lock = threading.Lock()
        self._campaigns: Dict[int, Campaign] = {}
        self._variants: Dict[int, Variant] = {}

    def add_campaign(self, campaign: Campaign) -> Campaign:
        with self._lock:
            self._campaigns[campaign.id] = replace(campaign)
        return campaign

    def add_variant(self, variant: Variant) -> Variant:
        with self._lock:
            self._variants[variant.id] = replace(variant)
        return variant

    @property
    def campaigns(self) -> "_CampaignView":
        return _CampaignView(self)

    @property
    def variants(self) -> "_VariantView":
        return _VariantView(self)

    # Campaign operations

    def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            return replace(campaign) if campaign is not None else None

    def save_campaign(self, campaign: Campaign) -> bool:
        with self._lock:
            if campaign.id not in self._campaigns:
                return False
            stored = self._campaigns[campaign.id]
            # The latch is owned by claim_winner; a plain save never moves it.
            self._campaigns[campaign.id] = replace(
                campaign,
                winner_variant_id=stored.winner_variant_id,
                winner_declared_at=stored.winner_declared_at,
                winner_declared_by=stored.winner_declared_by,
            )
            return True

    def claim_winner(
        self,
        campaign_id: int,
        variant_id: int,
        declared_at: datetime,
        declared_by: int,
    ) -> bool:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None or campaign.winner_variant_id is not None:
                return False
            campaign.winner_variant_id = variant_id
            campaign.winner_declared_at = declared_at
            campaign.winner_declared_by = declared_by
            return True

    # Variant operations

    def get_variant(self, variant_id: int) -> Optional[Variant]:
        with self._lock:
            variant = self._variants.get(variant_id)
            return replace(variant) if variant is not None else None

    def list_for_campaign(self, campaign_id: int) -> List[Variant]:
        with self._lock:
            return [
                replace(v) for v in self._variants.values()
                if v.campaign_id == campaign_id
            ]

    def save_variant(self, variant: Variant) -> bool:
        with self._lock:
            if variant.id not in self._variants:
                return False
            self._variants[variant.id] = replace(variant)
            return True


class _CampaignView:
    """CampaignRepository facade over an InMemoryStore."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    def get(self, campaign_id: int) -> Optional[Campaign]:
        return self._store.get_campaign(campaign_id)

    def save(self, campaign: Campaign) -> bool:
        return self._store.save_campaign(campaign)

    def claim_winner(self, campaign_id, variant_id, declared_at, declared_by) -> bool:
        return self._store.claim_winner(campaign_id, variant_id, declared_at, declared_by)


class _VariantView:
    """VariantRepository facade over an InMemoryStore."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    def get(self, variant_id: int) -> Optional[Variant]:
        return self._store.get_variant(variant_id)

    def list_for_campaign(self, campaign_id: int) -> List[Variant]:
        return self._store.list_for_campaign(campaign_id)

    def save(self, variant: Variant) -> bool:
        return self._store.save_variant(variant)
