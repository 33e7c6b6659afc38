"""Campaign aggregation and winner declaration."""

from ab_winner.decision import campaign, metrics, winner

__all__ = ["campaign", "metrics", "winner"]
