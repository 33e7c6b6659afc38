"""Persistence and notification interfaces consumed by the winner service."""

from ab_winner.data import repository, notifications

__all__ = ["repository", "notifications"]
