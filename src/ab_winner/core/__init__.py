"""Core statistical methods for conversion experiments."""

from ab_winner.core import power, frequentist

__all__ = ["power", "frequentist"]
