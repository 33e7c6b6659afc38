"""Data quality checks for experiment results."""

from ab_winner.diagnostics import sufficiency

__all__ = ["sufficiency"]
