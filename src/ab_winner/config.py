"""
Auto-winner configuration.

The engine consumes these settings but does not own them; hosts load them
from wherever their options live and hand them to the winner service.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

DEFAULT_MIN_CONVERSIONS = 100
DEFAULT_MIN_DAYS = 7
DEFAULT_CONFIDENCE_LEVEL = 95

SUPPORTED_CONFIDENCE_LEVELS = (90, 95, 99)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


@dataclass(frozen=True)
class AutoWinnerSettings:
    """Thresholds and follow-up actions for automatic winner detection."""
    min_conversions: int = DEFAULT_MIN_CONVERSIONS
    min_days: int = DEFAULT_MIN_DAYS
    confidence_level: int = DEFAULT_CONFIDENCE_LEVEL
    auto_apply: bool = False
    auto_archive: bool = False

    def __post_init__(self):
        if self.min_conversions < 0:
            raise ValueError("min_conversions must be non-negative")
        if self.min_days < 0:
            raise ValueError("min_days must be non-negative")
        if self.confidence_level not in SUPPORTED_CONFIDENCE_LEVELS:
            raise ValueError(
                f"confidence_level must be one of {SUPPORTED_CONFIDENCE_LEVELS}, "
                f"got {self.confidence_level}"
            )

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]] = None) -> "AutoWinnerSettings":
        """
        Build settings from a stored option mapping.

        Missing keys fall back to the defaults; present values are coerced
        to int or bool.

        Example
        -------
        >>> AutoWinnerSettings.from_mapping({'min_days': '14', 'auto_apply': '1'})
        AutoWinnerSettings(min_conversions=100, min_days=14, confidence_level=95, auto_apply=True, auto_archive=False)
        """
        options = options or {}
        return cls(
            min_conversions=int(options.get('min_conversions', DEFAULT_MIN_CONVERSIONS)),
            min_days=int(options.get('min_days', DEFAULT_MIN_DAYS)),
            confidence_level=int(options.get('confidence_level', DEFAULT_CONFIDENCE_LEVEL)),
            auto_apply=_as_bool(options.get('auto_apply', False)),
            auto_archive=_as_bool(options.get('auto_archive', False)),
        )

    def to_dict(self) -> dict:
        return {
            'min_conversions': self.min_conversions,
            'min_days': self.min_days,
            'confidence_level': self.confidence_level,
            'auto_apply': self.auto_apply,
            'auto_archive': self.auto_archive,
        }
