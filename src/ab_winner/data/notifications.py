"""
Notification sinks for experiment events.

A sink receives ``emit(event_type, campaign_id, payload)`` calls. Delivery is
fire-and-forget: the winner service logs any exception a sink raises and
carries on.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

logger = logging.getLogger(__name__)

WINNER_DECLARED = "winner_declared"


class NotificationSink(Protocol):
    def emit(self, event_type: str, campaign_id: int, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotificationSink:
    """Writes every event to the log. Default sink of the winner service."""

    def emit(self, event_type: str, campaign_id: int, payload: Dict[str, Any]) -> None:
        logger.info("Notification %s for campaign %s: %s", event_type, campaign_id, payload)


@dataclass
class Notification:
    event_type: str
    campaign_id: int
    payload: Dict[str, Any] = field(default_factory=dict)


class RecordingNotificationSink:
    """Keeps emitted events in memory, e.g. for an admin activity feed."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: List[Notification] = []

    def emit(self, event_type: str, campaign_id: int, payload: Dict[str, Any]) -> None:
        with self._lock:
            self._events.append(Notification(event_type, campaign_id, dict(payload)))

    @property
    def events(self) -> List[Notification]:
        with self._lock:
            return list(self._events)
