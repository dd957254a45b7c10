"""Real-time vs historical-import routing.

Mixpanel only accepts events on `/track` while they are recent; anything older
than five days must go through `/import`, which requires the project API key.
Events older than five years are refused outright (see `validation`).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from ..models.events import BaseEvent

__all__ = [
    "IMPORT_AFTER",
    "MAX_EVENT_AGE",
    "TRACK_PATH",
    "IMPORT_PATH",
    "ENGAGE_PATH",
    "event_age",
    "should_import",
    "event_path",
]

IMPORT_AFTER = timedelta(days=5)
# Five calendar years including leap days.
MAX_EVENT_AGE = timedelta(days=365.25 * 5)

TRACK_PATH = "/track"
IMPORT_PATH = "/import"
ENGAGE_PATH = "/engage"


def event_age(event: BaseEvent, now: Optional[datetime] = None) -> timedelta:
    now = now or datetime.now(timezone.utc)
    timestamp = event.timestamp or now
    return now - timestamp


def should_import(event: BaseEvent, now: Optional[datetime] = None) -> bool:
    """True when the event is older than the real-time ingestion window."""
    return event_age(event, now) > IMPORT_AFTER


def event_path(event: BaseEvent, now: Optional[datetime] = None) -> str:
    return IMPORT_PATH if should_import(event, now) else TRACK_PATH
