"""Pre-flight validation run before any request is planned.

Rules (first failure wins):
    1. `settings.token` must be a non-empty string.
    2. The event must resolve to a distinct id (`userId` or `sessionId`);
       an alias needs its `previousId` instead.
    3. The event must not be older than five years; Mixpanel drops such events.
    4. Without `settings.apiKey`, `track`/`screen` events older than five days
       are refused, because historical import requires the API key.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .errors import ConfigurationInvalid
from .mapping.routing import MAX_EVENT_AGE, event_age, should_import
from .models.events import BaseEvent
from .models.mixpanel import DestinationSettings

logger = logging.getLogger(__name__)

__all__ = ["IMPORT_KEY_TYPES", "validate"]

IMPORT_KEY_TYPES = frozenset({"track", "screen"})


def validate(
    event: BaseEvent, settings: DestinationSettings, now: Optional[datetime] = None
) -> None:
    """Raise `ConfigurationInvalid` when the event cannot be sent.

    Args:
        event: Any event variant.
        settings: Destination settings for this call.
        now: Reference time (defaults to the current UTC time).
    """
    if not settings.token or not settings.token.strip():
        raise ConfigurationInvalid("settings.token is required")

    if event.type == "alias":
        if not getattr(event, "previousId", None):
            raise ConfigurationInvalid("alias message requires a previousId")
    elif not event.distinct_id():
        raise ConfigurationInvalid(f"{event.type} message requires a userId or anonymousId")

    if event_age(event, now) > MAX_EVENT_AGE:
        raise ConfigurationInvalid(
            f"{event.type} message timestamp {event.timestamp.isoformat()} is older than 5 years"
        )

    if not settings.apiKey and event.type in IMPORT_KEY_TYPES and should_import(event, now):
        raise ConfigurationInvalid(
            f'.apiKey is required if "{event.type}" message is older than 5 days.'
        )
    logger.debug("Validated %s message %s", event.type, event.messageId)
