"""Event property formatting for `/track` and `/import` payloads.

Reference: https://mixpanel.com/help/reference/http#tracking-events

The raw event properties are extended with Mixpanel's semantic properties
(distinct id, token, epoch-second time, library tag, device and network
details from the event context, campaign UTM fields) and a `mp_name_tag`.
Keys that are re-derived under a `$` name (`referrer`, `username`,
`searchEngine`) are removed from the raw set first.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from ..models.events import Track, lookup, normalize_key
from ..models.mixpanel import DestinationSettings
from .coercion import reject_nulls, stringify_values
from .user_agent import parse_user_agent

__all__ = ["library_tag", "name_tag", "campaign_properties", "format_properties"]

_REDERIVED = frozenset(normalize_key(k) for k in ("referrer", "username", "searchEngine"))

# Mixpanel property -> dotted path in the event context.
_CONTEXT_PROPERTIES = (
    ("$os", "os.name"),
    ("$os_version", "os.version"),
    ("$manufacturer", "device.manufacturer"),
    ("$screen_dpi", "screen.density"),
    ("$screen_height", "screen.height"),
    ("$screen_width", "screen.width"),
    ("$bluetooth_enabled", "network.bluetooth"),
    ("$has_telephone", "network.cellular"),
    ("$carrier", "network.carrier"),
    ("$app_version", "app.version"),
    ("$wifi", "network.wifi"),
    ("$brand", "device.brand"),
    ("$model", "device.model"),
    ("$app_release", "app.build"),
)

_CAMPAIGN_PROPERTIES = (
    ("utm_source", "source"),
    ("utm_medium", "medium"),
    ("utm_term", "term"),
    ("utm_content", "content"),
    ("utm_campaign", "name"),
)


def library_tag(event: Any) -> str:
    return "Segment: " + str(event.library()["name"])


def name_tag(track: Track) -> Optional[str]:
    """First non-empty of identify name, identify email, user id, session id."""
    identify = track.identify()
    for candidate in (identify.name(), identify.email(), track.userId, track.sessionId):
        if candidate:
            return candidate
    return None


def campaign_properties(track: Track) -> Dict[str, Any]:
    campaign = track.campaign()
    if not campaign:
        return {}
    return {
        prop: lookup(campaign, key)
        for prop, key in _CAMPAIGN_PROPERTIES
        if lookup(campaign, key) is not None
    }


def format_properties(track: Track, settings: DestinationSettings) -> Dict[str, Any]:
    properties = {
        k: v
        for k, v in track.properties.items()
        if not (isinstance(k, str) and normalize_key(k) in _REDERIVED)
    }

    semantic: Dict[str, Any] = {
        "token": settings.token,
        "distinct_id": track.distinct_id(),
        "time": track.epoch_seconds(),
        "mp_lib": library_tag(track),
        "$lib_version": track.library()["version"],
        "$search_engine": track.prop("searchEngine"),
        "$referrer": track.referrer(),
        "$username": track.username(),
        "ip": track.ip(),
    }
    for prop, path in _CONTEXT_PROPERTIES:
        semantic[prop] = lookup(track.context, path)
    semantic.update(campaign_properties(track))
    # Unset semantic values never clobber a caller-supplied property.
    properties.update({k: v for k, v in semantic.items() if v is not None})

    properties["mp_name_tag"] = name_tag(track)
    properties = stringify_values(reject_nulls(properties))

    parsed = parse_user_agent(track.user_agent())
    if parsed.get("browser"):
        properties["$browser"] = parsed["browser"]["name"]
    if parsed.get("os"):
        properties["$os"] = parsed["os"]["name"]
    return properties
