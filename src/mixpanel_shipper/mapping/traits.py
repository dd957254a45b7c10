"""People-profile trait formatting.

Mixpanel reserves `$`-prefixed names for its special profile properties
(https://mixpanel.com/help/reference/http#people-special-properties). Generic
trait names are renamed through `TRAIT_ALIASES`, and every key that normalizes
to a generic alias name is then removed so a value is never emitted twice
(e.g. a raw `"Last Name"` trait next to the derived `$last_name`).

Public Functions:
    format_traits: identify traits -> `$set` payload
    filter_people_properties: apply the `peopleProperties` allow-list
    people_device_properties: browser/OS/mobile profile properties
    super_properties: identify traits merged onto every event
    format_group_traits: group traits -> synthetic group profile `$set`
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from ..models.events import Group, Identify, Track, lookup, normalize_key
from ..models.mixpanel import DestinationSettings
from .coercion import format_date, stringify_values
from .user_agent import parse_user_agent

__all__ = [
    "TRAIT_ALIASES",
    "RESERVED_PREFIX",
    "format_traits",
    "filter_people_properties",
    "people_device_properties",
    "super_properties",
    "format_group_traits",
]

RESERVED_PREFIX = "$"

TRAIT_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "created": "$created",
        "createdAt": "$created",
        "email": "$email",
        "firstName": "$first_name",
        "lastName": "$last_name",
        "lastSeen": "$last_seen",
        "name": "$name",
        "username": "$username",
        "phone": "$phone",
        # `token` is reserved by Mixpanel for the project token.
        "token": "trait_token",
    }
)

_GENERIC_KEYS = frozenset(normalize_key(alias) for alias in TRAIT_ALIASES)
_ALIASES_BY_KEY = {normalize_key(alias): target for alias, target in TRAIT_ALIASES.items()}


def _drop_generic_keys(traits: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value
        for key, value in traits.items()
        if not (isinstance(key, str) and normalize_key(key) in _GENERIC_KEYS)
    }


def filter_people_properties(
    traits: Dict[str, Any], settings: DestinationSettings
) -> Dict[str, Any]:
    """Keep only allow-listed traits unless `setAllTraitsByDefault` is set.

    Allow-list entries may use either generic (`firstName`) or Mixpanel
    (`$first_name`) names; matching is case-insensitive.
    """
    if settings.setAllTraitsByDefault:
        return dict(traits)
    allowed = {
        _ALIASES_BY_KEY.get(normalize_key(p), p).lower() for p in settings.peopleProperties
    }
    return {k: v for k, v in traits.items() if k.lower() in allowed}


def people_device_properties(identify: Identify) -> Dict[str, Any]:
    """Browser, OS and mobile app properties for a people profile."""
    props: Dict[str, Any] = {}
    parsed = parse_user_agent(identify.user_agent())
    if parsed.get("browser"):
        props["$browser"] = parsed["browser"]["name"]
        props["$browser_version"] = parsed["browser"]["version"]
    if parsed.get("os"):
        props["$os"] = parsed["os"]["name"]
        props["$os_version"] = parsed["os"]["version"]

    ctx = identify.context
    os_name = str(lookup(ctx, "os.name") or "").lower()
    if os_name == "ios":
        props.update(
            {
                "$ios_app_version": lookup(ctx, "app.version"),
                "$ios_app_release": lookup(ctx, "app.build"),
                "$ios_device_model": lookup(ctx, "device.model"),
                "$ios_version": lookup(ctx, "os.version"),
            }
        )
    elif os_name == "android":
        props.update(
            {
                "$android_app_version": lookup(ctx, "app.version"),
                "$android_app_version_code": lookup(ctx, "app.build"),
                "$android_model": lookup(ctx, "device.model"),
                "$android_os_version": lookup(ctx, "os.version"),
                "$android_manufacturer": lookup(ctx, "device.manufacturer"),
                "$android_brand": lookup(ctx, "device.brand"),
            }
        )
    return {k: v for k, v in props.items() if v is not None}


def format_traits(
    identify: Identify,
    settings: Optional[DestinationSettings] = None,
    *,
    include_device: bool = True,
) -> Dict[str, Any]:
    """Build the `$set` trait map for an identify.

    Steps: alias renames, removal of generic-named duplicates, `$created`
    date formatting, optional allow-list filtering (when `settings` given),
    device property merge, then JSON-stringification of nested values.
    """
    traits = _drop_generic_keys(identify.traits_with_aliases(dict(TRAIT_ALIASES)))

    if "$created" in traits:
        formatted = format_date(traits["$created"])
        if formatted is None:
            traits.pop("$created")
        else:
            traits["$created"] = formatted

    if settings is not None:
        traits = filter_people_properties(traits, settings)
    if include_device:
        traits.update(people_device_properties(identify))
    return stringify_values(traits)


def super_properties(track: Track, settings: DestinationSettings) -> Dict[str, Any]:
    """Identify traits attached to every event as top-level properties.

    With `legacySuperProperties` every key not already `$`-prefixed gets the
    prefix, matching what early versions of the integration sent.
    """
    traits = format_traits(track.identify(), include_device=False)
    properties: Dict[str, Any] = {}
    for key, value in traits.items():
        if settings.legacySuperProperties and not key.startswith(RESERVED_PREFIX):
            key = RESERVED_PREFIX + key
        properties[key] = value
    return properties


def format_group_traits(group: Group) -> Dict[str, Any]:
    traits: Dict[str, Any] = {}
    for key, value in group.traits.items():
        if value is None:
            continue
        if isinstance(key, str) and normalize_key(key) == "name":
            key = "$name"
        traits[key] = value
    traits["isGroup"] = True
    return stringify_values(traits)
