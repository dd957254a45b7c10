"""Request planning: which Mixpanel calls an event turns into, and in what order.

A plan is an ordered list of `Step`s. Each step is a pure function from the
results of the steps already executed to the `MixpanelRequest` it wants to
send. The driver in `destination` runs the steps one by one and stops at the
first failure, so a step that depends on an earlier one (the group user
`$union`) is never built, let alone sent, when that earlier call failed.

Call shapes (https://mixpanel.com/help/reference/http):

    identify  GET  /engage  $set  [+ $union $ios_devices when a device token exists]
    track     GET  /engage  $add + $set "Last <event>"   (people + increments only)
              POST /track | /import                       (always)
              GET  /engage  $append $transactions         (revenue only)
    alias     POST /track   $create_alias
    group     GET  /engage  $set on "group.<id>", then $union groups on the user
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from .mapping.coercion import b64encode, format_date, lowercase
from .mapping.properties import format_properties, library_tag
from .mapping.routing import ENGAGE_PATH, TRACK_PATH, event_path, should_import
from .mapping.traits import format_group_traits, format_traits, super_properties
from .models.events import Alias, BaseEvent, Group, Identify, Track, SurfaceEvent
from .models.mixpanel import CallResult, DestinationSettings, MixpanelRequest

logger = logging.getLogger(__name__)

__all__ = [
    "Step",
    "BASE_QUERY",
    "ALIAS_EVENT",
    "GROUP_PREFIX",
    "PRIMARY_STEP",
    "engage_request",
    "event_request",
    "resolve_flag",
    "people_base_payload",
    "plan_identify",
    "plan_increment",
    "plan_revenue",
    "track_payload",
    "plan_track",
    "plan_alias",
    "plan_group",
    "surface_tracks",
]

# ip=0 stops Mixpanel from geolocating our server; verbose=1 forces JSON bodies.
BASE_QUERY: Dict[str, Any] = {"ip": 0, "verbose": 1}
ALIAS_EVENT = "$create_alias"
GROUP_PREFIX = "group."
PRIMARY_STEP = "track.event"


@dataclass(frozen=True)
class Step:
    name: str
    build: Callable[[Sequence[CallResult]], MixpanelRequest]


def _static(request: MixpanelRequest) -> Step:
    return Step(name=request.step, build=lambda _prior: request)


def engage_request(
    payload: Dict[str, Any], step: str, *, ignore_ip: bool = True
) -> MixpanelRequest:
    query: Dict[str, Any] = dict(BASE_QUERY) if ignore_ip else {"verbose": 1}
    query["data"] = b64encode(payload)
    return MixpanelRequest(method="GET", path=ENGAGE_PATH, query=query, payload=payload, step=step)


def event_request(
    path: str, payload: Dict[str, Any], step: str, *, api_key: Optional[str] = None
) -> MixpanelRequest:
    query: Dict[str, Any] = dict(BASE_QUERY)
    query["data"] = b64encode(payload)
    if api_key:
        query["api_key"] = api_key
    return MixpanelRequest(
        method="POST",
        path=path,
        query=query,
        # Mixpanel rejects POSTs without an explicit length.
        headers={"Content-Length": "0"},
        payload=payload,
        step=step,
    )


def resolve_flag(event: BaseEvent, name: str, default: bool) -> bool:
    """Context override lookup: `context.Mixpanel.<name>`, then `context.<name>`."""
    for path in (f"context.Mixpanel.{name}", f"context.{name}"):
        value = event.proxy(path)
        if value is not None:
            return bool(value)
    return default


def people_base_payload(event: BaseEvent, settings: DestinationSettings) -> Dict[str, Any]:
    """Fields shared by every people-profile update for `event`'s user."""
    ignore_ip = resolve_flag(event, "ignoreIp", False)
    ignore_time = resolve_flag(event, "ignoreTime", not event.active())
    return {
        "$distinct_id": event.distinct_id(),
        "$token": settings.token,
        "$time": event.epoch_millis(),
        "$ip": 0 if ignore_ip else (event.ip() or 0),
        "$ignore_time": ignore_time,
        "mp_lib": library_tag(event),
    }


def plan_identify(identify: Identify, settings: DestinationSettings) -> List[Step]:
    if not settings.people:
        return []
    base = people_base_payload(identify, settings)
    # $set and $union cannot share a request.
    steps = [
        _static(
            engage_request(
                {"$set": format_traits(identify, settings), **base}, "identify.$set"
            )
        )
    ]
    # https://mixpanel.com/help/reference/ios-push-notifications
    device_token = identify.proxy("context.device.token")
    if device_token:
        steps.append(
            _static(
                engage_request(
                    {"$union": {"$ios_devices": [device_token]}, **base}, "identify.$union"
                )
            )
        )
    return steps


def plan_increment(track: Track, settings: DestinationSettings) -> List[Step]:
    """`$add` a counter and `$set` "Last <event>" when the event is allow-listed.

    Mixpanel refuses two operations in one update, hence two calls.
    """
    if track.event.lower() not in lowercase(settings.increments):
        return []
    if not track.userId:
        return []
    skeleton = {
        "$distinct_id": track.userId,
        "$token": settings.token,
        "mp_lib": library_tag(track),
    }
    return [
        _static(engage_request({**skeleton, "$add": {track.event: 1}}, "increment.$add")),
        _static(
            engage_request(
                {**skeleton, "$set": {"Last " + track.event: format_date(track.timestamp)}},
                "increment.$set",
            )
        ),
    ]


def plan_revenue(track: Track, settings: DestinationSettings) -> List[Step]:
    revenue = track.revenue()
    if not revenue:
        return []
    payload = {
        "$distinct_id": track.distinct_id(),
        "$token": settings.token,
        "$ip": track.ip(),
        "$append": {
            "$transactions": {
                "$time": format_date(track.timestamp),
                "$amount": revenue,
            }
        },
    }
    payload = {k: v for k, v in payload.items() if v is not None}
    ignore_ip = resolve_flag(track, "ignoreIp", True)
    return [_static(engage_request(payload, "track.revenue", ignore_ip=ignore_ip))]


def track_payload(track: Track, settings: DestinationSettings) -> Dict[str, Any]:
    properties = format_properties(track, settings)
    properties.update(super_properties(track, settings))
    return {"event": track.event, "properties": properties}


def plan_track(
    track: Track, settings: DestinationSettings, now: Optional[datetime] = None
) -> List[Step]:
    imported = should_import(track, now)
    steps: List[Step] = []
    if settings.people:
        steps.extend(plan_increment(track, settings))
    steps.append(
        _static(
            event_request(
                event_path(track, now),
                track_payload(track, settings),
                PRIMARY_STEP,
                api_key=settings.apiKey if imported else None,
            )
        )
    )
    steps.extend(plan_revenue(track, settings))
    logger.debug(
        "Planned %d call(s) for track %r imported=%s", len(steps), track.event, imported
    )
    return steps


def plan_alias(alias: Alias, settings: DestinationSettings) -> List[Step]:
    payload = {
        "event": ALIAS_EVENT,
        "properties": {
            "distinct_id": alias.previousId,
            "alias": alias.userId,
            "token": settings.token,
        },
    }
    return [_static(event_request(TRACK_PATH, payload, "alias", api_key=settings.apiKey))]


def plan_group(group: Group, settings: DestinationSettings) -> List[Step]:
    """Upsert the synthetic group profile, then union its key onto the user.

    The second step is only built after the first call succeeded.
    """
    group_key = GROUP_PREFIX + group.groupId
    user_base = people_base_payload(group, settings)
    group_payload = {
        "$set": format_group_traits(group),
        **user_base,
        "$distinct_id": group_key,
        # Group profiles always update last seen.
        "$ignore_time": False,
    }

    def _union_user(prior: Sequence[CallResult]) -> MixpanelRequest:
        if not prior or prior[-1].request.step != "group.$set":
            raise RuntimeError("group user union planned without a successful group upsert")
        return engage_request({"$union": {"groups": [group_key]}, **user_base}, "group.$union")

    return [
        _static(engage_request(group_payload, "group.$set")),
        Step(name="group.$union", build=_union_user),
    ]


def surface_tracks(msg: SurfaceEvent, settings: DestinationSettings) -> List[Track]:
    """Translate a page/screen view into the track events to send.

    `consolidatedPageCalls` sends a single generic "Loaded a Page/Screen"
    event. Otherwise legacy `trackAllPages` sends the default-named event and
    stops; failing that, categorized and named views are checked
    independently and may yield zero, one or two events.
    """
    if settings.consolidatedPageCalls:
        return [msg.to_track()]
    if settings.trackAllPages:
        return [msg.to_track()]
    tracks: List[Track] = []
    if settings.trackCategorizedPages and msg.category:
        tracks.append(msg.to_track(msg.full_name() or msg.category))
    if settings.trackNamedPages and msg.name:
        tracks.append(msg.to_track(msg.name))
    return tracks
