from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from mixpanel_shipper.models.events import (
    Alias,
    Group,
    Identify,
    Page,
    Screen,
    Track,
    lookup,
    parse_event,
)


def test_parse_event_dispatches_on_type():
    track = parse_event(
        {
            "type": "track",
            "event": "Signed Up",
            "anonymousId": "anon-1",
            "timestamp": "2024-03-01T10:00:00Z",
            "properties": {"plan": "pro"},
        }
    )
    assert isinstance(track, Track)
    assert track.sessionId == "anon-1"
    assert track.distinct_id() == "anon-1"
    assert track.timestamp == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    assert isinstance(parse_event({"type": "identify", "userId": 42}), Identify)
    assert isinstance(parse_event({"type": "page", "name": "Home"}), Page)
    assert isinstance(parse_event({"type": "screen", "name": "Home"}), Screen)
    assert isinstance(parse_event({"type": "alias", "userId": "u", "previousId": "a"}), Alias)
    assert isinstance(parse_event({"type": "group", "userId": "u", "groupId": 7}), Group)


def test_parse_event_rejects_unknown_type():
    with pytest.raises(ValidationError):
        parse_event({"type": "bogus"})


def test_naive_timestamp_assumed_utc_and_default_now():
    ident = Identify(userId="u1", timestamp=datetime(2024, 1, 1, 0, 0, 0))
    assert ident.timestamp.tzinfo is timezone.utc
    before = datetime.now(timezone.utc)
    fresh = Identify(userId="u1")
    assert fresh.timestamp >= before


def test_user_id_coerced_to_string():
    ident = Identify(userId=123)
    assert ident.userId == "123"


def test_events_are_immutable():
    track = Track(event="x", userId="u1")
    with pytest.raises(ValidationError):
        track.event = "y"  # type: ignore[misc]


def test_lookup_normalizes_keys():
    data = {"Last Name": "Doe", "device": {"Token": "abc"}}
    assert lookup(data, "lastName") == "Doe"
    assert lookup(data, "device.token") == "abc"
    assert lookup(data, "device.missing") is None
    assert lookup({"a": "str"}, "a.b") is None


def test_identify_derived_names():
    ident = Identify(userId="u1", traits={"name": "Ada Lovelace King"})
    assert ident.first_name() == "Ada"
    assert ident.last_name() == "Lovelace King"
    assert ident.name() == "Ada Lovelace King"

    ident = Identify(userId="u1", traits={"firstName": "Grace", "lastName": "Hopper"})
    assert ident.name() == "Grace Hopper"


def test_identify_email_falls_back_to_email_like_user_id():
    assert Identify(userId="a@b.co").email() == "a@b.co"
    assert Identify(userId="plain").email() is None


def test_identify_created_falls_back_to_created_at():
    ident = Identify(userId="u1", traits={"createdAt": "2020-01-01T00:00:00Z"})
    assert ident.created() == "2020-01-01T00:00:00Z"


def test_accessors_do_not_leak_mutable_state():
    ident = Identify(userId="u1", traits={"address": {"city": "SF"}})
    traits = ident.traits_with_aliases({})
    traits["address"]["city"] = "LA"
    assert ident.traits["address"]["city"] == "SF"


def test_track_revenue_parsing():
    assert Track(event="Purchased", properties={"revenue": 9.99}).revenue() == 9.99
    assert Track(event="Purchased", properties={"revenue": "$1,200.50"}).revenue() == 1200.50
    assert Track(event="Purchased", properties={"revenue": "n/a"}).revenue() is None
    assert Track(event="Completed Order", properties={"total": 30}).revenue() == 30
    assert Track(event="Viewed", properties={"total": 30}).revenue() is None


def test_track_identify_ignores_ill_formed_traits():
    track = Track(event="x", userId="u1", context={"traits": "aaa"})
    assert track.identify().traits == {}
    track = Track(event="x", userId="u1", context={"traits": {"email": "e@x.io"}})
    assert track.identify().email() == "e@x.io"


def test_library_and_active_defaults():
    track = Track(event="x", userId="u1")
    assert track.library() == {"name": "unknown", "version": None}
    assert track.active() is True
    track = Track(
        event="x",
        userId="u1",
        context={"library": {"name": "analytics-ios", "version": "3.0"}, "active": False},
    )
    assert track.library() == {"name": "analytics-ios", "version": "3.0"}
    assert track.active() is False


def test_surface_event_names_share_one_implementation():
    page = Page(userId="u1", name="Intro", category="Docs", properties={"url": "/docs"})
    screen = Screen(userId="u1", name="Home")
    assert page.full_name() == "Docs Intro"
    assert page.event_name("Docs") == "Viewed Docs Page"
    assert page.event_name() == "Loaded a Page"
    assert screen.event_name(screen.name) == "Viewed Home Screen"
    assert screen.event_name() == "Loaded a Screen"

    derived = page.to_track(page.name)
    assert derived.event == "Viewed Intro Page"
    assert derived.properties == {"url": "/docs", "category": "Docs", "name": "Intro"}
    assert derived.timestamp == page.timestamp
    assert page.properties == {"url": "/docs"}
