from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mixpanel_shipper.errors import ConfigurationInvalid
from mixpanel_shipper.mapping.routing import IMPORT_PATH, TRACK_PATH, event_path, should_import
from mixpanel_shipper.models.events import Alias, Group, Identify, Page, Screen, Track
from mixpanel_shipper.models.mixpanel import DestinationSettings
from mixpanel_shipper.validation import validate

NOW = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)
FULL = DestinationSettings(token="tok", apiKey="key")
NO_KEY = DestinationSettings(token="tok")


def _track_aged(age: timedelta) -> Track:
    return Track(event="Aged", userId="u1", timestamp=NOW - age)


def test_import_boundary():
    boundary = timedelta(days=5)
    inside = _track_aged(boundary - timedelta(seconds=1))
    outside = _track_aged(boundary + timedelta(seconds=1))
    assert should_import(inside, NOW) is False
    assert event_path(inside, NOW) == TRACK_PATH
    assert should_import(outside, NOW) is True
    assert event_path(outside, NOW) == IMPORT_PATH
    # Strictly greater than five days
    assert should_import(_track_aged(boundary), NOW) is False


def test_future_events_are_real_time():
    assert should_import(_track_aged(-timedelta(days=2)), NOW) is False


def test_missing_token_invalid():
    with pytest.raises(ConfigurationInvalid) as exc:
        validate(Identify(userId="u1", timestamp=NOW), DestinationSettings(), now=NOW)
    assert "token" in exc.value.message
    with pytest.raises(ConfigurationInvalid):
        validate(Identify(userId="u1", timestamp=NOW), DestinationSettings(token="  "), now=NOW)


@pytest.mark.parametrize(
    "event",
    [
        Identify(userId="u1", timestamp=NOW - timedelta(days=6 * 365)),
        Track(event="x", userId="u1", timestamp=NOW - timedelta(days=6 * 365)),
        Alias(userId="u1", previousId="a", timestamp=NOW - timedelta(days=6 * 365)),
    ],
)
def test_events_older_than_five_years_rejected_even_with_api_key(event):
    with pytest.raises(ConfigurationInvalid) as exc:
        validate(event, FULL, now=NOW)
    assert exc.value.status == 400
    assert "5 years" in exc.value.message


def test_old_track_and_screen_require_api_key():
    old = NOW - timedelta(days=6)
    with pytest.raises(ConfigurationInvalid, match="apiKey"):
        validate(Track(event="x", userId="u1", timestamp=old), NO_KEY, now=NOW)
    with pytest.raises(ConfigurationInvalid, match="apiKey"):
        validate(Screen(userId="u1", name="Home", timestamp=old), NO_KEY, now=NOW)
    validate(Track(event="x", userId="u1", timestamp=old), FULL, now=NOW)


def test_api_key_rule_only_applies_to_track_and_screen():
    old = NOW - timedelta(days=6)
    validate(Identify(userId="u1", timestamp=old), NO_KEY, now=NOW)
    validate(Page(userId="u1", name="Home", timestamp=old), NO_KEY, now=NOW)
    validate(Track(event="x", userId="u1", timestamp=NOW), NO_KEY, now=NOW)


@pytest.mark.parametrize(
    "event",
    [
        Identify(traits={"a": 1}, timestamp=NOW),
        Track(event="x", timestamp=NOW),
        Page(name="Home", timestamp=NOW),
        Group(groupId="g1", timestamp=NOW),
    ],
)
def test_events_without_distinct_id_rejected(event):
    with pytest.raises(ConfigurationInvalid, match="userId or anonymousId"):
        validate(event, FULL, now=NOW)


def test_anonymous_events_accepted():
    validate(Track(event="x", sessionId="anon-1", timestamp=NOW), FULL, now=NOW)


def test_alias_requires_previous_id():
    with pytest.raises(ConfigurationInvalid, match="previousId"):
        validate(Alias(userId="new", timestamp=NOW), FULL, now=NOW)
    validate(Alias(userId="new", previousId="old", timestamp=NOW), FULL, now=NOW)
