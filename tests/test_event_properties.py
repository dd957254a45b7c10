from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mixpanel_shipper.mapping import properties as properties_module
from mixpanel_shipper.mapping.properties import format_properties, name_tag
from mixpanel_shipper.models.events import Track
from mixpanel_shipper.models.mixpanel import DestinationSettings

TS = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)
SETTINGS = DestinationSettings(token="tok-123")


@pytest.fixture(autouse=True)
def _no_user_agent(monkeypatch):
    monkeypatch.setattr(properties_module, "parse_user_agent", lambda ua: {})


def _track(**overrides) -> Track:
    base = dict(
        event="Baked a cake",
        userId="u1",
        timestamp=TS,
        properties={
            "revenue": 19.95,
            "layers": ["chocolate", "strawberry"],
            "address": {"state": "CA", "zip": 94107},
            "referrer": "https://google.com",
            "username": "baker",
            "searchEngine": "google",
            "bad": None,
        },
        context={
            "ip": "4.184.68.0",
            "library": {"name": "analytics-node", "version": "1.2.3"},
            "os": {"name": "iOS", "version": "17.2"},
            "device": {"manufacturer": "Apple", "model": "iPhone15,2", "brand": "apple"},
            "screen": {"density": 3, "height": 844, "width": 390},
            "network": {"bluetooth": True, "cellular": True, "carrier": "T-Mobile", "wifi": False},
            "app": {"version": "2.1", "build": "210"},
            "campaign": {"source": "newsletter", "medium": "email", "name": "fall", "term": "cake", "content": "hero"},
            "traits": {"name": "Jane Baker", "email": "jane@example.com"},
        },
    )
    base.update(overrides)
    return Track(**base)


def test_semantic_properties_merged():
    props = format_properties(_track(), SETTINGS)
    assert props["token"] == "tok-123"
    assert props["distinct_id"] == "u1"
    assert props["time"] == int(TS.timestamp())
    assert props["mp_lib"] == "Segment: analytics-node"
    assert props["$lib_version"] == "1.2.3"
    assert props["ip"] == "4.184.68.0"
    assert props["revenue"] == 19.95
    assert props["$os"] == "iOS"
    assert props["$os_version"] == "17.2"
    assert props["$manufacturer"] == "Apple"
    assert props["$model"] == "iPhone15,2"
    assert props["$brand"] == "apple"
    assert props["$screen_dpi"] == 3
    assert props["$screen_height"] == 844
    assert props["$screen_width"] == 390
    assert props["$bluetooth_enabled"] is True
    assert props["$has_telephone"] is True
    assert props["$carrier"] == "T-Mobile"
    assert props["$wifi"] is False
    assert props["$app_version"] == "2.1"
    assert props["$app_release"] == "210"


def test_rederived_keys_replaced():
    props = format_properties(_track(), SETTINGS)
    assert props["$referrer"] == "https://google.com"
    assert props["$username"] == "baker"
    assert props["$search_engine"] == "google"
    for raw in ("referrer", "username", "searchEngine"):
        assert raw not in props


def test_campaign_utm_fields():
    props = format_properties(_track(), SETTINGS)
    assert props["utm_source"] == "newsletter"
    assert props["utm_medium"] == "email"
    assert props["utm_campaign"] == "fall"
    assert props["utm_term"] == "cake"
    assert props["utm_content"] == "hero"
    bare = format_properties(_track(context={}), SETTINGS)
    assert not any(k.startswith("utm_") for k in bare)


def test_nulls_stripped_and_nested_values_stringified():
    props = format_properties(_track(), SETTINGS)
    assert "bad" not in props
    assert props["layers"] == '["chocolate","strawberry"]'
    assert props["address"] == '{"state":"CA","zip":94107}'


def test_caller_property_not_clobbered_by_missing_context():
    props = format_properties(_track(properties={"ip": "1.2.3.4"}, context={}), SETTINGS)
    assert props["ip"] == "1.2.3.4"


def test_name_tag_priority():
    assert name_tag(_track()) == "Jane Baker"
    assert name_tag(_track(context={"traits": {"email": "jane@example.com"}})) == "jane@example.com"
    assert name_tag(_track(context={})) == "u1"
    assert name_tag(Track(event="x", sessionId="anon-9")) == "anon-9"
    props = format_properties(_track(), SETTINGS)
    assert props["mp_name_tag"] == "Jane Baker"


def test_user_agent_overrides_browser_and_os(monkeypatch):
    monkeypatch.setattr(
        properties_module,
        "parse_user_agent",
        lambda ua: {"browser": {"name": "IE", "version": "10.0"}, "os": {"name": "Windows", "version": "8"}},
    )
    track = _track(context={"userAgent": "Mozilla/5.0 (compatible; MSIE 10.0; Windows NT 6.2; Trident/6.0)", "os": {"name": "iOS"}})
    props = format_properties(track, SETTINGS)
    assert props["$browser"] == "IE"
    assert props["$os"] == "Windows"


def test_formatting_is_deterministic():
    track = _track()
    assert format_properties(track, SETTINGS) == format_properties(track, SETTINGS)
