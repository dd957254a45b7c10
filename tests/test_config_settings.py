from __future__ import annotations

from mixpanel_shipper.config import Settings
from mixpanel_shipper.transport import DEFAULT_HOST


def _clear_env(monkeypatch):
    for name in Settings.model_fields:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear_env(monkeypatch)
    s = Settings(_env_file=None)
    assert s.MIXPANEL_TOKEN == ""
    assert s.MIXPANEL_HOST == DEFAULT_HOST
    assert s.DRY_RUN is True
    assert s.CHECKPOINT_FILE == ".ship_checkpoint"

    dest = s.destination_settings()
    assert dest.token is None
    assert dest.apiKey is None
    assert dest.people is False
    assert dest.setAllTraitsByDefault is True
    assert dest.trackCategorizedPages is True
    assert dest.trackNamedPages is True
    assert dest.trackAllPages is False
    assert dest.consolidatedPageCalls is False


def test_env_lists_are_comma_separated(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("MIXPANEL_TOKEN", "tok")
    monkeypatch.setenv("MIXPANEL_API_KEY", "key")
    monkeypatch.setenv("MIXPANEL_PEOPLE", "true")
    monkeypatch.setenv("MIXPANEL_INCREMENTS", "Signed Up, Purchased ,,")
    monkeypatch.setenv("MIXPANEL_PEOPLE_PROPERTIES", "$first_name,met")
    monkeypatch.setenv("MIXPANEL_SET_ALL_TRAITS_BY_DEFAULT", "false")
    monkeypatch.setenv("MIXPANEL_CONSOLIDATED_PAGE_CALLS", "1")
    s = Settings(_env_file=None)
    assert s.MIXPANEL_INCREMENTS == ["Signed Up", "Purchased"]
    assert s.MIXPANEL_PEOPLE_PROPERTIES == ["$first_name", "met"]

    dest = s.destination_settings()
    assert dest.token == "tok"
    assert dest.apiKey == "key"
    assert dest.people is True
    assert dest.increments == ["Signed Up", "Purchased"]
    assert dest.peopleProperties == ["$first_name", "met"]
    assert dest.setAllTraitsByDefault is False
    assert dest.consolidatedPageCalls is True


def test_blank_lists(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("MIXPANEL_INCREMENTS", "")
    s = Settings(_env_file=None)
    assert s.MIXPANEL_INCREMENTS == []
