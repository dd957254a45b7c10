"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration parameters
from environment variables and a `.env` file: Mixpanel destination options,
HTTP transport tuning, logging level and CLI runtime behavior.

The `get_settings` function provides a cached, singleton instance of the
configuration, and `Settings.destination_settings` converts the flat
environment view into the per-call `DestinationSettings` model.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict

from .models.mixpanel import DestinationSettings
from .transport import DEFAULT_HOST


class Settings(BaseSettings):
    """Defines all application configuration parameters.

    Destination options mirror the `DestinationSettings` fields with a
    `MIXPANEL_` prefix; list options (`MIXPANEL_INCREMENTS`,
    `MIXPANEL_PEOPLE_PROPERTIES`) are comma separated.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Mixpanel destination
    MIXPANEL_TOKEN: str = Field(default="", description="Mixpanel project token")
    MIXPANEL_API_KEY: Optional[str] = Field(
        default=None, description="Mixpanel API key (required to import events older than 5 days)"
    )
    MIXPANEL_PEOPLE: bool = Field(default=False, description="Send people profile updates")
    MIXPANEL_INCREMENTS: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Event names that increment a people counter"
    )
    MIXPANEL_PEOPLE_PROPERTIES: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Trait allow-list used when not setting all traits"
    )
    MIXPANEL_SET_ALL_TRAITS_BY_DEFAULT: bool = Field(
        default=True, description="Send every trait instead of the peopleProperties allow-list"
    )
    MIXPANEL_LEGACY_SUPER_PROPERTIES: bool = Field(
        default=False, description="Prefix super property keys with '$' (early integration format)"
    )
    MIXPANEL_TRACK_ALL_PAGES: bool = False
    MIXPANEL_TRACK_CATEGORIZED_PAGES: bool = True
    MIXPANEL_TRACK_NAMED_PAGES: bool = True
    MIXPANEL_CONSOLIDATED_PAGE_CALLS: bool = False

    # HTTP transport
    MIXPANEL_HOST: str = Field(default=DEFAULT_HOST, description="Base URL for the Mixpanel API")
    HTTP_TIMEOUT: float = Field(default=30, description="Timeout (seconds) for Mixpanel requests")

    # Logging & runtime behavior
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    CHECKPOINT_FILE: str = Field(
        default=".ship_checkpoint",
        description="Path to file storing the last processed input line number",
    )
    DRY_RUN: bool = Field(
        default=True,
        description="If true, do not send requests to Mixpanel (planning only)",
    )

    @field_validator("MIXPANEL_INCREMENTS", "MIXPANEL_PEOPLE_PROPERTIES", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def destination_settings(self) -> DestinationSettings:
        return DestinationSettings(
            token=self.MIXPANEL_TOKEN or None,
            apiKey=self.MIXPANEL_API_KEY or None,
            people=self.MIXPANEL_PEOPLE,
            increments=self.MIXPANEL_INCREMENTS,
            peopleProperties=self.MIXPANEL_PEOPLE_PROPERTIES,
            setAllTraitsByDefault=self.MIXPANEL_SET_ALL_TRAITS_BY_DEFAULT,
            legacySuperProperties=self.MIXPANEL_LEGACY_SUPER_PROPERTIES,
            trackAllPages=self.MIXPANEL_TRACK_ALL_PAGES,
            trackCategorizedPages=self.MIXPANEL_TRACK_CATEGORIZED_PAGES,
            trackNamedPages=self.MIXPANEL_TRACK_NAMED_PAGES,
            consolidatedPageCalls=self.MIXPANEL_CONSOLIDATED_PAGE_CALLS,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()
