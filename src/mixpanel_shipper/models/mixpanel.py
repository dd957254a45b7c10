"""Pydantic models for the Mixpanel side of the mapping.

`DestinationSettings` carries the per-destination options a dispatcher hands
in with every event. `MixpanelRequest` is the transport-agnostic descriptor the
request planner produces for each HTTP call; the encoded payload always
travels in the `data` query parameter. `CallResult` is what the transport
returns once a request has been accepted by Mixpanel.
"""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = ["DestinationSettings", "MixpanelRequest", "CallResult"]


class DestinationSettings(BaseModel):
    """Per-destination Mixpanel options (read-only during a call)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: Optional[str] = None
    apiKey: Optional[str] = None
    people: bool = False
    increments: List[str] = Field(default_factory=list)
    peopleProperties: List[str] = Field(default_factory=list)
    setAllTraitsByDefault: bool = True
    legacySuperProperties: bool = False
    trackAllPages: bool = False
    trackCategorizedPages: bool = True
    trackNamedPages: bool = True
    consolidatedPageCalls: bool = False

    @field_validator("increments", "peopleProperties", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        # Environment-sourced lists arrive as comma separated strings.
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class MixpanelRequest(BaseModel):
    """One planned HTTP call against the Mixpanel API."""

    method: Literal["GET", "POST"]
    path: str
    query: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    # Decoded payload kept alongside the encoded `data` query value for logs/tests.
    payload: Dict[str, Any] = Field(default_factory=dict)
    step: str = ""


class CallResult(BaseModel):
    request: MixpanelRequest
    status_code: int
    body: Any = None
