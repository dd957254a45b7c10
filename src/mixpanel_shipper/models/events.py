"""Pydantic models for the normalized analytics events handed to the shipper.

Each variant (`identify`, `track`, `page`, `screen`, `alias`, `group`) is an
immutable model discriminated on `type`. Besides the raw fields, the models
expose the derived accessors the Mixpanel mapping relies on (distinct id,
library, revenue, name tag candidates, ...). Accessors never mutate the event;
anything returned as a mapping is a deep copy the caller may edit freely.

`parse_event` validates an arbitrary JSON mapping into the right variant.
"""
from __future__ import annotations

import copy
import re
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

__all__ = [
    "BaseEvent",
    "Identify",
    "Track",
    "SurfaceEvent",
    "Page",
    "Screen",
    "Alias",
    "Group",
    "Event",
    "parse_event",
    "lookup",
    "normalize_key",
]

_NON_KEY_CHARS = re.compile(r"[^A-Za-z0-9.$]+")
_COMPLETED_ORDER = re.compile(r"^[ _]?(completed[ _]?order|order[ _]?completed)[ _]?$", re.IGNORECASE)


def normalize_key(key: str) -> str:
    """Collapse a property path for case/format-insensitive comparison.

    `"Last Name"`, `"last_name"` and `"lastName"` all normalize to `"lastname"`.
    """
    return _NON_KEY_CHARS.sub("", key).lower()


def lookup(obj: Any, path: str) -> Any:
    """Resolve a dotted path inside nested mappings.

    Each segment is matched exactly first, then by `normalize_key`. Returns
    None when any segment is missing or a non-mapping is traversed.
    """
    current = obj
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        if segment in current:
            current = current[segment]
            continue
        wanted = normalize_key(segment)
        for key, value in current.items():
            if isinstance(key, str) and normalize_key(key) == wanted:
                current = value
                break
        else:
            return None
    return current


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value.replace("$", "").replace(",", "").strip())
        except ValueError:
            return None
    return None


class BaseEvent(BaseModel):
    """Fields and accessors shared by every event variant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    userId: Optional[str] = None
    sessionId: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("sessionId", "anonymousId")
    )
    timestamp: datetime = Field(default_factory=_utcnow)
    context: Dict[str, Any] = Field(default_factory=dict)
    messageId: Optional[str] = None

    @field_validator("userId", "sessionId", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("timestamp", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are treated as UTC so age arithmetic stays well defined.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("context", mode="before")
    @classmethod
    def _context_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    def proxy(self, path: str) -> Any:
        """Dotted lookup rooted at the event (e.g. `context.device.token`)."""
        head, _, rest = path.partition(".")
        root = getattr(self, head, None) if head in type(self).model_fields else None
        if not rest:
            return copy.deepcopy(root)
        return copy.deepcopy(lookup(root, rest))

    def distinct_id(self) -> Optional[str]:
        return self.userId or self.sessionId

    def ip(self) -> Optional[str]:
        return lookup(self.context, "ip")

    def user_agent(self) -> Optional[str]:
        ua = lookup(self.context, "userAgent")
        return ua if isinstance(ua, str) and ua else None

    def library(self) -> Dict[str, Any]:
        lib = lookup(self.context, "library")
        if isinstance(lib, str):
            return {"name": lib, "version": None}
        if not isinstance(lib, dict):
            lib = {}
        return {"name": lib.get("name") or "unknown", "version": lib.get("version")}

    def active(self) -> bool:
        """Whether this event should update the profile's last-seen time."""
        value = lookup(self.context, "active")
        return True if value is None else bool(value)

    def campaign(self) -> Dict[str, Any]:
        campaign = lookup(self.context, "campaign")
        return copy.deepcopy(campaign) if isinstance(campaign, dict) else {}

    def epoch_millis(self) -> int:
        return int(self.timestamp.timestamp() * 1000)

    def epoch_seconds(self) -> int:
        return int(self.timestamp.timestamp())


class Identify(BaseEvent):
    type: Literal["identify"] = "identify"
    traits: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("traits", mode="before")
    @classmethod
    def _traits_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    def trait(self, key: str) -> Any:
        return copy.deepcopy(lookup(self.traits, key))

    def name(self) -> Optional[str]:
        name = self.trait("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
        first = self.trait("firstName")
        last = self.trait("lastName")
        parts = [p.strip() for p in (first, last) if isinstance(p, str) and p.strip()]
        return " ".join(parts) or None

    def first_name(self) -> Optional[str]:
        first = self.trait("firstName")
        if isinstance(first, str):
            return first
        name = self.trait("name")
        if isinstance(name, str) and name.strip():
            return name.strip().split(" ")[0]
        return None

    def last_name(self) -> Optional[str]:
        last = self.trait("lastName")
        if isinstance(last, str):
            return last
        name = self.trait("name")
        if isinstance(name, str) and " " in name.strip():
            return name.strip().split(" ", 1)[1].strip()
        return None

    def email(self) -> Optional[str]:
        email = self.trait("email")
        if email:
            return email
        if self.userId and "@" in self.userId:
            return self.userId
        return None

    def created(self) -> Any:
        created = self.trait("created")
        return created if created is not None else self.trait("createdAt")

    def username(self) -> Optional[str]:
        return self.trait("username")

    def traits_with_aliases(self, aliases: Dict[str, str]) -> Dict[str, Any]:
        """Return a copy of the traits with `aliases` renames applied.

        The generic key is removed whenever a renamed value is emitted. Values
        come from the derived accessors where one exists (so `firstName` can be
        split out of `name`), otherwise from a normalized trait lookup. The
        user id is exposed as `id`.
        """
        derived = {
            "created": self.created,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "name": self.name,
            "username": self.username,
        }
        ret = copy.deepcopy(self.traits)
        if self.userId:
            ret["id"] = self.userId
        for alias, target in aliases.items():
            getter = derived.get(alias)
            value = getter() if getter else self.trait(alias)
            if value is None:
                continue
            ret[target] = value
            if alias != target:
                ret.pop(alias, None)
        return ret


class Track(BaseEvent):
    type: Literal["track"] = "track"
    event: str
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("properties", mode="before")
    @classmethod
    def _properties_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    def prop(self, key: str) -> Any:
        return copy.deepcopy(lookup(self.properties, key))

    def revenue(self) -> Optional[float]:
        revenue = self.prop("revenue")
        if revenue is None and _COMPLETED_ORDER.match(self.event or ""):
            revenue = self.prop("total")
        return _to_number(revenue)

    def referrer(self) -> Optional[str]:
        return (
            self.prop("referrer")
            or lookup(self.context, "referrer.url")
            or lookup(self.context, "page.referrer")
        )

    def username(self) -> Optional[str]:
        return self.prop("username") or lookup(self.context, "traits.username")

    def identify(self) -> Identify:
        """Build the Identify implied by this event's `context.traits`."""
        traits = lookup(self.context, "traits")
        return Identify(
            userId=self.userId,
            sessionId=self.sessionId,
            timestamp=self.timestamp,
            context=copy.deepcopy(self.context),
            traits=copy.deepcopy(traits) if isinstance(traits, dict) else {},
        )


class SurfaceEvent(BaseEvent):
    """Shared implementation of page and screen views.

    `surface` is the kind tag ("Page" or "Screen") used when deriving track
    event names.
    """

    surface: ClassVar[str] = "Page"

    name: Optional[str] = None
    category: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("properties", mode="before")
    @classmethod
    def _properties_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    def full_name(self) -> Optional[str]:
        if self.category and self.name:
            return f"{self.category} {self.name}"
        return self.name or None

    def event_name(self, name: Optional[str] = None) -> str:
        if name:
            return f"Viewed {name} {self.surface}"
        return f"Loaded a {self.surface}"

    def track_properties(self) -> Dict[str, Any]:
        props = copy.deepcopy(self.properties)
        if self.category:
            props["category"] = self.category
        if self.name:
            props["name"] = self.name
        return props

    def to_track(self, name: Optional[str] = None) -> Track:
        return Track(
            event=self.event_name(name),
            userId=self.userId,
            sessionId=self.sessionId,
            timestamp=self.timestamp,
            context=copy.deepcopy(self.context),
            messageId=self.messageId,
            properties=self.track_properties(),
        )


class Page(SurfaceEvent):
    surface: ClassVar[str] = "Page"
    type: Literal["page"] = "page"


class Screen(SurfaceEvent):
    surface: ClassVar[str] = "Screen"
    type: Literal["screen"] = "screen"


class Alias(BaseEvent):
    type: Literal["alias"] = "alias"
    previousId: Optional[str] = None

    @field_validator("previousId", mode="before")
    @classmethod
    def _stringify_previous(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Group(BaseEvent):
    type: Literal["group"] = "group"
    groupId: str
    traits: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("groupId", mode="before")
    @classmethod
    def _stringify_group(cls, value: Any) -> Any:
        return value if isinstance(value, str) else str(value)

    @field_validator("traits", mode="before")
    @classmethod
    def _traits_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


Event = Annotated[
    Union[Identify, Track, Page, Screen, Alias, Group], Field(discriminator="type")
]

_EVENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(Event)


def parse_event(raw: Dict[str, Any]) -> Union[Identify, Track, Page, Screen, Alias, Group]:
    """Validate a raw JSON mapping into the matching event model.

    Raises:
        pydantic.ValidationError: unknown `type` or malformed fields.
    """
    return _EVENT_ADAPTER.validate_python(raw)
