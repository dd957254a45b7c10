"""Value normalization applied to payloads right before transport.

Mixpanel stores flat property values, so nested mappings and sequences are
serialized to JSON strings (one level: the value itself becomes a string,
its contents are not rewritten first). Null values are dropped, dates are
rendered in the `YYYY-MM-DDTHH:MM:SS` form the people API expects, and the
final payload is base64(JSON) encoded into the `data` query parameter.

All helpers return new containers; inputs are never mutated.
"""
from __future__ import annotations

import base64
import json
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

__all__ = [
    "stringify_values",
    "reject_nulls",
    "lowercase",
    "format_date",
    "iso_timestamp",
    "to_json",
    "b64encode",
    "b64decode",
]


def iso_timestamp(value: datetime) -> str:
    """Render a datetime as UTC ISO-8601 with millisecond precision and `Z`."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return iso_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(value: Any) -> str:
    return json.dumps(value, default=_json_default, separators=(",", ":"), ensure_ascii=False)


def stringify_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Replace every mapping/sequence value with its JSON string."""
    out: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, (dict, list, tuple)):
            out[key] = to_json(value)
        else:
            out[key] = value
    return out


def reject_nulls(values: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def lowercase(items: Optional[Iterable[Any]]) -> List[str]:
    return [str(item).lower() for item in (items or [])]


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        # Epoch milliseconds.
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
    return None


def format_date(value: Any) -> Optional[str]:
    """Format a date for the people API (first 19 chars of the UTC ISO string).

    Accepts datetimes, dates, ISO strings and epoch milliseconds. Returns None
    for anything unparseable.
    """
    parsed = _parse_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def b64encode(payload: Dict[str, Any]) -> str:
    return base64.b64encode(to_json(payload).encode("utf-8")).decode("ascii")


def b64decode(data: str) -> Any:
    return json.loads(base64.b64decode(data).decode("utf-8"))
