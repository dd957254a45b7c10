"""User-agent parsing adapter.

Wraps `ua_parser.user_agent_parser` and reduces its output to the browser and
OS name/version pairs the Mixpanel mapping needs:

    {"browser": {"name": "IE", "version": "10.0"},
     "os": {"name": "Windows", "version": "8"}}

Unknown families ("Other") are dropped; an unparseable or empty string yields
an empty mapping.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from ua_parser import user_agent_parser

logger = logging.getLogger(__name__)

__all__ = ["parse_user_agent"]


def _version(parts: Dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    values = [str(parts[k]) for k in keys if parts.get(k) not in (None, "")]
    return ".".join(values) or None


def _section(parts: Optional[Dict[str, Any]], keys: tuple[str, ...]) -> Optional[Dict[str, Any]]:
    if not parts:
        return None
    family = parts.get("family")
    if not family or family == "Other":
        return None
    return {"name": family, "version": _version(parts, keys)}


@lru_cache(maxsize=512)
def _parse_cached(ua: str) -> tuple[Optional[tuple[str, Optional[str]]], Optional[tuple[str, Optional[str]]]]:
    parsed = user_agent_parser.Parse(ua)
    browser = _section(parsed.get("user_agent"), ("major", "minor"))
    os_ = _section(parsed.get("os"), ("major", "minor", "patch"))
    return (
        (browser["name"], browser["version"]) if browser else None,
        (os_["name"], os_["version"]) if os_ else None,
    )


def parse_user_agent(ua: Optional[str]) -> Dict[str, Dict[str, Any]]:
    """Parse a raw user-agent string into browser and OS name/version."""
    if not ua:
        return {}
    browser, os_ = _parse_cached(ua)
    out: Dict[str, Dict[str, Any]] = {}
    if browser:
        out["browser"] = {"name": browser[0], "version": browser[1]}
    if os_:
        out["os"] = {"name": os_[0], "version": os_[1]}
    if not out:
        logger.debug("User agent not recognized: %s", ua[:120])
    return out
