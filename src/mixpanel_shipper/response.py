"""Interpretation of Mixpanel HTTP responses.

With `verbose=1` Mixpanel answers HTTP 200 for most logical failures and
reports the outcome in the JSON body: `{"status": 1, "error": null}` on
success, `{"status": 0, "error": "<reason>"}` otherwise. Non-2xx responses
are transport-level failures and surface as `httpx.HTTPStatusError`.
"""
from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from .errors import AuthorizationRejected, BadRequestRejected, DestinationRejected
from .models.mixpanel import CallResult, MixpanelRequest

logger = logging.getLogger(__name__)

__all__ = ["AUTH_ERROR_PATTERN", "classify_rejection", "interpret_response"]

AUTH_ERROR_PATTERN = re.compile(
    r"api[\s_-]?key|api[\s_-]?secret|\btoken\b|unauthori[sz]ed|credential|permission",
    re.IGNORECASE,
)


def classify_rejection(message: Any, body: Any = None) -> DestinationRejected:
    text = str(message) if message else "Mixpanel rejected the request"
    if AUTH_ERROR_PATTERN.search(text):
        return AuthorizationRejected(text, body=body)
    return BadRequestRejected(text, body=body)


def interpret_response(request: MixpanelRequest, response: httpx.Response) -> CallResult:
    """Turn a raw response into a `CallResult` or raise.

    Raises:
        httpx.HTTPStatusError: non-2xx HTTP status.
        AuthorizationRejected: body status falsy and the error names credentials.
        BadRequestRejected: body status falsy for any other reason.
    """
    response.raise_for_status()
    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict) or not body.get("status"):
        message = body.get("error") if isinstance(body, dict) else response.text[:300]
        error = classify_rejection(message, body)
        logger.warning(
            "Mixpanel rejected %s %s step=%s: %s", request.method, request.path, request.step, error
        )
        raise error
    return CallResult(request=request, status_code=response.status_code, body=body)
