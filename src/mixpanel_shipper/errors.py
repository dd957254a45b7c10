"""Exception hierarchy for the Mixpanel shipper.

Transport failures are not wrapped: `httpx` exceptions propagate unchanged so
callers (and the retry layer) see the original network error.

Classes:
    ShipperError: Base class carrying a message and an HTTP-like status.
    ConfigurationInvalid: Pre-flight validation failure; no request was made.
    DestinationRejected: Mixpanel answered 200 with a falsy body `status`.
    AuthorizationRejected: Rejection caused by credentials (API key, token).
    BadRequestRejected: Any other rejection reported in the body.
"""
from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "ShipperError",
    "ConfigurationInvalid",
    "DestinationRejected",
    "AuthorizationRejected",
    "BadRequestRejected",
]


class ShipperError(Exception):
    status: int = 500
    code: str = "shipper_error"

    def __init__(self, message: str, *, body: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.body = body

    def __str__(self) -> str:
        return f"{self.code} (status={self.status}): {self.message}"


class ConfigurationInvalid(ShipperError):
    status = 400
    code = "invalid_configuration"


class DestinationRejected(ShipperError):
    status = 400
    code = "destination_rejected"


class AuthorizationRejected(DestinationRejected):
    status = 401
    code = "unauthorized"


class BadRequestRejected(DestinationRejected):
    status = 400
    code = "bad_request"
