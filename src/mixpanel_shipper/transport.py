"""HTTP transport for planned Mixpanel requests.

`MixpanelTransport` sends `MixpanelRequest` descriptors with an
`httpx.AsyncClient`. Connection failures (`httpx.TransportError`) are retried
with exponential backoff via `tenacity`; everything else propagates after the
response has been interpreted (see `response.interpret_response`).

`DryRunTransport` records requests and answers success without any I/O; the
CLI uses it for `--dry-run` and tests use it to inspect plans.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Protocol

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .models.mixpanel import CallResult, MixpanelRequest
from .response import interpret_response

logger = logging.getLogger(__name__)

__all__ = ["DEFAULT_HOST", "Transport", "MixpanelTransport", "DryRunTransport"]

DEFAULT_HOST = "https://api.mixpanel.com"


class Transport(Protocol):
    async def send(self, request: MixpanelRequest) -> CallResult: ...


class MixpanelTransport:
    """Async Mixpanel HTTP client.

    Usable as an async context manager; an externally supplied
    `httpx.AsyncClient` is not closed by `aclose`.
    """

    def __init__(
        self,
        *,
        host: str = DEFAULT_HOST,
        timeout: float = 30,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=host.rstrip("/"), timeout=timeout)

    async def __aenter__(self) -> "MixpanelTransport":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
    )
    async def _request(self, request: MixpanelRequest) -> httpx.Response:
        return await self._client.request(
            request.method,
            request.path,
            params=request.query,
            headers=request.headers or None,
        )

    async def send(self, request: MixpanelRequest) -> CallResult:
        logger.debug("Sending %s %s step=%s", request.method, request.path, request.step)
        response = await self._request(request)
        return interpret_response(request, response)


class DryRunTransport:
    """Records requests instead of sending them.

    `fail_on` lets callers simulate a Mixpanel failure for a given step name:
    the mapped callable is invoked with the request and must raise.
    """

    def __init__(self, fail_on: Optional[dict[str, Callable[[MixpanelRequest], Any]]] = None):
        self.requests: List[MixpanelRequest] = []
        self._fail_on = fail_on or {}

    async def send(self, request: MixpanelRequest) -> CallResult:
        self.requests.append(request)
        failure = self._fail_on.get(request.step)
        if failure is not None:
            failure(request)
        logger.info("dry-run %s %s step=%s", request.method, request.path, request.step)
        return CallResult(request=request, status_code=200, body={"status": 1, "error": None})
