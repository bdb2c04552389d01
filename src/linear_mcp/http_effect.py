"""HTTP effect.

Handlers never talk to the network directly; they receive an ``HttpEffect``
through their context. Two implementations exist:

- ``HttpxEffect``: production, backed by ``httpx`` with finite timeouts,
  no redirects and bounded retries with backoff
- ``InMemoryHttpEffect``: tests, maps request keys to programmable response
  factories and performs no I/O
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Union
from urllib.parse import urlsplit

import httpx

from .config import LimitsConfig
from .errors import handler_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HttpRequest:
    """An outgoing request as seen by response factories."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    idempotent: bool | None = None

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """A fully-read HTTP response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status <= 299

    def text(self) -> str:
        return self.body

    def json(self) -> Any:
        return json.loads(self.body)


_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

# Failures raised before the request reached the server; safe to retry for any method.
_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


class HttpEffect(Protocol):
    """Capability to perform one HTTP request.

    ``idempotent`` tells the effect whether the request may be repeated after
    it possibly reached the server. ``None`` derives it from ``method``.
    """

    async def perform(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | None = None,
        idempotent: bool | None = None,
    ) -> HttpResponse:
        ...


class HttpxEffect:
    """HTTP effect delegating to ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        limits: LimitsConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the production HTTP effect.

        Args:
            limits: Timeouts/retry limits.
            transport: Optional httpx transport for tests.
        """
        self._limits = limits
        self._transport = transport

    def _compute_backoff_s(self, attempt_index: int) -> float:
        # attempt_index: 1 for first retry, 2 for second retry...
        base = min(self._limits.max_backoff_s, 0.5 * (2 ** (attempt_index - 1)))
        jitter = min(0.05, 0.01 * attempt_index)
        return min(self._limits.max_backoff_s, base + jitter)

    @staticmethod
    def _retry_on_error(exc: Exception, idempotent: bool) -> bool:
        if idempotent:
            return isinstance(exc, httpx.TransportError)
        return isinstance(exc, _NOT_SENT_ERRORS)

    @staticmethod
    def _retry_on_status(status_code: int, idempotent: bool) -> bool:
        # 429 means the request was rejected unprocessed.
        if status_code == 429:
            return True
        return idempotent and 500 <= status_code <= 599

    async def perform(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | None = None,
        idempotent: bool | None = None,
    ) -> HttpResponse:
        """Send the request and return the (last) response.

        Non-2xx responses are returned, not raised; interpreting them is the
        caller's job. Only transport failures that are exhausted or unsafe to
        retry raise. Non-idempotent requests are retried only when the server
        cannot have applied them (connect failures, 429).
        """
        if idempotent is None:
            idempotent = method.upper() in _IDEMPOTENT_METHODS

        timeout = httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, self._limits.max_attempts + 1):
                try:
                    resp = await client.request(
                        method,
                        url,
                        headers=headers or {},
                        content=body.encode("utf-8") if body is not None else None,
                    )
                except httpx.TransportError as exc:
                    if attempt < self._limits.max_attempts and self._retry_on_error(exc, idempotent):
                        logger.warning("HTTP %s attempt %s failed: %s", method, attempt, type(exc).__name__)
                        await asyncio.sleep(self._compute_backoff_s(attempt))
                        continue
                    raise handler_error("Network request failed") from exc

                if attempt < self._limits.max_attempts and self._retry_on_status(resp.status_code, idempotent):
                    logger.warning("HTTP %s attempt %s returned %s, retrying", method, attempt, resp.status_code)
                    await asyncio.sleep(self._compute_backoff_s(attempt))
                    continue

                return HttpResponse(status=resp.status_code, headers=dict(resp.headers), body=resp.text)

        raise handler_error("Network request failed")  # pragma: no cover


ResponseFactory = Callable[[HttpRequest], Union[HttpResponse, Awaitable[HttpResponse]]]


def json_response(payload: Any, *, status: int = 200) -> HttpResponse:
    """Build a JSON ``HttpResponse`` (used by response factories)."""
    return HttpResponse(
        status=status,
        headers={"content-type": "application/json"},
        body=json.dumps(payload),
    )


class InMemoryHttpEffect:
    """HTTP effect answering from registered response factories.

    Factories are looked up by exact URL first, then by the URL's hostname.
    Unregistered keys get a 404 ``{"error": "Not Found"}`` response.
    """

    def __init__(
        self,
        responses: dict[str, ResponseFactory] | None = None,
        *,
        response_delay_s: float = 0.0,
    ) -> None:
        self._responses: dict[str, ResponseFactory] = dict(responses or {})
        self._response_delay_s = response_delay_s
        self.requests: list[HttpRequest] = []

    def register(self, key: str, factory: ResponseFactory) -> None:
        self._responses[key] = factory

    def _lookup(self, url: str) -> ResponseFactory | None:
        if url in self._responses:
            return self._responses[url]
        host = urlsplit(url).hostname
        if host and host in self._responses:
            return self._responses[host]
        return None

    async def perform(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | None = None,
        idempotent: bool | None = None,
    ) -> HttpResponse:
        request = HttpRequest(url=url, method=method, headers=dict(headers or {}), body=body, idempotent=idempotent)
        self.requests.append(request)

        factory = self._lookup(url)
        if factory is None:
            return json_response({"error": "Not Found"}, status=404)

        if self._response_delay_s > 0:
            await asyncio.sleep(self._response_delay_s)

        out = factory(request)
        if inspect.isawaitable(out):
            out = await out
        return out
