"""Linear GraphQL client.

Provides:
- strict endpoint allowlist
- one HTTP effect call per query (retries belong to the effect)
- safe error translation

This client is intended only for fixed query/mutation documents controlled by the server.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .config import LINEAR_API_URL
from .errors import configuration_error, handler_error, linear_auth_forbidden
from .http_effect import HttpEffect

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LinearContext:
    """Effects and configuration shared by every Linear action."""

    api_key: str
    http: HttpEffect


@dataclass(frozen=True, slots=True)
class GraphQLResult:
    """Parsed GraphQL response."""

    data: dict[str, Any]


def is_mutation(document: str) -> bool:
    """Return True if a GraphQL document is a mutation operation."""
    return document.lstrip().startswith("mutation")


class LinearGraphQLClient:
    """Minimal Linear GraphQL client (POST only)."""

    def __init__(self, *, http: HttpEffect, api_key: str, api_url: str = LINEAR_API_URL) -> None:
        """Create a GraphQL client bound to api.linear.app."""
        self._http = http
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")

        if self._api_url != LINEAR_API_URL:
            raise configuration_error(f"Only {LINEAR_API_URL} is allowed")

    @classmethod
    def from_context(cls, ctx: LinearContext) -> LinearGraphQLClient:
        return cls(http=ctx.http, api_key=ctx.api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    async def execute(self, *, query: str, variables: dict[str, Any] | None = None) -> GraphQLResult:
        """Execute a fixed GraphQL query/mutation and return parsed data."""
        if not isinstance(query, str) or not query.strip():
            raise handler_error("GraphQL query is missing")

        body = json.dumps({"query": query, "variables": variables or {}})
        # Queries are safe to repeat; a mutation may already have been applied.
        resp = await self._http.perform(
            self._api_url,
            method="POST",
            headers=self._headers(),
            body=body,
            idempotent=not is_mutation(query),
        )

        if not resp.ok:
            if resp.status in (401, 403):
                raise linear_auth_forbidden(status_code=resp.status)

            safe_hint = None
            try:
                err_payload = resp.json()
                errors = err_payload.get("errors") if isinstance(err_payload, dict) else None
                if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                    first_message = errors[0].get("message")
                    if isinstance(first_message, str):
                        safe_hint = first_message
            except ValueError:
                safe_hint = None

            logger.warning("Linear GraphQL request failed with HTTP %s", resp.status)
            raise handler_error(f"Linear request failed (HTTP {resp.status})", hint=safe_hint, status_code=resp.status)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise handler_error("Linear returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise handler_error("Linear returned invalid JSON")

        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            hint = None
            if isinstance(first, dict) and isinstance(first.get("message"), str):
                hint = first.get("message")
            message = f"GraphQL returned errors: {hint}" if hint else "Linear GraphQL request failed"
            raise handler_error(message, hint=hint)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise handler_error("Linear GraphQL returned no data")

        return GraphQLResult(data=data)
