"""Runtime wiring and audited tool dispatch.

This module:
- builds a per-server runtime (context, registry) from host-provided config
- creates a correlation_id per call attempt
- screens arguments for credentials before any action runs
- writes exactly one audit event per call
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from .audit import AuditEvent, AuditLogger, AuditTarget, new_correlation_id
from .config import AppConfig, load_config_from_env
from .errors import SafeError, internal_error, safe_error_to_envelope
from .http_effect import HttpEffect, HttpxEffect
from .issues import issue_actions
from .linear_client import LinearContext
from .projects import project_actions
from .registry import ActionRegistry
from .safety import validate_no_secrets
from .teams import team_actions

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    registry: ActionRegistry


_RUNTIME: Runtime | None = None


def build_registry(ctx: LinearContext) -> ActionRegistry:
    """Register the fixed set of Linear actions bound to ``ctx``."""
    return ActionRegistry([*issue_actions(ctx), *project_actions(ctx), *team_actions(ctx)])


def build_runtime(config: AppConfig, *, http: HttpEffect | None = None) -> Runtime:
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    ctx = LinearContext(api_key=config.linear_api_key, http=http or HttpxEffect(limits=config.limits))
    return Runtime(config=config, audit=audit, registry=build_registry(ctx))


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and can also be used lazily.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is not None:
        return _RUNTIME

    _RUNTIME = build_runtime(load_config_from_env())
    logger.info("Runtime initialized with %s actions", len(_RUNTIME.registry))
    return _RUNTIME


async def dispatch_tool(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Dispatch a tool call and return a response envelope.

    Never raises: every failure is returned as ``{"error": {...}}``. When the
    runtime cannot be built (e.g. ConfigurationError) the call is still
    audited, to stderr only.
    """
    correlation_id = new_correlation_id()
    start = time.monotonic()
    audit: AuditLogger | None = None

    try:
        runtime = initialize_runtime_from_env()
        audit = runtime.audit

        validate_no_secrets(arguments)
        envelope = await runtime.registry.dispatch({"name": name, "args": arguments})
    except SafeError as err:
        envelope = safe_error_to_envelope(err)
    except Exception:  # pylint: disable=broad-exception-caught  # pragma: no cover
        logger.exception("Dispatch of %s failed", name)
        envelope = internal_error("Internal error")

    event = AuditEvent.from_envelope(
        correlation_id=correlation_id,
        operation=name,
        target=AuditTarget.from_arguments(arguments),
        envelope=envelope,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    (audit or AuditLogger()).write_event(event)

    if event.outcome == "failed":
        logger.warning("Tool %s failed [%s]: %s", name, correlation_id, event.reason)
    return envelope
