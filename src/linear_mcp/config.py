"""Configuration loading for linear-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The API key is treated as a secret and must never be emitted to agents, logs, or audit reasons.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import configuration_error

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Non-functional safety limits."""

    # Network
    total_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 20.0

    # Retries
    max_attempts: int = 3
    max_backoff_s: float = 5.0


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Host-provided configuration."""

    linear_api_key: str
    api_url: str
    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    limits: LimitsConfig


def _parse_timeout(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        timeout = float(value)
    except ValueError as exc:
        raise configuration_error("LINEAR_MCP_TIMEOUT_S must be a number") from exc
    if timeout <= 0:
        raise configuration_error("LINEAR_MCP_TIMEOUT_S must be positive")
    return timeout


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        SafeError: If configuration is missing/invalid (code ConfigurationError).
    """
    api_key = (os.getenv("LINEAR_API_KEY") or "").strip()
    if not api_key:
        raise configuration_error("Missing required configuration (LINEAR_API_KEY)")

    # Personal keys start with lin_api_; OAuth tokens do not, so this only warns.
    if not api_key.startswith("lin_api_"):
        logger.warning("LINEAR_API_KEY does not look like a Linear personal API key")

    api_url = (os.getenv("LINEAR_API_URL") or LINEAR_API_URL).strip().rstrip("/")
    if api_url != LINEAR_API_URL:
        raise configuration_error(f"Only {LINEAR_API_URL} is allowed as LINEAR_API_URL")

    audit_path_raw = os.getenv("LINEAR_MCP_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        p = Path(audit_path_raw)
        if not p.is_absolute():
            raise configuration_error("LINEAR_MCP_AUDIT_LOG_PATH must be an absolute path when set")
        audit_path = p

    limits = LimitsConfig()
    timeout = _parse_timeout(os.getenv("LINEAR_MCP_TIMEOUT_S"))
    if timeout is not None:
        limits = LimitsConfig(
            total_timeout_s=timeout,
            connect_timeout_s=min(limits.connect_timeout_s, timeout),
            read_timeout_s=min(limits.read_timeout_s, timeout),
        )

    return AppConfig(
        linear_api_key=api_key,
        api_url=api_url,
        audit_log_path=audit_path,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        limits=limits,
    )
