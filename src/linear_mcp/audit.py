"""Per-call audit trail.

Every dispatched tool call produces exactly one JSON line on stderr and,
when configured, in a size-rotated file. A line records what was asked (the
operation and the Linear entity it targets) and how it ended (outcome and
error code). Argument values other than the redacted target id are never
recorded.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from .errors import UNKNOWN_OPERATION, VALIDATION_ERROR
from .safety import redact_text

# Argument key -> entity kind, checked in order.
_TARGET_KEYS = (
    ("issue_id", "issue"),
    ("project_id", "project"),
    ("team_id", "team"),
)

# Calls rejected before any handler ran.
_DENIED_CODES = frozenset({VALIDATION_ERROR, UNKNOWN_OPERATION})


def new_correlation_id() -> str:
    """Generate a random correlation id for traceability."""
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditTarget:
    """The Linear entity a call acts on."""

    kind: str
    id: str | None = None

    @classmethod
    def from_arguments(cls, arguments: dict[str, Any]) -> AuditTarget:
        for key, kind in _TARGET_KEYS:
            value = arguments.get(key)
            if isinstance(value, str) and value:
                return cls(kind=kind, id=redact_text(value))
        return cls(kind="none")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """One audit line."""

    correlation_id: str
    operation: str
    target: AuditTarget
    outcome: str
    error_code: str | None = None
    reason: str | None = None
    duration_ms: int | None = None
    timestamp: str = field(default_factory=_now_rfc3339)

    @classmethod
    def from_envelope(
        cls,
        *,
        correlation_id: str,
        operation: str,
        target: AuditTarget,
        envelope: dict[str, Any],
        duration_ms: int | None = None,
    ) -> AuditEvent:
        """Derive outcome, error code and reason from a response envelope.

        Outcomes: ``succeeded``; ``denied`` when the call never reached a
        handler (invalid arguments, unknown operation); ``failed`` otherwise.
        """
        error = envelope.get("error")
        if not isinstance(error, dict):
            return cls(correlation_id, operation, target, "succeeded", duration_ms=duration_ms)

        code = error.get("code")
        return cls(
            correlation_id,
            operation,
            target,
            "denied" if code in _DENIED_CODES else "failed",
            error_code=code,
            reason=error.get("message"),
            duration_ms=duration_ms,
        )

    def to_json(self) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.timestamp,
            "correlation_id": self.correlation_id,
            "operation": self.operation,
            "target_kind": self.target.kind,
            "outcome": self.outcome,
        }
        optional = {
            "target_id": self.target.id,
            "error_code": self.error_code,
            "reason": self.reason,
            "duration_ms": self.duration_ms,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """Writes audit lines to stderr and optionally to a rotating JSONL file.

    File writes are best-effort: a failing sink is reported by ``logging``
    and never breaks the tool call. With ``max_backups=0`` the file is not
    rotated.
    """

    def __init__(
        self,
        *,
        sink_path: Path | None = None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        self._sink: RotatingFileHandler | None = None
        if sink_path is not None:
            sink_path.parent.mkdir(parents=True, exist_ok=True)
            self._sink = RotatingFileHandler(
                sink_path,
                maxBytes=max_bytes,
                backupCount=max_backups,
                encoding="utf-8",
                delay=True,
            )
            self._sink.setFormatter(logging.Formatter("%(message)s"))

    def write_event(self, event: AuditEvent) -> None:
        line = event.to_json()
        print(line, file=sys.stderr)
        if self._sink is not None:
            self._sink.handle(logging.makeLogRecord({"msg": line, "levelno": logging.INFO}))

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()
