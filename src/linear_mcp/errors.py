"""Safe error types and response-envelope helpers.

Errors returned to agents must be non-secret and stable. The API key never
appears in an error message, hint, or issue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

VALIDATION_ERROR = "ValidationError"
UNKNOWN_OPERATION = "UnknownOperation"
HANDLER_ERROR = "HandlerError"
CONFIGURATION_ERROR = "ConfigurationError"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A single field-level validation failure."""

    path: str
    message: str

    def render(self) -> str:
        return f"{self.path or 'arguments'}: {self.message}"


@dataclass(frozen=True, slots=True)
class SafeError(Exception):
    """An error safe to expose to agents.

    This must never include secrets (API keys, authorization headers).
    """

    code: str
    message: str
    hint: str | None = None
    status_code: int | None = None
    issues: tuple[ValidationIssue, ...] = ()


def validation_error(issues: list[ValidationIssue] | tuple[ValidationIssue, ...]) -> SafeError:
    """Build one ValidationError describing every issue, not only the first."""
    rendered = "; ".join(issue.render() for issue in issues)
    return SafeError(
        code=VALIDATION_ERROR,
        message=f"Invalid arguments: {rendered}" if rendered else "Invalid arguments",
        issues=tuple(issues),
    )


def handler_error(message: str, hint: str | None = None, status_code: int | None = None) -> SafeError:
    """Error for handler, GraphQL or network failures."""
    return SafeError(code=HANDLER_ERROR, message=message, hint=hint, status_code=status_code)


def configuration_error(message: str) -> SafeError:
    """Error for missing or invalid host configuration (fatal at startup)."""
    return SafeError(code=CONFIGURATION_ERROR, message=message)


def linear_auth_forbidden(*, status_code: int) -> SafeError:
    """Return a safe error for Linear 401/403 responses."""
    return SafeError(
        code=HANDLER_ERROR,
        message="Linear rejected the API key for this operation",
        hint="Check that LINEAR_API_KEY is valid and has access to the requested team or issue",
        status_code=status_code,
    )


def to_error_envelope(
    *,
    code: str,
    message: str,
    hint: str | None = None,
    issues: tuple[ValidationIssue, ...] = (),
) -> dict[str, Any]:
    """Build a standard error response envelope."""
    error: dict[str, Any] = {"message": message, "code": code}
    if hint:
        error["hint"] = hint
    if issues:
        error["issues"] = [{"path": i.path, "message": i.message} for i in issues]
    return {"error": error}


def safe_error_to_envelope(err: SafeError) -> dict[str, Any]:
    """Convert a SafeError into the standard error envelope."""
    return to_error_envelope(code=err.code, message=err.message, hint=err.hint, issues=err.issues)


def unknown_operation_error(name: str, available: list[str]) -> dict[str, Any]:
    """Error envelope for a dispatch target that is not registered."""
    return to_error_envelope(
        code=UNKNOWN_OPERATION,
        message=f"Unknown operation: {name}",
        hint=f"Available operations: {', '.join(available)}" if available else None,
    )


def internal_error(message: str = "Internal error") -> dict[str, Any]:
    """Error envelope for unexpected failures outside any action."""
    return to_error_envelope(code=HANDLER_ERROR, message=message)
