"""Safety helpers.

Deterministic secret detection for agent-provided arguments.

Key rule: if an agent-provided input appears to be a credential, reject the request
and do not echo the suspected secret value.
"""

from __future__ import annotations

import re
from typing import Any

from .errors import ValidationIssue, validation_error

_CRED_FIELD_NAMES = {
    "token",
    "access_token",
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
}

_TOKEN_RE = re.compile(r"^(?:lin_api_|lin_oauth_)\S+$", re.IGNORECASE)
_BEARER_RE = re.compile(r"^bearer\s+\S+$", re.IGNORECASE)
_JWT_LIKE_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")


def looks_like_secret_value(value: str) -> bool:
    """Return True if the whole value is shaped like a credential.

    Matching rules (after trimming surrounding whitespace):
    - a single Linear key token (``lin_api_...``/``lin_oauth_...``)
    - ``Bearer`` followed by exactly one whitespace-free token
    - a JWT-looking value of 40+ characters

    Prose that merely mentions these words ("Bearer auth is broken") passes.
    """
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    if _TOKEN_RE.match(trimmed) or _BEARER_RE.match(trimmed):
        return True
    if len(trimmed) >= 40 and _JWT_LIKE_RE.match(trimmed):
        return True
    return False


def looks_like_credential_field_name(field_name: str) -> bool:
    """Return True if a key name looks like a credential field."""
    if not isinstance(field_name, str):
        return False
    return field_name.strip().lower() in _CRED_FIELD_NAMES


def _find_secrets(obj: Any, path: str, issues: list[ValidationIssue]) -> None:
    if isinstance(obj, dict):
        for k, v in obj.items():
            child = f"{path}.{k}" if path else str(k)
            if looks_like_credential_field_name(str(k)):
                issues.append(ValidationIssue(child, "credential-like fields are not allowed"))
                continue
            _find_secrets(v, child, issues)
        return
    if isinstance(obj, list):
        for i, item in enumerate(obj):
            _find_secrets(item, f"{path}[{i}]", issues)
        return
    if isinstance(obj, str) and looks_like_secret_value(obj):
        issues.append(ValidationIssue(path, "credential-like values are not allowed"))


def validate_no_secrets(obj: Any) -> None:
    """Reject any agent-provided input that appears to contain credentials.

    Raises a ValidationError SafeError without echoing any suspected secret values.
    """
    issues: list[ValidationIssue] = []
    _find_secrets(obj, "", issues)
    if issues:
        raise validation_error(issues)


def redact_text(text: str) -> str:
    """Return a redacted representation safe for logs."""
    if not isinstance(text, str):
        return "<non-string>"
    if looks_like_secret_value(text):
        return "<redacted>"
    return text
