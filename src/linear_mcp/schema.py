"""Declarative argument validation.

Input schemas are plain JSON-Schema dicts (the same objects advertised to
agents as a tool's ``inputSchema``). This module interprets a small subset of
JSON Schema:

- ``type``: object/string/integer/number/boolean/array
- ``required`` and ``additionalProperties: false`` on objects
- ``default`` for absent properties
- ``enum``, ``minLength``/``maxLength``, ``minimum``/``maximum``,
  ``minItems``/``maxItems`` and ``items``

It does NOT implement full JSON Schema. Unlike a fail-fast validator, every
violation is collected so the caller can fix a call in one round trip.
"""

from __future__ import annotations

import copy
from typing import Any

from .errors import ValidationIssue
from .results import Err, Ok, Result

_TYPE_NAMES = {
    "string": "a string",
    "integer": "an integer",
    "number": "a number",
    "boolean": "a boolean",
    "array": "an array",
    "object": "an object",
}


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _coerce_type(expected: str, value: Any) -> tuple[bool, Any]:
    """Return (matches, coerced_value) for a declared JSON type."""
    if expected == "string":
        return isinstance(value, str), value
    if expected == "boolean":
        return isinstance(value, bool), value
    if expected == "integer":
        if isinstance(value, bool):
            return False, value
        if isinstance(value, int):
            return True, value
        # JSON clients frequently send 10.0 for 10.
        if isinstance(value, float) and value.is_integer():
            return True, int(value)
        return False, value
    if expected == "number":
        if isinstance(value, bool):
            return False, value
        return isinstance(value, (int, float)), value
    if expected == "array":
        return isinstance(value, list), value
    if expected == "object":
        return isinstance(value, dict), value
    return True, value


def _check(schema: dict[str, Any], value: Any, path: str, issues: list[ValidationIssue]) -> Any:
    expected = schema.get("type")
    if expected is not None:
        matches, value = _coerce_type(expected, value)
        if not matches:
            issues.append(ValidationIssue(path, f"must be {_TYPE_NAMES.get(expected, expected)}"))
            return value

    enum = schema.get("enum")
    if isinstance(enum, list) and value not in enum:
        allowed = ", ".join(str(e) for e in enum)
        issues.append(ValidationIssue(path, f"must be one of: {allowed}"))

    if expected == "string":
        min_len = schema.get("minLength")
        max_len = schema.get("maxLength")
        if isinstance(min_len, int) and len(value) < min_len:
            issues.append(ValidationIssue(path, f"must be at least {min_len} characters"))
        if isinstance(max_len, int) and len(value) > max_len:
            issues.append(ValidationIssue(path, f"must be at most {max_len} characters"))

    if expected in ("integer", "number"):
        minimum = schema.get("minimum")
        maximum = schema.get("maximum")
        if isinstance(minimum, (int, float)) and value < minimum:
            issues.append(ValidationIssue(path, f"must be >= {minimum}"))
        if isinstance(maximum, (int, float)) and value > maximum:
            issues.append(ValidationIssue(path, f"must be <= {maximum}"))

    if expected == "array":
        min_items = schema.get("minItems")
        max_items = schema.get("maxItems")
        if isinstance(min_items, int) and len(value) < min_items:
            issues.append(ValidationIssue(path, f"must contain at least {min_items} items"))
        if isinstance(max_items, int) and len(value) > max_items:
            issues.append(ValidationIssue(path, f"must contain at most {max_items} items"))
        item_schema = schema.get("items")
        if isinstance(item_schema, dict):
            value = [_check(item_schema, item, f"{path}[{i}]", issues) for i, item in enumerate(value)]

    if expected == "object":
        value = _check_object(schema, value, path, issues)

    return value


def _check_object(schema: dict[str, Any], value: dict[str, Any], path: str, issues: list[ValidationIssue]) -> dict[str, Any]:
    props: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])
    additional = schema.get("additionalProperties", True)

    for key in required:
        if key not in value:
            issues.append(ValidationIssue(_join(path, key), "is required"))

    if additional is False:
        for key in value:
            if key not in props:
                issues.append(ValidationIssue(_join(path, key), "is not an allowed field"))

    out: dict[str, Any] = {}
    for key, item in value.items():
        prop = props.get(key)
        out[key] = _check(prop, item, _join(path, key), issues) if isinstance(prop, dict) else item

    for key, prop in props.items():
        if key not in out and isinstance(prop, dict) and "default" in prop:
            out[key] = copy.deepcopy(prop["default"])

    return out


def validate_arguments(schema: dict[str, Any], arguments: Any) -> Result[Any, list[ValidationIssue]]:
    """Validate and coerce ``arguments`` against ``schema``.

    ``None`` is treated as an empty object for object schemas. Returns
    ``Ok(value)`` with defaults applied, or ``Err(issues)`` listing every
    violated field.
    """
    if arguments is None and schema.get("type") == "object":
        arguments = {}

    issues: list[ValidationIssue] = []
    value = _check(schema, arguments, "", issues)
    if issues:
        return Err(issues)
    return Ok(value)


def describe_schema(schema: dict[str, Any]) -> str:
    """Return a one-line human-readable summary of an object schema."""
    props: dict[str, Any] = schema.get("properties", {})
    required = set(schema.get("required", []))
    parts = []
    for key, prop in props.items():
        kind = prop.get("type", "any") if isinstance(prop, dict) else "any"
        marker = "" if key in required else "?"
        parts.append(f"{key}{marker}: {kind}")
    return ", ".join(parts)
