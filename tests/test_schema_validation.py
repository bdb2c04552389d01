"""Declarative schema validation coverage."""

from __future__ import annotations

from linear_mcp.errors import ValidationIssue
from linear_mcp.results import Err, Ok
from linear_mcp.schema import describe_schema, validate_arguments

SCHEMA = {
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {"type": "string", "minLength": 1, "maxLength": 10},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": 25},
        "direction": {"type": "string", "enum": ["ASC", "DESC"], "default": "ASC"},
        "flag": {"type": "boolean"},
        "labels": {"type": "array", "maxItems": 2, "items": {"type": "string", "minLength": 1}},
        "filter": {
            "type": "object",
            "required": ["status"],
            "properties": {"status": {"type": "string"}},
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


def test_defaults_are_applied_for_absent_fields() -> None:
    out = validate_arguments(SCHEMA, {"query": "bug"})
    assert out == Ok({"query": "bug", "limit": 25, "direction": "ASC"})


def test_none_is_treated_as_empty_object() -> None:
    out = validate_arguments(SCHEMA, None)
    assert isinstance(out, Err)
    assert out.error == [ValidationIssue("query", "is required")]


def test_every_issue_is_reported_not_only_the_first() -> None:
    out = validate_arguments(SCHEMA, {"limit": 0, "direction": "UP", "extra": 1})
    assert isinstance(out, Err)
    paths = sorted(issue.path for issue in out.error)
    assert paths == ["direction", "extra", "limit", "query"]


def test_integral_float_is_coerced_to_int() -> None:
    out = validate_arguments(SCHEMA, {"query": "x", "limit": 10.0})
    assert isinstance(out, Ok)
    assert out.value["limit"] == 10
    assert isinstance(out.value["limit"], int)


def test_bool_is_not_an_integer() -> None:
    out = validate_arguments(SCHEMA, {"query": "x", "limit": True})
    assert isinstance(out, Err)
    assert out.error[0].message == "must be an integer"


def test_string_length_bounds() -> None:
    out = validate_arguments(SCHEMA, {"query": "x" * 11})
    assert isinstance(out, Err)
    assert out.error == [ValidationIssue("query", "must be at most 10 characters")]


def test_nested_paths_for_arrays_and_objects() -> None:
    out = validate_arguments(
        SCHEMA,
        {"query": "x", "labels": ["ok", "", "c"], "filter": {"other": 1}},
    )
    assert isinstance(out, Err)
    paths = {issue.path for issue in out.error}
    assert paths == {"labels", "labels[1]", "filter.status", "filter.other"}


def test_non_object_root_is_rejected() -> None:
    out = validate_arguments(SCHEMA, ["query"])
    assert isinstance(out, Err)
    assert out.error == [ValidationIssue("", "must be an object")]


def test_defaults_are_copied_not_shared() -> None:
    schema = {"type": "object", "properties": {"tags": {"type": "array", "default": []}}}
    first = validate_arguments(schema, {})
    second = validate_arguments(schema, {})
    assert isinstance(first, Ok) and isinstance(second, Ok)
    first.value["tags"].append("x")
    assert second.value["tags"] == []


def test_describe_schema_marks_optional_fields() -> None:
    text = describe_schema(SCHEMA)
    assert "query: string" in text
    assert "limit?: integer" in text
