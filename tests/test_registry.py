"""Registry and dispatcher coverage."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from linear_mcp.actions import ActionMeta, create_action
from linear_mcp.errors import (CONFIGURATION_ERROR, HANDLER_ERROR,
                               UNKNOWN_OPERATION, VALIDATION_ERROR, SafeError)
from linear_mcp.registry import ActionRegistry

SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["value"],
    "properties": {"value": {"type": "integer"}},
    "additionalProperties": False,
}


async def _double(_ctx: None, args: dict[str, Any]) -> dict[str, Any]:
    return {"doubled": args["value"] * 2}


async def _fail(_ctx: None, _args: dict[str, Any]) -> None:
    raise ValueError("upstream exploded")


def _registry() -> ActionRegistry:
    return ActionRegistry(
        [
            create_action(ActionMeta("double", "Double a number", SCHEMA), None, _double),
            create_action(ActionMeta("fail", "Always fails", SCHEMA), None, _fail),
        ]
    )


def test_duplicate_registration_fails_at_construction() -> None:
    action = create_action(ActionMeta("double", "Double a number", SCHEMA), None, _double)
    with pytest.raises(SafeError) as exc:
        _ = ActionRegistry([action, action])
    assert exc.value.code == CONFIGURATION_ERROR


@pytest.mark.asyncio
async def test_dispatch_wraps_success_in_result_envelope() -> None:
    out = await _registry().dispatch({"name": "double", "args": {"value": 21}})
    assert out == {"result": {"doubled": 42}}


@pytest.mark.asyncio
async def test_dispatch_unknown_operation_returns_error_envelope() -> None:
    out = await _registry().dispatch({"name": "triple", "args": {}})
    assert out["error"]["code"] == UNKNOWN_OPERATION
    assert "triple" in out["error"]["message"]
    assert "double" in out["error"]["hint"]


@pytest.mark.asyncio
async def test_dispatch_invalid_args_returns_validation_envelope() -> None:
    out = await _registry().dispatch({"name": "double", "args": {"value": "two"}})
    assert out["error"]["code"] == VALIDATION_ERROR
    assert out["error"]["message"]
    assert out["error"]["issues"] == [{"path": "value", "message": "must be an integer"}]


@pytest.mark.asyncio
async def test_dispatch_rejects_malformed_envelope_entirely() -> None:
    registry = _registry()
    for bad in (None, "double", {"args": {}}, {"name": "double", "args": [1]}, {"name": "double", "id": 1}):
        out = await registry.dispatch(bad)
        assert out["error"]["code"] == VALIDATION_ERROR


@pytest.mark.asyncio
async def test_dispatch_defaults_missing_args_to_empty_object() -> None:
    out = await _registry().dispatch({"name": "double"})
    assert out["error"]["code"] == VALIDATION_ERROR
    assert out["error"]["issues"] == [{"path": "value", "message": "is required"}]


@pytest.mark.asyncio
async def test_dispatch_handler_failure_never_raises() -> None:
    out = await _registry().dispatch({"name": "fail", "args": {"value": 1}})
    assert out == {"error": {"message": "upstream exploded", "code": HANDLER_ERROR}}


@pytest.mark.asyncio
async def test_list_operations_is_stable_across_calls() -> None:
    registry = _registry()
    before = registry.list_operations()

    await registry.dispatch({"name": "double", "args": {"value": 1}})
    await registry.dispatch({"name": "nope"})

    assert registry.list_operations() == before
    assert [op["name"] for op in before["operations"]] == ["double", "fail"]
    assert before["operations"][0]["inputSchema"] == SCHEMA
    assert before["operations"][0]["inputSchemaDescription"] == "value: integer"


@pytest.mark.asyncio
async def test_concurrent_dispatch_is_independent() -> None:
    registry = _registry()
    outs = await asyncio.gather(*(registry.dispatch({"name": "double", "args": {"value": i}}) for i in range(10)))
    assert [o["result"]["doubled"] for o in outs] == [i * 2 for i in range(10)]


def test_registry_lookup_helpers() -> None:
    registry = _registry()
    assert len(registry) == 2
    assert "double" in registry
    assert registry.get("missing") is None
    assert registry.names() == ["double", "fail"]


@pytest.mark.asyncio
async def test_cancelled_dispatch_propagates_cancellation() -> None:
    started = asyncio.Event()

    async def _slow(_ctx: None, _args: dict[str, Any]) -> None:
        started.set()
        await asyncio.sleep(10)

    registry = ActionRegistry([create_action(ActionMeta("slow", "Never finishes", SCHEMA), None, _slow)])
    task = asyncio.create_task(registry.dispatch({"name": "slow", "args": {"value": 1}}))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
