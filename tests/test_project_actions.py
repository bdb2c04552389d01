"""Project actions with an in-memory Linear."""

from __future__ import annotations

from typing import Any

import pytest
from linear_mcp.config import LINEAR_API_URL
from linear_mcp.errors import HANDLER_ERROR, VALIDATION_ERROR
from linear_mcp.http_effect import InMemoryHttpEffect, json_response
from linear_mcp.linear_client import LinearContext
from linear_mcp.projects import ListProjectsArgs, build_project_filter, normalize_project
from linear_mcp.tools import build_registry

PROJECT_NODE = {
    "id": "p1",
    "name": "Mobile launch",
    "description": None,
    "state": "started",
    "url": "https://linear.app/x/project/mobile-launch",
    "progress": 0.4,
    "targetDate": "2024-06-01",
    "lead": {"id": "u1", "name": "Sam"},
    "teams": {"nodes": [{"id": "t1", "name": "Engineering", "key": "ENG"}]},
}


def _setup(data: dict[str, Any]):
    http = InMemoryHttpEffect({LINEAR_API_URL: lambda _req: json_response({"data": data})})
    return build_registry(LinearContext(api_key="lin_api_test", http=http)), http


def test_normalize_project() -> None:
    assert normalize_project(PROJECT_NODE) == {
        "id": "p1",
        "name": "Mobile launch",
        "state": "started",
        "url": "https://linear.app/x/project/mobile-launch",
        "progress": 0.4,
        "target_date": "2024-06-01",
        "lead": {"id": "u1", "name": "Sam"},
        "teams": [{"id": "t1", "name": "Engineering", "key": "ENG"}],
    }


def test_build_project_filter() -> None:
    assert build_project_filter(ListProjectsArgs()) == {}
    assert build_project_filter(ListProjectsArgs(team_id="t1", name_filter="mob", state="started")) == {
        "accessibleTeams": {"some": {"id": {"eq": "t1"}}},
        "name": {"containsIgnoreCase": "mob"},
        "state": {"eq": "started"},
    }


@pytest.mark.asyncio
async def test_list_projects_defaults() -> None:
    registry, http = _setup({"projects": {"nodes": [PROJECT_NODE]}})

    out = await registry.dispatch({"name": "list_projects"})

    assert [p["id"] for p in out["result"]["results"]] == ["p1"]
    assert http.requests[0].json()["variables"] == {"first": 25, "includeArchived": False}


@pytest.mark.asyncio
async def test_list_projects_sends_filters() -> None:
    registry, http = _setup({"projects": {"nodes": []}})

    out = await registry.dispatch(
        {"name": "list_projects", "args": {"team_id": "t1", "state": "completed", "include_archived": True, "limit": 5}}
    )

    assert out == {"result": {"results": []}}
    assert http.requests[0].json()["variables"] == {
        "first": 5,
        "includeArchived": True,
        "filter": {"accessibleTeams": {"some": {"id": {"eq": "t1"}}}, "state": {"eq": "completed"}},
    }


@pytest.mark.asyncio
async def test_list_projects_rejects_unknown_state() -> None:
    registry, http = _setup({})

    out = await registry.dispatch({"name": "list_projects", "args": {"state": "archived"}})

    assert out["error"]["code"] == VALIDATION_ERROR
    assert http.requests == []


@pytest.mark.asyncio
async def test_get_project_with_issues_and_members() -> None:
    node = {
        **PROJECT_NODE,
        "issues": {"nodes": [{"id": "i1", "identifier": "ENG-1", "state": {"name": "Todo"}}]},
        "members": {"nodes": [{"id": "u1", "name": "Sam", "displayName": "sam"}]},
    }
    registry, http = _setup({"project": node})

    out = await registry.dispatch({"name": "get_project", "args": {"project_id": "p1", "limit": 5}})

    project = out["result"]["project"]
    assert project["issues"] == [{"id": "i1", "identifier": "ENG-1", "status": "Todo"}]
    assert project["members"] == [{"id": "u1", "name": "Sam", "display_name": "sam"}]
    assert http.requests[0].json()["variables"] == {"id": "p1", "first": 5}


@pytest.mark.asyncio
async def test_get_project_can_omit_issues_and_members() -> None:
    registry, _http = _setup({"project": {**PROJECT_NODE, "issues": {"nodes": []}, "members": {"nodes": []}}})

    out = await registry.dispatch(
        {"name": "get_project", "args": {"project_id": "p1", "include_issues": False, "include_members": False}}
    )

    assert "issues" not in out["result"]["project"]
    assert "members" not in out["result"]["project"]


@pytest.mark.asyncio
async def test_get_project_missing_is_handler_error() -> None:
    registry, _http = _setup({"project": None})

    out = await registry.dispatch({"name": "get_project", "args": {"project_id": "nope"}})

    assert out == {"error": {"message": "Project nope not found", "code": HANDLER_ERROR}}
