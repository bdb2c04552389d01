"""Project actions.

``list_projects`` finds the ``project_id`` that ``create_issue`` accepts;
``get_project`` returns one project with its issues and members.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .actions import Action, ActionMeta, create_action
from .errors import handler_error
from .issues import DEFAULT_LIMIT, ISSUE_FIELDS, connection_nodes, normalize_issue, put_str, ref_fields
from .linear_client import LinearContext, LinearGraphQLClient

PROJECT_STATES = ["planned", "started", "paused", "completed", "canceled", "backlog", "all"]

_PROJECT_FIELDS = """
      id
      name
      description
      state
      url
      progress
      startDate
      targetDate
      createdAt
      updatedAt
      lead { id name }
      teams { nodes { id name key } }
""".strip("\n")

LIST_PROJECTS_QUERY = f"""
query ListProjects($first: Int!, $filter: ProjectFilter, $includeArchived: Boolean) {{
  projects(first: $first, filter: $filter, includeArchived: $includeArchived) {{
    nodes {{
{_PROJECT_FIELDS}
    }}
  }}
}}
""".strip()

GET_PROJECT_QUERY = f"""
query GetProject($id: String!, $first: Int!) {{
  project(id: $id) {{
{_PROJECT_FIELDS}
      issues(first: $first) {{
        nodes {{
{ISSUE_FIELDS}
        }}
      }}
      members(first: $first) {{
        nodes {{ id name displayName }}
      }}
  }}
}}
""".strip()


def normalize_project(node: dict[str, Any]) -> dict[str, Any]:
    """Map an upstream project node to the normalized project shape."""
    project: dict[str, Any] = {"id": node.get("id")}
    put_str(project, "name", node.get("name"))
    put_str(project, "description", node.get("description"))
    put_str(project, "state", node.get("state"))
    put_str(project, "url", node.get("url"))

    progress = node.get("progress")
    if isinstance(progress, (int, float)) and not isinstance(progress, bool):
        project["progress"] = progress

    put_str(project, "start_date", node.get("startDate"))
    put_str(project, "target_date", node.get("targetDate"))

    lead = ref_fields(node.get("lead"), "id", "name")
    if lead:
        project["lead"] = lead
    teams = [ref_fields(t, "id", "name", "key") for t in connection_nodes(node.get("teams"))]
    if teams:
        project["teams"] = teams

    put_str(project, "created_at", node.get("createdAt"))
    put_str(project, "updated_at", node.get("updatedAt"))
    return project


# list_projects

LIST_PROJECTS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "team_id": {"type": "string", "minLength": 1},
        "name_filter": {"type": "string", "minLength": 1, "description": "Case-insensitive partial project name"},
        "state": {"type": "string", "enum": PROJECT_STATES, "default": "all"},
        "include_archived": {"type": "boolean", "default": False},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": DEFAULT_LIMIT},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class ListProjectsArgs:
    team_id: str | None = None
    name_filter: str | None = None
    state: str = "all"
    include_archived: bool = False
    limit: int = DEFAULT_LIMIT


def build_project_filter(args: ListProjectsArgs) -> dict[str, Any]:
    project_filter: dict[str, Any] = {}
    if args.team_id:
        project_filter["accessibleTeams"] = {"some": {"id": {"eq": args.team_id}}}
    if args.name_filter:
        project_filter["name"] = {"containsIgnoreCase": args.name_filter}
    if args.state != "all":
        project_filter["state"] = {"eq": args.state}
    return project_filter


async def list_projects(ctx: LinearContext, args: ListProjectsArgs) -> dict[str, Any]:
    variables: dict[str, Any] = {"first": args.limit, "includeArchived": args.include_archived}
    project_filter = build_project_filter(args)
    if project_filter:
        variables["filter"] = project_filter

    result = await LinearGraphQLClient.from_context(ctx).execute(query=LIST_PROJECTS_QUERY, variables=variables)
    return {"results": [normalize_project(n) for n in connection_nodes(result.data.get("projects"))]}


# get_project

GET_PROJECT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["project_id"],
    "properties": {
        "project_id": {"type": "string", "minLength": 1},
        "include_issues": {"type": "boolean", "default": True},
        "include_members": {"type": "boolean", "default": True},
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 50,
            "default": 10,
            "description": "Maximum number of issues and members to include",
        },
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class GetProjectArgs:
    project_id: str
    include_issues: bool = True
    include_members: bool = True
    limit: int = 10


async def get_project(ctx: LinearContext, args: GetProjectArgs) -> dict[str, Any]:
    result = await LinearGraphQLClient.from_context(ctx).execute(
        query=GET_PROJECT_QUERY,
        variables={"id": args.project_id, "first": args.limit},
    )
    node = result.data.get("project")
    if not isinstance(node, dict):
        raise handler_error(f"Project {args.project_id} not found")

    project = normalize_project(node)
    if args.include_issues:
        project["issues"] = [normalize_issue(n) for n in connection_nodes(node.get("issues"))]
    if args.include_members:
        members = []
        for member in connection_nodes(node.get("members")):
            out: dict[str, Any] = {"id": member["id"]}
            put_str(out, "name", member.get("name"))
            put_str(out, "display_name", member.get("displayName"))
            members.append(out)
        project["members"] = members
    return {"project": project}


LIST_PROJECTS = ActionMeta(
    name="list_projects",
    description="List Linear projects, optionally filtered by team, name or state.",
    input_schema=LIST_PROJECTS_SCHEMA,
    args_type=ListProjectsArgs,
)
GET_PROJECT = ActionMeta(
    name="get_project",
    description="Fetch a Linear project with its issues and members.",
    input_schema=GET_PROJECT_SCHEMA,
    args_type=GetProjectArgs,
)


def project_actions(ctx: LinearContext) -> list[Action[LinearContext]]:
    return [
        create_action(LIST_PROJECTS, ctx, list_projects),
        create_action(GET_PROJECT, ctx, get_project),
    ]
