"""Team and member lookup actions.

These help an agent find the ids that issue actions expect (``team_id`` for
``create_issue``, ``state_id`` and ``assignee_id`` for ``update_issue``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .actions import Action, ActionMeta, create_action
from .errors import handler_error
from .issues import DEFAULT_LIMIT, connection_nodes, put_str
from .linear_client import LinearContext, LinearGraphQLClient

LIST_TEAMS_QUERY = """
query ListTeams($first: Int!, $filter: TeamFilter) {
  teams(first: $first, filter: $filter) {
    nodes { id name key description }
  }
}
""".strip()

LIST_WORKFLOW_STATES_QUERY = """
query ListWorkflowStates($teamId: String!) {
  team(id: $teamId) {
    id
    name
    states {
      nodes { id name type color position description }
    }
  }
}
""".strip()

_MEMBER_FIELDS = "id name displayName email active admin"

LIST_USERS_QUERY = f"""
query ListUsers($first: Int!, $filter: UserFilter) {{
  users(first: $first, filter: $filter) {{
    nodes {{ {_MEMBER_FIELDS} }}
  }}
}}
""".strip()

LIST_TEAM_MEMBERS_QUERY = f"""
query ListTeamMembers($teamId: String!, $first: Int!, $filter: UserFilter) {{
  team(id: $teamId) {{
    members(first: $first, filter: $filter) {{
      nodes {{ {_MEMBER_FIELDS} }}
    }}
  }}
}}
""".strip()


def _str_fields(node: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {k: node[k] for k in keys if isinstance(node.get(k), str)}


LIST_TEAMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name_filter": {"type": "string", "minLength": 1, "description": "Case-insensitive partial team name"},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": DEFAULT_LIMIT},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class ListTeamsArgs:
    name_filter: str | None = None
    limit: int = DEFAULT_LIMIT


async def list_teams(ctx: LinearContext, args: ListTeamsArgs) -> dict[str, Any]:
    variables: dict[str, Any] = {"first": args.limit}
    if args.name_filter:
        variables["filter"] = {"name": {"containsIgnoreCase": args.name_filter}}

    result = await LinearGraphQLClient.from_context(ctx).execute(query=LIST_TEAMS_QUERY, variables=variables)
    return {
        "results": [
            _str_fields(n, "id", "name", "key", "description") for n in connection_nodes(result.data.get("teams"))
        ]
    }


LIST_WORKFLOW_STATES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["team_id"],
    "properties": {
        "team_id": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class ListWorkflowStatesArgs:
    team_id: str


def _normalize_state(node: dict[str, Any]) -> dict[str, Any]:
    state = _str_fields(node, "id", "name", "type", "color", "description")
    position = node.get("position")
    if isinstance(position, (int, float)) and not isinstance(position, bool):
        state["position"] = position
    return state


async def list_workflow_states(ctx: LinearContext, args: ListWorkflowStatesArgs) -> dict[str, Any]:
    result = await LinearGraphQLClient.from_context(ctx).execute(
        query=LIST_WORKFLOW_STATES_QUERY,
        variables={"teamId": args.team_id},
    )
    team = result.data.get("team")
    if not isinstance(team, dict):
        raise handler_error(f"Team {args.team_id} not found")

    normalized = [_normalize_state(n) for n in connection_nodes(team.get("states"))]
    normalized.sort(key=lambda s: s.get("position", float("inf")))
    return {"results": normalized}


LIST_MEMBERS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "team_id": {"type": "string", "minLength": 1, "description": "Only members of this team"},
        "name_filter": {"type": "string", "minLength": 1, "description": "Case-insensitive partial name"},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": DEFAULT_LIMIT},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class ListMembersArgs:
    team_id: str | None = None
    name_filter: str | None = None
    limit: int = DEFAULT_LIMIT


def normalize_member(node: dict[str, Any]) -> dict[str, Any]:
    member: dict[str, Any] = {"id": node.get("id")}
    put_str(member, "name", node.get("name"))
    put_str(member, "display_name", node.get("displayName"))
    put_str(member, "email", node.get("email"))
    for key in ("active", "admin"):
        if isinstance(node.get(key), bool):
            member[key] = node[key]
    return member


async def list_members(ctx: LinearContext, args: ListMembersArgs) -> dict[str, Any]:
    """List workspace users, or the members of one team."""
    variables: dict[str, Any] = {"first": args.limit}
    if args.name_filter:
        # Matches either the full name or the display name.
        variables["filter"] = {
            "or": [
                {"name": {"containsIgnoreCase": args.name_filter}},
                {"displayName": {"containsIgnoreCase": args.name_filter}},
            ]
        }

    client = LinearGraphQLClient.from_context(ctx)
    if args.team_id is None:
        result = await client.execute(query=LIST_USERS_QUERY, variables=variables)
        users = result.data.get("users")
    else:
        result = await client.execute(query=LIST_TEAM_MEMBERS_QUERY, variables={"teamId": args.team_id, **variables})
        team = result.data.get("team")
        if not isinstance(team, dict):
            raise handler_error(f"Team {args.team_id} not found")
        users = team.get("members")

    return {"results": [normalize_member(n) for n in connection_nodes(users)]}


LIST_TEAMS = ActionMeta(
    name="list_teams",
    description="List Linear teams, optionally filtered by name.",
    input_schema=LIST_TEAMS_SCHEMA,
    args_type=ListTeamsArgs,
)
LIST_WORKFLOW_STATES = ActionMeta(
    name="list_workflow_states",
    description=(
        "List the workflow states of a Linear team. Useful for finding the state_id "
        "to use when updating an issue status."
    ),
    input_schema=LIST_WORKFLOW_STATES_SCHEMA,
    args_type=ListWorkflowStatesArgs,
)
LIST_MEMBERS = ActionMeta(
    name="list_members",
    description="List Linear users (optionally one team's members) to find an assignee_id.",
    input_schema=LIST_MEMBERS_SCHEMA,
    args_type=ListMembersArgs,
)


def team_actions(ctx: LinearContext) -> list[Action[LinearContext]]:
    return [
        create_action(LIST_TEAMS, ctx, list_teams),
        create_action(LIST_WORKFLOW_STATES, ctx, list_workflow_states),
        create_action(LIST_MEMBERS, ctx, list_members),
    ]
