"""Issue actions: search, fetch, create, update and comment.

Handlers receive validated, typed arguments plus a ``LinearContext``; they
build GraphQL variables only from those arguments, run exactly one query,
and normalize the upstream payload. Absent upstream values are omitted from
the normalized shape rather than emitted as null.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .actions import Action, ActionMeta, create_action
from .errors import handler_error
from .linear_client import LinearContext, LinearGraphQLClient

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 25
SORT_FIELDS = ["priority", "createdAt", "updatedAt"]
SORT_DIRECTIONS = ["ASC", "DESC"]

PRIORITY_LABELS = {
    0: "No priority",
    1: "Urgent",
    2: "High",
    3: "Medium",
    4: "Low",
}

ISSUE_FIELDS = """
      id
      identifier
      title
      description
      priority
      url
      state { name }
      assignee { id name }
      team { id name key }
      createdAt
      updatedAt
""".strip("\n")

SEARCH_ISSUES_QUERY = f"""
query SearchIssues($query: String!, $first: Int!, $orderBy: IssueOrder) {{
  issues(filter: {{ search: $query }}, first: $first, orderBy: $orderBy) {{
    nodes {{
{ISSUE_FIELDS}
    }}
  }}
}}
""".strip()

GET_ISSUE_QUERY = f"""
query GetIssue($id: String!) {{
  issue(id: $id) {{
{ISSUE_FIELDS}
      comments(first: 50) {{
        nodes {{ id body createdAt user {{ id name }} }}
      }}
  }}
}}
""".strip()

UPDATE_ISSUE_MUTATION = f"""
mutation UpdateIssue($id: String!, $input: IssueUpdateInput!) {{
  issueUpdate(id: $id, input: $input) {{
    success
    issue {{
{ISSUE_FIELDS}
    }}
  }}
}}
""".strip()

CREATE_ISSUE_MUTATION = f"""
mutation CreateIssue($input: IssueCreateInput!) {{
  issueCreate(input: $input) {{
    success
    issue {{
{ISSUE_FIELDS}
    }}
  }}
}}
""".strip()

ADD_COMMENT_MUTATION = """
mutation AddComment($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment { id body createdAt user { id name } }
  }
}
""".strip()


def upstream_sort_direction(sort_by: str, direction: str) -> str:
    """Map a requested sort direction to the one sent to Linear.

    Linear ranks priority with lower numbers meaning higher priority, so an
    ascending priority request is sent as DESC and vice versa. Other fields
    pass through unchanged.
    """
    if sort_by == "priority":
        return "DESC" if direction == "ASC" else "ASC"
    return direction


def put_str(out: dict[str, Any], key: str, value: object) -> None:
    if isinstance(value, str):
        out[key] = value


def ref_fields(value: object, *keys: str) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        return None
    ref = {k: value[k] for k in keys if isinstance(value.get(k), str)}
    return ref or None


def normalize_issue(node: dict[str, Any]) -> dict[str, Any]:
    """Map an upstream issue node to the normalized issue shape."""
    issue: dict[str, Any] = {"id": node.get("id")}
    put_str(issue, "identifier", node.get("identifier"))
    put_str(issue, "title", node.get("title"))
    put_str(issue, "description", node.get("description"))

    state = node.get("state")
    if isinstance(state, dict):
        put_str(issue, "status", state.get("name"))

    priority = node.get("priority")
    if isinstance(priority, (int, float)) and not isinstance(priority, bool):
        issue["priority"] = int(priority)
        issue["priority_label"] = PRIORITY_LABELS.get(int(priority), "Unknown")

    put_str(issue, "url", node.get("url"))

    assignee = ref_fields(node.get("assignee"), "id", "name")
    if assignee:
        issue["assignee"] = assignee
    team = ref_fields(node.get("team"), "id", "name", "key")
    if team:
        issue["team"] = team

    put_str(issue, "created_at", node.get("createdAt"))
    put_str(issue, "updated_at", node.get("updatedAt"))
    return issue


def normalize_comment(node: dict[str, Any]) -> dict[str, Any]:
    comment: dict[str, Any] = {"id": node.get("id")}
    put_str(comment, "body", node.get("body"))
    user = ref_fields(node.get("user"), "id", "name")
    if user:
        comment["user"] = user
    put_str(comment, "created_at", node.get("createdAt"))
    return comment


def connection_nodes(container: object) -> list[dict[str, Any]]:
    """Return the nodes of a GraphQL connection that carry a string id."""
    if not isinstance(container, dict):
        return []
    nodes = container.get("nodes")
    if not isinstance(nodes, list):
        return []
    kept = [n for n in nodes if isinstance(n, dict) and isinstance(n.get("id"), str)]
    if len(kept) != len(nodes):
        logger.debug("Dropped %s upstream node(s) without an id", len(nodes) - len(kept))
    return kept


async def _search(ctx: LinearContext, *, query: str, limit: int, sort_by: str | None, sort_direction: str) -> dict[str, Any]:
    variables: dict[str, Any] = {"query": query, "first": limit}
    if sort_by:
        variables["orderBy"] = {
            "field": sort_by,
            "direction": upstream_sort_direction(sort_by, sort_direction),
        }

    result = await LinearGraphQLClient.from_context(ctx).execute(query=SEARCH_ISSUES_QUERY, variables=variables)
    issues = result.data.get("issues")
    return {"results": [normalize_issue(node) for node in connection_nodes(issues)]}


def _mutation_payload(data: dict[str, Any], key: str, what: str) -> dict[str, Any]:
    payload = data.get(key)
    if not isinstance(payload, dict):
        raise handler_error(f"Unexpected {what} response")
    return payload


# search_issues

SEARCH_ISSUES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["query"],
    "properties": {
        "query": {"type": "string", "description": "Full-text search query"},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": DEFAULT_LIMIT},
        "sort_by": {"type": "string", "enum": SORT_FIELDS},
        "sort_direction": {"type": "string", "enum": SORT_DIRECTIONS, "default": "ASC"},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class SearchIssuesArgs:
    query: str
    limit: int = DEFAULT_LIMIT
    sort_by: str | None = None
    sort_direction: str = "ASC"


async def search_issues(ctx: LinearContext, args: SearchIssuesArgs) -> dict[str, Any]:
    """Search issues by free text; a blank query matches nothing."""
    if not args.query.strip():
        return {"results": []}
    return await _search(
        ctx,
        query=args.query,
        limit=args.limit,
        sort_by=args.sort_by,
        sort_direction=args.sort_direction,
    )


# search_tickets

SEARCH_TICKETS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "assigned_to_me": {"type": "boolean", "default": False},
        "status": {"type": "string", "minLength": 1},
        "sort_by": {"type": "string", "enum": SORT_FIELDS, "default": "priority"},
        "sort_direction": {"type": "string", "enum": SORT_DIRECTIONS, "default": "ASC"},
        "limit": {"type": "integer", "minimum": 1, "maximum": 100, "default": DEFAULT_LIMIT},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class SearchTicketsArgs:
    assigned_to_me: bool = False
    status: str | None = None
    sort_by: str = "priority"
    sort_direction: str = "ASC"
    limit: int = DEFAULT_LIMIT


def build_ticket_query(args: SearchTicketsArgs) -> str:
    query = ""
    if args.assigned_to_me:
        query += "assignee:me "
    if args.status:
        query += f'state:"{args.status}" '
    return query.strip()


async def search_tickets(ctx: LinearContext, args: SearchTicketsArgs) -> dict[str, Any]:
    return await _search(
        ctx,
        query=build_ticket_query(args),
        limit=args.limit,
        sort_by=args.sort_by,
        sort_direction=args.sort_direction,
    )


# get_issue

GET_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["issue_id"],
    "properties": {
        "issue_id": {"type": "string", "minLength": 1, "description": "Issue id or identifier (e.g. ENG-123)"},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class GetIssueArgs:
    issue_id: str


async def get_issue(ctx: LinearContext, args: GetIssueArgs) -> dict[str, Any]:
    result = await LinearGraphQLClient.from_context(ctx).execute(query=GET_ISSUE_QUERY, variables={"id": args.issue_id})
    node = result.data.get("issue")
    if not isinstance(node, dict):
        raise handler_error(f"Issue {args.issue_id} not found")

    issue = normalize_issue(node)
    issue["comments"] = [normalize_comment(c) for c in connection_nodes(node.get("comments"))]
    return {"issue": issue}


# update_issue

UPDATE_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["issue_id"],
    "properties": {
        "issue_id": {"type": "string", "minLength": 1},
        "title": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "state_id": {"type": "string", "minLength": 1},
        "priority": {"type": "integer", "minimum": 0, "maximum": 4},
        "assignee_id": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class UpdateIssueArgs:
    issue_id: str
    title: str | None = None
    description: str | None = None
    state_id: str | None = None
    priority: int | None = None
    assignee_id: str | None = None


def build_update_input(args: UpdateIssueArgs) -> dict[str, Any]:
    """Only fields that were provided are sent upstream."""
    fields = {
        "title": args.title,
        "description": args.description,
        "stateId": args.state_id,
        "priority": args.priority,
        "assigneeId": args.assignee_id,
    }
    return {k: v for k, v in fields.items() if v is not None}


async def update_issue(ctx: LinearContext, args: UpdateIssueArgs) -> dict[str, Any]:
    update = build_update_input(args)
    logger.info("Updating issue %s (%s)", args.issue_id, ", ".join(sorted(update)) or "no fields")

    result = await LinearGraphQLClient.from_context(ctx).execute(
        query=UPDATE_ISSUE_MUTATION,
        variables={"id": args.issue_id, "input": update},
    )
    payload = _mutation_payload(result.data, "issueUpdate", "issue update")
    node = payload.get("issue")
    if not isinstance(node, dict):
        raise handler_error(f"Issue {args.issue_id} not found")
    return {"success": bool(payload.get("success")), "issue": normalize_issue(node)}


# add_comment

ADD_COMMENT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["issue_id", "body"],
    "properties": {
        "issue_id": {"type": "string", "minLength": 1},
        "body": {"type": "string", "minLength": 1, "description": "Markdown comment text"},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class AddCommentArgs:
    issue_id: str
    body: str


async def add_comment(ctx: LinearContext, args: AddCommentArgs) -> dict[str, Any]:
    result = await LinearGraphQLClient.from_context(ctx).execute(
        query=ADD_COMMENT_MUTATION,
        variables={"input": {"issueId": args.issue_id, "body": args.body}},
    )
    payload = _mutation_payload(result.data, "commentCreate", "comment")
    node = payload.get("comment")
    if not isinstance(node, dict):
        raise handler_error("Failed to create comment")
    return {"success": bool(payload.get("success")), "comment": normalize_comment(node)}


# create_issue

CREATE_ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["team_id", "title"],
    "properties": {
        "team_id": {"type": "string", "minLength": 1},
        "title": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "priority": {"type": "integer", "minimum": 0, "maximum": 4},
        "assignee_id": {"type": "string", "minLength": 1},
        "state_id": {"type": "string", "minLength": 1},
        "project_id": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True, slots=True)
class CreateIssueArgs:
    team_id: str
    title: str
    description: str | None = None
    priority: int | None = None
    assignee_id: str | None = None
    state_id: str | None = None
    project_id: str | None = None


async def create_issue(ctx: LinearContext, args: CreateIssueArgs) -> dict[str, Any]:
    fields = {
        "teamId": args.team_id,
        "title": args.title,
        "description": args.description,
        "priority": args.priority,
        "assigneeId": args.assignee_id,
        "stateId": args.state_id,
        "projectId": args.project_id,
    }
    result = await LinearGraphQLClient.from_context(ctx).execute(
        query=CREATE_ISSUE_MUTATION,
        variables={"input": {k: v for k, v in fields.items() if v is not None}},
    )
    payload = _mutation_payload(result.data, "issueCreate", "issue create")
    node = payload.get("issue")
    if not isinstance(node, dict):
        raise handler_error("Failed to create issue")
    return {"success": bool(payload.get("success")), "issue": normalize_issue(node)}


SEARCH_ISSUES = ActionMeta(
    name="search_issues",
    description="Search for Linear issues with the given query.",
    input_schema=SEARCH_ISSUES_SCHEMA,
    args_type=SearchIssuesArgs,
)
SEARCH_TICKETS = ActionMeta(
    name="search_tickets",
    description="Search for Linear tickets with filtering and sorting options.",
    input_schema=SEARCH_TICKETS_SCHEMA,
    args_type=SearchTicketsArgs,
)
GET_ISSUE = ActionMeta(
    name="get_issue",
    description="Fetch a Linear issue with its recent comments.",
    input_schema=GET_ISSUE_SCHEMA,
    args_type=GetIssueArgs,
)
UPDATE_ISSUE = ActionMeta(
    name="update_issue",
    description="Update a Linear issue's title, description, state, priority (0-4) or assignee.",
    input_schema=UPDATE_ISSUE_SCHEMA,
    args_type=UpdateIssueArgs,
)
ADD_COMMENT = ActionMeta(
    name="add_comment",
    description="Add a comment to a specific Linear issue.",
    input_schema=ADD_COMMENT_SCHEMA,
    args_type=AddCommentArgs,
)
CREATE_ISSUE = ActionMeta(
    name="create_issue",
    description="Create a new issue in a Linear team.",
    input_schema=CREATE_ISSUE_SCHEMA,
    args_type=CreateIssueArgs,
)


def issue_actions(ctx: LinearContext) -> list[Action[LinearContext]]:
    """Bind every issue action to ``ctx``."""
    return [
        create_action(SEARCH_ISSUES, ctx, search_issues),
        create_action(SEARCH_TICKETS, ctx, search_tickets),
        create_action(GET_ISSUE, ctx, get_issue),
        create_action(UPDATE_ISSUE, ctx, update_issue),
        create_action(ADD_COMMENT, ctx, add_comment),
        create_action(CREATE_ISSUE, ctx, create_issue),
    ]
