"""MCP server wiring for linear-mcp.

Lists the registered actions as MCP tools, routes tool calls through the
audited dispatcher and serializes response envelopes as text content.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import Resource, TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .errors import SafeError, internal_error
from .http_effect import InMemoryHttpEffect
from .linear_client import LinearContext
from .registry import ActionRegistry
from .tools import build_registry, dispatch_tool, initialize_runtime_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

server = Server("linear-mcp")

_RESOURCES = [
    Resource(
        uri="linear-mcp://server-status",
        name="Server Status",
        description="Non-secret server configuration and limits",
    ),
    Resource(
        uri="linear-mcp://capabilities",
        name="Capabilities",
        description="Registered operations and safety constraints",
    ),
]


def _tools_from_registry(registry: ActionRegistry) -> list[Tool]:
    return [
        Tool(name=op["name"], description=op["description"], inputSchema=op["inputSchema"])
        for op in registry.list_operations()["operations"]
    ]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = _tools_from_registry(initialize_runtime_from_env().registry)
    logger.info("Listed %s tools", len(tools))
    return tools


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent."""
    if not isinstance(arguments, dict):
        arguments = {}

    logger.info("Tool called: %s", name)

    try:
        envelope = await dispatch_tool(name, arguments)
    except Exception as exc:  # pylint: disable=broad-exception-caught  # pragma: no cover
        logger.error("Tool %s failed: %s", name, exc)
        envelope = internal_error("Tool execution failed")
    return [TextContent(type="text", text=json.dumps(envelope, indent=2, default=str))]


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return list(_RESOURCES)


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    uri_s = uri if isinstance(uri, str) else str(uri)

    if uri_s == "linear-mcp://capabilities":
        try:
            operations = initialize_runtime_from_env().registry.names()
        except SafeError:
            operations = []
        caps = {
            "server": "linear-mcp",
            "version": __version__,
            "operations": operations,
            "safety": {
                "credential_like_arguments_rejected": True,
                "fixed_graphql_documents_only": True,
                "linear_api_allowlist": ["https://api.linear.app/graphql"],
            },
        }
        return json.dumps(caps, indent=2)

    if uri_s == "linear-mcp://server-status":
        status: dict[str, Any] = {
            "server": "linear-mcp",
            "version": __version__,
            "configured": False,
        }
        try:
            runtime = initialize_runtime_from_env()
            status["configured"] = True
            status["tools_available"] = len(runtime.registry)
            status["tool_names"] = runtime.registry.names()
            status["limits"] = {
                "total_timeout_s": runtime.config.limits.total_timeout_s,
                "connect_timeout_s": runtime.config.limits.connect_timeout_s,
                "read_timeout_s": runtime.config.limits.read_timeout_s,
                "max_attempts": runtime.config.limits.max_attempts,
            }
            status["audit"] = {"file_sink_enabled": runtime.config.audit_log_path is not None}
        except SafeError:
            status["configured"] = False

        return json.dumps(status, indent=2)

    return json.dumps({"error": {"code": "NotFound", "message": "Unknown resource"}}, indent=2)


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid/missing host configuration.
    try:
        _ = initialize_runtime_from_env()
    except SafeError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Offline self-test: build every action and dispatch one call without network access."""
    registry = build_registry(LinearContext(api_key="self-test", http=InMemoryHttpEffect()))
    tools = _tools_from_registry(registry)

    envelope = await registry.dispatch({"name": "search_issues", "args": {"query": "   "}})
    if envelope != {"result": {"results": []}}:
        raise RuntimeError(f"Self-test dispatch returned unexpected envelope: {envelope}")

    print(f"Self-test passed: {len(tools)} tools, {len(_RESOURCES)} resources", file=sys.stderr)
