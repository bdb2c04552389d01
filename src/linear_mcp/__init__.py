"""Linear MCP Server.

Exposes Linear issue search, update and comment operations to AI agents as
schema-validated MCP tools.
"""

__version__ = "0.1.0"
