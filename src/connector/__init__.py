"""MCP Connector.

Host-facing entry point: runs tool discovery or tool execution
against a configured MCP Server.
"""

from connector.node import McpConnector

__all__ = [
    "McpConnector",
]
