"""MCP Client - Tool discovery and execution.

The MCP Client discovers tools over the MCP Server's SSE stream and
executes tool calls against its message endpoint.
It is stateless and reusable by the connector, CLI, and services.
"""

from mcp_client.client import (
    InvalidArgumentError,
    MalformedPayloadError,
    MCPClient,
    MCPClientError,
    MCPConnectionError,
    MCPTimeoutError,
    ToolCallFailedError,
)
from mcp_client.discovery import ToolDiscovery, filter_tools, parse_catalog

__all__ = [
    "MCPClient",
    "ToolDiscovery",
    "filter_tools",
    "parse_catalog",
    "MCPClientError",
    "MCPConnectionError",
    "MCPTimeoutError",
    "MalformedPayloadError",
    "InvalidArgumentError",
    "ToolCallFailedError",
]
