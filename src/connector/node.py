"""MCP Connector - host-facing entry point.

The connector is what the workflow host calls for each run. It:
- Resolves host form fields (JSON strings or objects)
- Selects exactly one of discovery or execution
- Applies the optional tool name mapping (aliases)
"""

import json
from collections.abc import Mapping
from typing import Any, Optional, Union

from pydantic import ValidationError

from shared.logging import get_logger
from shared.models import ConnectionConfig, ConnectorMode, ToolDefinition, ToolFilter
from mcp_client.client import InvalidArgumentError, MCPClient
from mcp_client.discovery import ToolDiscovery

logger = get_logger(__name__)

JsonField = Union[str, Mapping[str, Any], None]


def load_json_field(value: JsonField, field: str) -> Optional[dict[str, Any]]:
    """
    Resolve a host JSON field into a mapping.

    Args:
        value: A mapping, a JSON-encoded object, or None
        field: Field name used in error messages

    Returns:
        The mapping, or None if the field was not supplied

    Raises:
        InvalidArgumentError: If the field is not a JSON object
    """
    if value is None:
        return None

    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise InvalidArgumentError(f"{field} must be valid JSON: {e}") from e

    if not isinstance(value, Mapping):
        raise InvalidArgumentError(f"{field} must be a JSON object.")

    return dict(value)


def apply_aliases(
    tools: list[ToolDefinition],
    mapping: Optional[Mapping[str, Any]]
) -> list[ToolDefinition]:
    """Attach aliases from the tool name mapping to matching tools."""
    if not mapping:
        return tools

    return [
        tool.model_copy(update={"alias": str(mapping[tool.name])})
        if tool.name in mapping else tool
        for tool in tools
    ]


def resolve_tool_name(tool_name: Any, mapping: Optional[Mapping[str, Any]]) -> Any:
    """Map an alias back to the server's tool name."""
    if not mapping or not isinstance(tool_name, str):
        return tool_name

    for name, alias in mapping.items():
        if alias == tool_name:
            return name
    return tool_name


class McpConnector:
    """
    Connector between a workflow host and one MCP Server.

    Holds no per-run state: the connection record is passed into every
    call and each call runs exactly one client.
    """

    def __init__(
        self,
        discovery: Optional[ToolDiscovery] = None,
        client: Optional[MCPClient] = None
    ) -> None:
        """
        Initialize the connector.

        Args:
            discovery: Tool discovery client
            client: Tool execution client
        """
        self.discovery = discovery or ToolDiscovery()
        self.client = client or MCPClient()

    async def discover(
        self,
        config: ConnectionConfig,
        tool_type: Union[ToolFilter, str, None] = ToolFilter.ALL,
        tool_name_mapping: JsonField = None
    ) -> list[dict[str, Any]]:
        """
        Discover tools and return them as host JSON items.

        Args:
            config: Connection record
            tool_type: Tool type filter
            tool_name_mapping: Optional {tool name: alias} mapping

        Returns:
            One JSON item per tool, in server order
        """
        mapping = load_json_field(tool_name_mapping, "Tool name mapping")
        tools = await self.discovery.discover(config, tool_type)
        return [tool.to_item() for tool in apply_aliases(tools, mapping)]

    async def execute(
        self,
        config: ConnectionConfig,
        tool_name: Any,
        tool_parameters: JsonField,
        tool_name_mapping: JsonField = None
    ) -> Any:
        """
        Execute one tool and return the server's response body.

        Args:
            config: Connection record
            tool_name: Tool name or alias
            tool_parameters: Parameters as a mapping or JSON object string
            tool_name_mapping: Optional {tool name: alias} mapping

        Returns:
            The decoded response body, unchanged
        """
        mapping = load_json_field(tool_name_mapping, "Tool name mapping")
        parameters = load_json_field(tool_parameters, "Tool parameters")
        name = resolve_tool_name(tool_name, mapping)

        if name != tool_name:
            logger.debug("Resolved tool alias", alias=tool_name, tool=name)

        return await self.client.invoke(config, name, parameters)

    async def run(
        self,
        mode: Union[ConnectorMode, str],
        config: Union[ConnectionConfig, Mapping[str, Any]],
        *,
        tool_type: Union[ToolFilter, str, None] = ToolFilter.ALL,
        tool_name: Any = None,
        tool_parameters: JsonField = None,
        tool_name_mapping: JsonField = None
    ) -> Any:
        """
        Run the connector in the selected mode.

        Args:
            mode: ``discover`` or ``execute``
            config: Connection record, or the raw host credential mapping
            tool_type: Tool type filter (discover)
            tool_name: Tool name or alias (execute)
            tool_parameters: Tool parameters (execute)
            tool_name_mapping: Optional {tool name: alias} mapping

        Returns:
            Tool JSON items for discover, the response body for execute
        """
        try:
            mode = ConnectorMode(mode)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown connector mode: {mode}") from e

        if not isinstance(config, ConnectionConfig):
            try:
                config = ConnectionConfig.model_validate(config)
            except ValidationError as e:
                raise InvalidArgumentError(f"Invalid connection configuration: {e}") from e

        logger.info(
            "Connector run",
            mode=mode.value,
            sse_url=config.sse_url,
            message_endpoint=config.message_endpoint
        )

        if mode is ConnectorMode.DISCOVER:
            return await self.discover(config, tool_type, tool_name_mapping)
        return await self.execute(config, tool_name, tool_parameters, tool_name_mapping)
