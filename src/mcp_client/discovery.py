"""Tool Discovery for MCP Client.

Subscribes to the MCP Server's SSE stream, waits for the single
``tools`` event carrying the tool catalog, then closes the stream.
"""

import asyncio
import json
from collections.abc import Iterable
from contextlib import AsyncExitStack, aclosing
from typing import Optional, Union

import httpx
import structlog
from httpx_sse import EventSource, SSEError, aconnect_sse
from pydantic import ValidationError

from shared.logging import get_logger
from shared.models import ConnectionConfig, ToolDefinition, ToolFilter
from mcp_client.client import (
    MalformedPayloadError,
    MCPConnectionError,
    MCPTimeoutError,
)

TOOLS_EVENT = "tools"


def parse_catalog(data: str) -> list[ToolDefinition]:
    """
    Parse the data of a ``tools`` event into a tool catalog.

    Args:
        data: Raw event data

    Returns:
        Tool definitions in server order

    Raises:
        MalformedPayloadError: If the data is not JSON, has no ``tools``
            array, or any entry is not a valid tool definition
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Tools event is not valid JSON: {e}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("tools"), list):
        raise MalformedPayloadError("Invalid tools data: missing or invalid tools array")

    tools = []
    for index, entry in enumerate(payload["tools"]):
        if not isinstance(entry, dict):
            raise MalformedPayloadError(f"Invalid tool definition at index {index}: not an object")
        fields = {"name": entry.get("name"), "parameters": entry.get("parameters")}
        if "description" in entry:
            fields["description"] = entry["description"]
        try:
            tools.append(ToolDefinition(**fields))
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid tool definition at index {index}: {e}") from e

    return tools


def filter_tools(
    tools: Iterable[ToolDefinition],
    tool_filter: Optional[Union[ToolFilter, str]] = None
) -> list[ToolDefinition]:
    """
    Keep tools whose name contains the filter.

    An empty filter or ``all`` keeps everything. Matching is a
    case-sensitive substring test; order is preserved.
    """
    if isinstance(tool_filter, ToolFilter):
        tool_filter = tool_filter.value

    if not tool_filter or tool_filter == ToolFilter.ALL.value:
        return list(tools)

    return [tool for tool in tools if tool_filter in tool.name]


class ToolDiscovery:
    """
    One-shot tool discovery over SSE.

    Each call opens its own connection, resolves exactly once and
    closes the connection on every exit path. Nothing is cached and
    nothing is retried.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[structlog.BoundLogger] = None
    ) -> None:
        """
        Initialize tool discovery.

        Args:
            transport: Optional httpx transport, used to stub the server
            logger: Optional structlog logger for connection diagnostics
        """
        self._transport = transport
        self._logger = logger or get_logger(__name__)

    async def discover(
        self,
        config: ConnectionConfig,
        tool_filter: Optional[Union[ToolFilter, str]] = None
    ) -> list[ToolDefinition]:
        """
        Fetch the tool catalog from the MCP Server.

        Args:
            config: Connection record for the server
            tool_filter: Optional substring filter on tool names

        Returns:
            The (filtered) tool catalog in server order

        Raises:
            MCPTimeoutError: If the connection did not open in time
            MCPConnectionError: If the connection failed or closed early
            MalformedPayloadError: If the tools event could not be parsed
        """
        log = self._logger.bind(sse_url=config.sse_url)
        log.info(
            "Connecting to SSE endpoint",
            timeout_ms=config.sse_timeout_ms,
            has_headers=bool(config.headers)
        )

        async with AsyncExitStack() as stack:
            client = await stack.enter_async_context(
                httpx.AsyncClient(transport=self._transport, timeout=None)
            )
            event_source = await self._open(stack, client, config, log)
            tools = await self._receive_catalog(event_source, config, log)

        filtered = filter_tools(tools, tool_filter)
        if len(filtered) != len(tools):
            log.info(
                "Filtered tools",
                tool_filter=tool_filter,
                before=len(tools),
                after=len(filtered)
            )

        log.info("Emitting tools", tool_count=len(filtered))
        return filtered

    async def _open(
        self,
        stack: AsyncExitStack,
        client: httpx.AsyncClient,
        config: ConnectionConfig,
        log: structlog.BoundLogger
    ) -> EventSource:
        """Open the SSE stream, racing it against the connection timeout."""
        connect = stack.enter_async_context(
            aconnect_sse(client, "GET", config.sse_url, headers=dict(config.headers))
        )

        try:
            # The timer is cancelled as soon as the response headers arrive
            event_source = await asyncio.wait_for(connect, timeout=config.sse_timeout_seconds)
        except asyncio.TimeoutError as e:
            log.error("SSE connection timed out", timeout_ms=config.sse_timeout_ms)
            raise MCPTimeoutError(
                f"SSE connection to {config.sse_url} timed out after {config.sse_timeout_ms}ms"
            ) from e
        except httpx.HTTPError as e:
            log.error("SSE connection failed", error=str(e) or type(e).__name__)
            raise MCPConnectionError(
                f"Failed to connect to SSE endpoint {config.sse_url}: {str(e) or type(e).__name__}"
            ) from e

        response = event_source.response
        if not response.is_success:
            log.error(
                "SSE connection failed",
                status=response.status_code,
                reason=response.reason_phrase
            )
            raise MCPConnectionError(
                f"Failed to connect to SSE endpoint {config.sse_url}: "
                f"{response.status_code} {response.reason_phrase}"
            )

        content_type = response.headers.get("content-type", "")
        if "text/event-stream" not in content_type:
            log.error("SSE connection failed", content_type=content_type)
            raise MCPConnectionError(
                f"Failed to connect to SSE endpoint {config.sse_url}: "
                f"expected text/event-stream, got {content_type or 'no content type'}"
            )

        log.info("SSE connection opened", status=response.status_code)
        return event_source

    async def _receive_catalog(
        self,
        event_source: EventSource,
        config: ConnectionConfig,
        log: structlog.BoundLogger
    ) -> list[ToolDefinition]:
        """Wait for the first tools event and parse it."""
        try:
            async with aclosing(event_source.aiter_sse()) as events:
                async for event in events:
                    if event.event != TOOLS_EVENT:
                        log.debug(
                            "Ignoring SSE event",
                            event_type=event.event,
                            data=event.data,
                            last_event_id=event.id
                        )
                        continue

                    log.info("Received tools event", last_event_id=event.id, size=len(event.data))
                    try:
                        return parse_catalog(event.data)
                    except MalformedPayloadError as e:
                        log.error("Failed to process tools event", error=str(e))
                        raise
        except (httpx.HTTPError, SSEError) as e:
            log.error("SSE connection failed", error=str(e) or type(e).__name__)
            raise MCPConnectionError(
                f"SSE connection to {config.sse_url} failed: {str(e) or type(e).__name__}"
            ) from e

        log.error("SSE connection failed", error="stream closed before a tools event")
        raise MCPConnectionError(
            f"SSE stream from {config.sse_url} closed before a tools event was received"
        )
