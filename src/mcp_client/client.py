"""MCP Client for tool execution.

Posts tool calls to the MCP Server's message endpoint and relays the
response body back to the caller. Also defines the error taxonomy
shared with tool discovery.
"""

from collections.abc import Mapping
from typing import Any, Optional

import httpx
import structlog

from shared.logging import get_logger
from shared.models import ConnectionConfig, ToolCall


class MCPClientError(Exception):
    """Base exception for MCP Client errors."""
    pass


class MCPConnectionError(MCPClientError):
    """SSE connection to MCP Server failed."""
    pass


class MCPTimeoutError(MCPClientError):
    """SSE connection did not open within the configured timeout."""
    pass


class MalformedPayloadError(MCPClientError):
    """The tools event did not carry a valid tool catalog."""
    pass


class InvalidArgumentError(MCPClientError):
    """A tool call was requested with an invalid name or parameters."""
    pass


class ToolCallFailedError(MCPClientError):
    """The tool call POST failed at the transport or HTTP layer."""
    pass


def _decode_body(response: httpx.Response) -> Any:
    """Return the response body as JSON, falling back to text."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def describe_failure(error: httpx.HTTPError) -> str:
    """
    Build a human-readable reason for a failed tool call.

    Prefers the server's ``message`` field, then the HTTP status line,
    then the transport error itself.
    """
    response: Optional[httpx.Response] = None
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response

    if response is not None:
        body = _decode_body(response)
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        if response.reason_phrase:
            return f"{response.status_code} {response.reason_phrase}"

    return str(error) or type(error).__name__


class MCPClient:
    """
    Client for executing tools on the MCP Server.

    The client is stateless: every call takes the connection record,
    opens its own HTTP client and closes it before returning.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[structlog.BoundLogger] = None
    ) -> None:
        """
        Initialize MCP Client.

        Args:
            transport: Optional httpx transport, used to stub the server
            logger: Optional structlog logger for call diagnostics
        """
        self._transport = transport
        self._logger = logger or get_logger(__name__)

    @staticmethod
    def _get_headers(config: ConnectionConfig) -> httpx.Headers:
        """Default headers with the configured headers applied on top."""
        headers = httpx.Headers({"Content-Type": "application/json"})
        headers.update(config.headers)
        return headers

    @staticmethod
    def build_call(tool_name: Any, parameters: Any) -> ToolCall:
        """
        Validate a tool call before anything is sent.

        Raises:
            InvalidArgumentError: If the name is empty or the parameters
                are not a mapping
        """
        if not isinstance(tool_name, str) or not tool_name:
            raise InvalidArgumentError("Tool name is required and must be a string.")
        if not isinstance(parameters, Mapping):
            raise InvalidArgumentError("Tool parameters are required and must be an object.")
        return ToolCall(tool_name=tool_name, parameters=dict(parameters))

    async def invoke(
        self,
        config: ConnectionConfig,
        tool_name: str,
        parameters: Mapping[str, Any]
    ) -> Any:
        """
        Execute a tool via the MCP Server.

        Args:
            config: Connection record for the server
            tool_name: Tool name as advertised by the server
            parameters: Tool parameters

        Returns:
            The decoded response body

        Raises:
            InvalidArgumentError: If the call is invalid (nothing is sent)
            ToolCallFailedError: If the request fails
        """
        call = self.build_call(tool_name, parameters)
        log = self._logger.bind(tool=call.tool_name, endpoint=config.message_endpoint)

        log.info("Executing tool call", parameter_count=len(call.parameters))

        async with httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True
        ) as client:
            try:
                response = await client.post(
                    config.message_endpoint,
                    json=call.to_payload(),
                    headers=self._get_headers(config)
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                reason = describe_failure(e)
                log.error(
                    "Tool call failed",
                    status=e.response.status_code,
                    response=_decode_body(e.response),
                    reason=reason
                )
                raise ToolCallFailedError(f"Tool call failed: {reason}") from e
            except httpx.HTTPError as e:
                reason = describe_failure(e)
                log.error("Tool call failed", error=str(e), reason=reason)
                raise ToolCallFailedError(f"Tool call failed: {reason}") from e

        log.info(
            "Received tool call response",
            status=response.status_code,
            reason=response.reason_phrase
        )
        return _decode_body(response)
