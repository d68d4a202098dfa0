"""Core data models for the MCP Connector.

This module defines the connection record shared by both clients and
the tool catalog types produced by discovery.
"""

import json
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.logging import get_logger

logger = get_logger(__name__)


class ConnectorMode(str, Enum):
    """Operation selected by the host for a single run."""
    DISCOVER = "discover"
    EXECUTE = "execute"


class ToolFilter(str, Enum):
    """Tool type filters offered to the host."""
    ALL = "all"
    SEARCH = "search_tool"
    UPDATE = "update_tool"
    REPORT = "report_tool"


def _coerce_headers(value: Any) -> dict[str, str]:
    """Resolve a raw JSON string or a mapping into request headers.

    Anything that cannot be used as a header is logged and dropped.
    """
    if value is None:
        return {}

    if isinstance(value, (str, bytes)):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse headers", error=str(e))
            return {}

    if not isinstance(value, dict):
        logger.warning(
            "Failed to parse headers",
            error=f"expected a JSON object, got {type(value).__name__}"
        )
        return {}

    headers: dict[str, str] = {}
    for name, header_value in value.items():
        name = str(name)
        if isinstance(header_value, bool):
            header_value = "true" if header_value else "false"
        elif isinstance(header_value, (str, int, float)):
            header_value = str(header_value)
        else:
            logger.warning(
                "Failed to parse headers",
                header=name,
                error=f"unsupported value type {type(header_value).__name__}"
            )
            continue

        # httpx sends header names and values as ASCII
        try:
            httpx.Headers({name: header_value})
        except (UnicodeEncodeError, TypeError) as e:
            logger.warning("Failed to parse headers", header=name, error=str(e))
            continue

        headers[name] = header_value
    return headers


class ConnectionConfig(BaseModel):
    """
    Connection record for one MCP server.

    Accepts the host credential field names (sseUrl, sseTimeout,
    messageEndpoint, headers) as well as the Python field names.
    Headers may be given as a mapping or as a JSON-encoded string and
    are resolved once, when the record is built.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sse_url: str = Field(..., alias="sseUrl", min_length=1)
    sse_timeout_ms: int = Field(default=0, alias="sseTimeout", ge=0)
    message_endpoint: str = Field(..., alias="messageEndpoint", min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("sse_timeout_ms", mode="before")
    @classmethod
    def _absent_timeout(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("headers", mode="before")
    @classmethod
    def _resolve_headers(cls, value: Any) -> dict[str, str]:
        return _coerce_headers(value)

    @property
    def sse_timeout_seconds(self) -> Optional[float]:
        """Connection timeout in seconds, or None when disabled."""
        if self.sse_timeout_ms <= 0:
            return None
        return self.sse_timeout_ms / 1000


class ToolParameter(BaseModel):
    """Definition of a single tool parameter as sent by the server."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    description: Optional[str] = None
    required: Optional[bool] = None
    default: Any = None


class ToolDefinition(BaseModel):
    """
    A tool advertised by the MCP server.

    Name and description are passed through from the catalog;
    parameters default to an empty mapping.
    """
    name: str
    description: Optional[str] = None
    parameters: dict[str, ToolParameter] = Field(default_factory=dict)
    alias: Optional[str] = None

    @field_validator("parameters", mode="before")
    @classmethod
    def _missing_parameters(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_item(self) -> dict[str, Any]:
        """Return the JSON item handed to the host."""
        item = self.model_dump(exclude_unset=True)
        item.setdefault("parameters", {})
        return item


class ToolCall(BaseModel):
    """A request to execute one tool on the MCP server."""
    tool_name: str = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Build the POST body expected by the message endpoint."""
        return {
            "toolCall": {
                "toolName": self.tool_name,
                "parameters": self.parameters,
            }
        }
