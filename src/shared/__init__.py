"""Shared utilities and models for the MCP Connector."""

from shared.models import (
    ConnectionConfig,
    ConnectorMode,
    ToolCall,
    ToolDefinition,
    ToolFilter,
    ToolParameter,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "ConnectionConfig",
    "ConnectorMode",
    "ToolCall",
    "ToolDefinition",
    "ToolFilter",
    "ToolParameter",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
