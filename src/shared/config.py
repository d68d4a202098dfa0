"""Configuration management for the MCP Connector.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached; each call into a client gets
an immutable ConnectionConfig built from it.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models import ConnectionConfig


class ConnectionSettings(BaseSettings):
    """MCP server connection, mirroring the host credential form."""
    sse_url: str = Field(default="", description="URL of the MCP SSE endpoint")
    sse_timeout: int = Field(
        default=60000,
        ge=0,
        description="SSE connection timeout in milliseconds (0 disables it)"
    )
    message_endpoint: str = Field(default="", description="URL for tool call POSTs")
    headers: Optional[Union[str, dict[str, Any]]] = Field(
        default=None,
        description="Additional headers as a JSON object or JSON-encoded string"
    )

    model_config = SettingsConfigDict(
        env_prefix="MCP_CONNECTION_",
        env_file=".env",
        extra="ignore"
    )

    def to_connection_config(self) -> ConnectionConfig:
        """Build the immutable connection record used by the clients."""
        return ConnectionConfig(
            sse_url=self.sse_url,
            sse_timeout_ms=self.sse_timeout,
            message_endpoint=self.message_endpoint,
            headers=self.headers,
        )


class ServerSettings(BaseSettings):
    """HTTP surface configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8002)

    model_config = SettingsConfigDict(
        env_prefix="MCP_CONNECTOR_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        return cls(**load_yaml_config(path))


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
