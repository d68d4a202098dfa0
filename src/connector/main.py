"""MCP Connector - FastAPI Application.

Exposes the connector's two modes over HTTP:
- Tool discovery from the MCP Server's SSE stream
- Tool execution against the MCP Server's message endpoint
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from pydantic import BaseModel, Field, ValidationError

from shared.config import get_settings
from shared.logging import get_logger, setup_logging
from shared.models import ConnectionConfig, ToolFilter
from mcp_client.client import InvalidArgumentError, MCPClientError, MCPTimeoutError
from connector.node import McpConnector

logger = get_logger(__name__)


# Request/Response Models
class DiscoverRequest(BaseModel):
    """Tool discovery request."""
    tool_type: str = Field(default=ToolFilter.ALL.value, description="Tool type filter")
    tool_name_mapping: Optional[dict[str, str]] = Field(
        default=None,
        description="Optional mapping of tool names to aliases"
    )


class DiscoverResponse(BaseModel):
    """Discovered tools."""
    tools: list[dict[str, Any]]
    count: int


class ExecuteRequest(BaseModel):
    """Tool execution request."""
    tool_name: str = Field(..., description="Tool name or alias")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Tool parameters")
    tool_name_mapping: Optional[dict[str, str]] = Field(
        default=None,
        description="Optional mapping of tool names to aliases"
    )


class ExecuteResponse(BaseModel):
    """Tool execution result."""
    tool_name: str
    result: Any = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    sse_url: str
    message_endpoint: str


# Global instances
_connector: Optional[McpConnector] = None
_config: Optional[ConnectionConfig] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    global _connector, _config

    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    logger.info("Starting MCP Connector")

    try:
        _config = settings.connection.to_connection_config()
    except ValidationError as e:
        logger.error("Invalid connection settings", error=str(e))
        raise

    _connector = McpConnector()

    logger.info(
        "MCP Connector started",
        sse_url=_config.sse_url,
        message_endpoint=_config.message_endpoint
    )

    yield

    logger.info("Shutting down MCP Connector")
    _connector = None
    _config = None


# Create FastAPI app
app = FastAPI(
    title="MCP Connector",
    description="Discovers and executes tools on an MCP Server",
    version="0.1.0",
    lifespan=lifespan
)


def get_connector() -> McpConnector:
    """Dependency returning the running connector."""
    if _connector is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Connector not initialized"
        )
    return _connector


def get_connection_config() -> ConnectionConfig:
    """Dependency returning the configured connection record."""
    if _config is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Connector not initialized"
        )
    return _config


def to_http_error(error: MCPClientError) -> HTTPException:
    """Translate a client error into an HTTP error."""
    if isinstance(error, InvalidArgumentError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, MCPTimeoutError):
        code = status.HTTP_504_GATEWAY_TIMEOUT
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail=str(error))


@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(config: ConnectionConfig = Depends(get_connection_config)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        sse_url=config.sse_url,
        message_endpoint=config.message_endpoint
    )


@app.post("/discover", response_model=DiscoverResponse, tags=["Tools"])
async def discover_tools(
    request: DiscoverRequest,
    connector: McpConnector = Depends(get_connector),
    config: ConnectionConfig = Depends(get_connection_config)
):
    """Discover tools from the MCP Server's SSE stream."""
    try:
        tools = await connector.discover(
            config,
            tool_type=request.tool_type,
            tool_name_mapping=request.tool_name_mapping
        )
    except MCPClientError as e:
        logger.error("Tool discovery failed", error=str(e))
        raise to_http_error(e)

    return DiscoverResponse(tools=tools, count=len(tools))


@app.post("/execute", response_model=ExecuteResponse, tags=["Tools"])
async def execute_tool(
    request: ExecuteRequest,
    connector: McpConnector = Depends(get_connector),
    config: ConnectionConfig = Depends(get_connection_config)
):
    """Execute a tool on the MCP Server."""
    try:
        result = await connector.execute(
            config,
            request.tool_name,
            request.parameters,
            tool_name_mapping=request.tool_name_mapping
        )
    except MCPClientError as e:
        logger.error("Tool execution failed", tool=request.tool_name, error=str(e))
        raise to_http_error(e)

    return ExecuteResponse(tool_name=request.tool_name, result=result)


def main():
    """Run the MCP Connector server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "connector.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
