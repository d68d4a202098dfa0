"""Tests for the host-facing connector."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from shared.models import ConnectionConfig, ToolDefinition, ToolFilter

CREDENTIALS = {
    "sseUrl": "http://mcp.test/mcp-events",
    "sseTimeout": 60000,
    "messageEndpoint": "http://mcp.test/mcp/message",
    "headers": "{}",
}


def make_connector(tools=None, result=None):
    """Connector with mocked discovery and execution clients."""
    from connector.node import McpConnector

    discovery = MagicMock()
    discovery.discover = AsyncMock(return_value=tools or [])
    client = MagicMock()
    client.invoke = AsyncMock(return_value=result)
    return McpConnector(discovery=discovery, client=client)


class TestMcpConnector:
    """Tests for McpConnector."""

    @pytest.mark.asyncio
    async def test_run_discover(self):
        """Test that discover mode returns tool items and passes the filter."""
        tools = [ToolDefinition(name="search_tool_A", description="d")]
        connector = make_connector(tools=tools)

        items = await connector.run("discover", CREDENTIALS, tool_type=ToolFilter.SEARCH)

        assert items == [{"name": "search_tool_A", "description": "d", "parameters": {}}]
        config, tool_filter = connector.discovery.discover.call_args.args
        assert isinstance(config, ConnectionConfig)
        assert tool_filter == ToolFilter.SEARCH
        connector.client.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_run_execute(self):
        """Test that execute mode parses JSON parameters and returns the body."""
        connector = make_connector(result={"result": "ok"})

        result = await connector.run(
            "execute",
            CREDENTIALS,
            tool_name="doThing",
            tool_parameters='{"x": 1}'
        )

        assert result == {"result": "ok"}
        config, tool_name, parameters = connector.client.invoke.call_args.args
        assert config.message_endpoint == "http://mcp.test/mcp/message"
        assert tool_name == "doThing"
        assert parameters == {"x": 1}
        connector.discovery.discover.assert_not_called()

    @pytest.mark.asyncio
    async def test_discover_applies_aliases(self):
        """Test that the tool name mapping sets aliases."""
        tools = [
            ToolDefinition(name="calendar.check_availability"),
            ToolDefinition(name="calendar.book"),
        ]
        connector = make_connector(tools=tools)
        config = ConnectionConfig.model_validate(CREDENTIALS)

        items = await connector.discover(
            config,
            tool_name_mapping='{"calendar.check_availability": "Check Availability"}'
        )

        assert items[0]["alias"] == "Check Availability"
        assert "alias" not in items[1]

    @pytest.mark.asyncio
    async def test_execute_resolves_alias(self):
        """Test that an alias is mapped back to the server tool name."""
        connector = make_connector(result={})
        config = ConnectionConfig.model_validate(CREDENTIALS)

        await connector.execute(
            config,
            "Check Availability",
            {},
            tool_name_mapping={"calendar.check_availability": "Check Availability"}
        )

        assert connector.client.invoke.call_args.args[1] == "calendar.check_availability"

    @pytest.mark.asyncio
    async def test_execute_invalid_parameters_json(self):
        """Test that unparseable parameters fail before execution."""
        from mcp_client.client import InvalidArgumentError

        connector = make_connector()
        config = ConnectionConfig.model_validate(CREDENTIALS)

        with pytest.raises(InvalidArgumentError, match="Tool parameters"):
            await connector.execute(config, "doThing", "{x: 1")
        with pytest.raises(InvalidArgumentError, match="Tool parameters"):
            await connector.execute(config, "doThing", "[1]")

        connector.client.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_execute_missing_parameters_reaches_validation(self):
        """Test that absent parameters are rejected by the client."""
        from mcp_client.client import InvalidArgumentError, MCPClient
        from connector.node import McpConnector

        client = MCPClient()
        connector = McpConnector(discovery=MagicMock(), client=client)
        config = ConnectionConfig.model_validate(CREDENTIALS)

        with pytest.raises(InvalidArgumentError, match="parameters are required"):
            await connector.execute(config, "doThing", None)

    @pytest.mark.asyncio
    async def test_run_unknown_mode(self):
        """Test that an unknown mode is rejected."""
        from mcp_client.client import InvalidArgumentError

        connector = make_connector()

        with pytest.raises(InvalidArgumentError, match="Unknown connector mode"):
            await connector.run("stream", CREDENTIALS)

    @pytest.mark.asyncio
    async def test_run_invalid_credentials(self):
        """Test that an incomplete credential record is rejected."""
        from mcp_client.client import InvalidArgumentError

        connector = make_connector()

        with pytest.raises(InvalidArgumentError, match="Invalid connection configuration"):
            await connector.run("discover", {"sseUrl": "http://mcp.test/mcp-events"})


class TestConnectorAPI:
    """Tests for the HTTP surface."""

    @pytest.fixture
    def api(self):
        from fastapi.testclient import TestClient

        from connector import main

        connector = make_connector()
        main.app.dependency_overrides[main.get_connector] = lambda: connector
        main.app.dependency_overrides[main.get_connection_config] = (
            lambda: ConnectionConfig.model_validate(CREDENTIALS)
        )
        yield TestClient(main.app), connector
        main.app.dependency_overrides.clear()

    def test_health(self, api):
        """Test the health endpoint reports the configured server."""
        client, _ = api

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["sse_url"] == "http://mcp.test/mcp-events"

    def test_discover(self, api):
        """Test discovering tools over HTTP."""
        client, connector = api
        connector.discovery.discover.return_value = [ToolDefinition(name="report_tool_C")]

        response = client.post("/discover", json={"tool_type": "report_tool"})

        assert response.status_code == 200
        assert response.json() == {
            "tools": [{"name": "report_tool_C", "parameters": {}}],
            "count": 1,
        }
        assert connector.discovery.discover.call_args.args[1] == "report_tool"

    def test_execute(self, api):
        """Test executing a tool over HTTP."""
        client, connector = api
        connector.client.invoke.return_value = {"result": "ok"}

        response = client.post("/execute", json={"tool_name": "doThing", "parameters": {"x": 1}})

        assert response.status_code == 200
        assert response.json() == {"tool_name": "doThing", "result": {"result": "ok"}}

    @pytest.mark.parametrize("error_name, status_code", [
        ("InvalidArgumentError", 400),
        ("MCPTimeoutError", 504),
        ("MCPConnectionError", 502),
        ("MalformedPayloadError", 502),
        ("ToolCallFailedError", 502),
    ])
    def test_errors_map_to_status(self, api, error_name, status_code):
        """Test that client errors become HTTP errors."""
        import mcp_client.client as errors

        client, connector = api
        connector.client.invoke.side_effect = getattr(errors, error_name)("boom")

        response = client.post("/execute", json={"tool_name": "doThing"})

        assert response.status_code == status_code
        assert response.json()["detail"] == "boom"
