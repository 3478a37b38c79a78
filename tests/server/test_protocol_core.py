"""Tests for the MCP method surface: LowLevelServer plus the installed capabilities."""

import json
from typing import Any

import httpx
import pytest

from haute_garonne_mcp.catalog.client import CatalogClient
from haute_garonne_mcp.catalog.service import CatalogService
from haute_garonne_mcp.server.app import SERVER_NAME, build_server
from haute_garonne_mcp.server.lowlevel import LowLevelServer
from haute_garonne_mcp.settings import Settings
from haute_garonne_mcp.shared.exceptions import McpError
from haute_garonne_mcp.types.json_rpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResultResponse,
)

pytestmark = pytest.mark.anyio


@pytest.fixture
def server(http_client: httpx.AsyncClient, settings: Settings) -> LowLevelServer:
    catalog = CatalogService(CatalogClient(http_client))
    server, _ = build_server(catalog, settings)
    return server


async def call_tool(server: LowLevelServer, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
    result = await server.dispatch("tools/call", {"name": name, "arguments": arguments or {}})
    assert result is not None
    return result


def text_of(result: dict[str, Any]) -> str:
    assert len(result["content"]) == 1
    assert result["content"][0]["type"] == "text"
    return result["content"][0]["text"]


class TestProtocol:
    async def test_initialize_echoes_supported_protocol_version(self, server: LowLevelServer):
        result = await server.dispatch(
            "initialize",
            {"protocolVersion": "2025-03-26", "capabilities": {}, "clientInfo": {"name": "test", "version": "1"}},
        )
        assert result == {
            "protocolVersion": "2025-03-26",
            "capabilities": {"prompts": {}, "resources": {}, "tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": "1.0.0"},
        }

    async def test_initialize_falls_back_to_default_protocol_version(self, server: LowLevelServer):
        result = await server.dispatch("initialize", {"protocolVersion": "1999-01-01"})
        assert result is not None
        assert result["protocolVersion"] == "2024-11-05"

        result = await server.dispatch("initialize")
        assert result is not None
        assert result["protocolVersion"] == "2024-11-05"

    async def test_ping_returns_empty_result(self, server: LowLevelServer):
        assert await server.dispatch("ping") == {}

    async def test_notifications_return_nothing(self, server: LowLevelServer):
        assert await server.dispatch("notifications/initialized") is None
        assert await server.dispatch("notifications/cancelled", {"requestId": 3}) is None

    async def test_unknown_method_is_a_protocol_error(self, server: LowLevelServer):
        with pytest.raises(McpError) as exc_info:
            await server.dispatch("sampling/createMessage")
        assert exc_info.value.error.code == METHOD_NOT_FOUND
        assert exc_info.value.error.message == "Method not found"

    async def test_handle_request_wraps_outcomes(self, server: LowLevelServer):
        ok = await server.handle_request(JSONRPCRequest(jsonrpc="2.0", id="a", method="ping"))
        assert isinstance(ok, JSONRPCResultResponse)
        assert ok.id == "a"

        missing = await server.handle_request(JSONRPCRequest(jsonrpc="2.0", id=0, method="nope"))
        assert isinstance(missing, JSONRPCErrorResponse)
        assert missing.id == 0
        assert missing.error.code == METHOD_NOT_FOUND

    async def test_unexpected_handler_failure_is_an_internal_error(self, server: LowLevelServer):
        @server.request_handler("explode")
        async def explode(params: dict[str, Any]) -> dict[str, Any]:
            raise RuntimeError("kaboom")

        response = await server.handle_request(JSONRPCRequest(jsonrpc="2.0", id=5, method="explode"))
        assert isinstance(response, JSONRPCErrorResponse)
        assert response.error.code == INTERNAL_ERROR
        assert response.error.data == "kaboom"

    async def test_failing_notification_is_swallowed(self, server: LowLevelServer):
        @server.request_handler("explode")
        async def explode(params: dict[str, Any]) -> dict[str, Any]:
            raise RuntimeError("kaboom")

        assert await server.handle_message(JSONRPCNotification(jsonrpc="2.0", method="explode")) is None


class TestTools:
    async def test_list_tools(self, server: LowLevelServer):
        result = await server.dispatch("tools/list")
        assert result is not None
        tools = {tool["name"]: tool for tool in result["tools"]}

        assert list(tools) == ["list_datasets", "query_dataset", "search_datasets", "get_dataset_info"]
        query_schema = tools["query_dataset"]["inputSchema"]
        assert query_schema["type"] == "object"
        assert query_schema["required"] == ["dataset_id"]
        assert set(query_schema["properties"]) == {"dataset_id", "limit", "offset", "where", "select"}
        assert "required" not in tools["list_datasets"]["inputSchema"]

    async def test_list_datasets_reports_total_and_page(self, server: LowLevelServer):
        result = await call_tool(server, "list_datasets", {"limit": 2})

        assert "isError" not in result
        text = text_of(result)
        header, body = text.split("\n\n", 1)
        assert header == "Found 4 total datasets. Showing 2 datasets (offset: 0):"
        assert [d["dataset_id"] for d in json.loads(body)] == ["equipements-culturels", "lignes-de-bus"]

    async def test_list_datasets_with_offset(self, server: LowLevelServer):
        text = text_of(await call_tool(server, "list_datasets", {"limit": 10, "offset": 3}))
        assert text.startswith("Found 4 total datasets. Showing 1 datasets (offset: 3):")

    async def test_zero_limit_means_the_default(self, server: LowLevelServer, upstream):
        text = text_of(await call_tool(server, "list_datasets", {"limit": 0}))
        assert text.startswith("Found 4 total datasets. Showing 4 datasets (offset: 0):")

        await call_tool(server, "query_dataset", {"dataset_id": "colleges", "limit": None})
        assert upstream.requests[-1].url.params["limit"] == "100"

    async def test_negative_limit_is_an_error_result(self, server: LowLevelServer):
        result = await call_tool(server, "search_datasets", {"query": "bus", "limit": -1})
        assert result["isError"] is True
        assert "limit" in text_of(result)

    async def test_query_dataset_missing_dataset_id_is_an_error_result(self, server: LowLevelServer):
        result = await call_tool(server, "query_dataset", {"limit": 5})

        assert result["isError"] is True
        text = text_of(result)
        assert text.startswith("Invalid arguments for tool 'query_dataset'")
        assert "dataset_id: Field required" in text

    async def test_query_dataset_returns_records(self, server: LowLevelServer, upstream):
        text = text_of(await call_tool(server, "query_dataset", {"dataset_id": "colleges", "where": "x > 1"}))

        header, body = text.split("\n\n", 1)
        assert header == 'Found 42 records in dataset "colleges". Showing 3 records:'
        assert len(json.loads(body)) == 3
        assert upstream.requests[-1].url.params["where"] == "x > 1"

    async def test_search_datasets(self, server: LowLevelServer):
        text = text_of(await call_tool(server, "search_datasets", {"query": "Bus"}))
        header, body = text.split("\n\n", 1)
        assert header == 'Found 1 datasets matching "Bus":'
        assert json.loads(body)[0]["dataset_id"] == "lignes-de-bus"

    async def test_get_dataset_info(self, server: LowLevelServer):
        text = text_of(await call_tool(server, "get_dataset_info", {"dataset_id": "colleges"}))
        assert text.startswith('Dataset information for "colleges":\n\n')
        assert json.loads(text.split("\n\n", 1)[1])["dataset_id"] == "colleges"

    async def test_upstream_failure_is_an_error_result(self, server: LowLevelServer):
        result = await call_tool(server, "get_dataset_info", {"dataset_id": "does-not-exist"})
        assert result["isError"] is True
        assert "HTTP 404" in text_of(result)

    async def test_catalog_outage_is_an_error_result(self, server: LowLevelServer, upstream):
        upstream.fail = True
        result = await call_tool(server, "list_datasets")
        assert result["isError"] is True
        assert "Failed to fetch dataset catalog" in text_of(result)

    async def test_unknown_tool_is_an_internal_error(self, server: LowLevelServer):
        with pytest.raises(McpError) as exc_info:
            await call_tool(server, "drop_tables")
        assert exc_info.value.error.code == INTERNAL_ERROR
        assert exc_info.value.error.message == "Internal error"
        assert exc_info.value.error.data == "Unknown tool: drop_tables"

    @pytest.mark.parametrize("params", [{"arguments": {}}, {"name": None}, {"name": 42}])
    async def test_missing_tool_name_is_an_unknown_tool(self, server: LowLevelServer, params: dict[str, Any]):
        with pytest.raises(McpError) as exc_info:
            await server.dispatch("tools/call", params)
        assert exc_info.value.error.code == INTERNAL_ERROR
        assert exc_info.value.error.data.startswith("Unknown tool: ")


class TestResources:
    async def test_list_resources(self, server: LowLevelServer):
        result = await server.dispatch("resources/list")
        assert result is not None
        resources = result["resources"]

        assert resources[0] == {
            "uri": "haute-garonne://catalog",
            "name": "Dataset Catalog",
            "description": "Complete catalog of all available datasets",
            "mimeType": "application/json",
        }
        assert [r["uri"] for r in resources[1:]] == [
            "haute-garonne://dataset/equipements-culturels",
            "haute-garonne://dataset/lignes-de-bus",
            "haute-garonne://dataset/colleges",
            "haute-garonne://dataset/routes-departementales",
        ]
        assert resources[4]["name"] == "Routes départementales"
        assert resources[4]["description"] == "No description available"

    async def test_list_resources_is_capped(self, http_client: httpx.AsyncClient):
        settings = Settings(_env_file=None, resource_list_limit=2)  # type: ignore[call-arg]
        server, _ = build_server(CatalogService(CatalogClient(http_client)), settings)
        result = await server.dispatch("resources/list")
        assert result is not None
        assert len(result["resources"]) == 3

    async def test_list_resources_on_upstream_failure_is_empty(self, server: LowLevelServer, upstream):
        upstream.fail = True
        assert await server.dispatch("resources/list") == {"resources": []}

    async def test_read_catalog(self, server: LowLevelServer):
        result = await server.dispatch("resources/read", {"uri": "haute-garonne://catalog"})
        assert result is not None
        (contents,) = result["contents"]
        assert contents["mimeType"] == "application/json"
        assert len(json.loads(contents["text"])["datasets"]) == 4

    async def test_read_dataset(self, server: LowLevelServer):
        result = await server.dispatch("resources/read", {"uri": "haute-garonne://dataset/colleges"})
        assert result is not None
        assert "isError" not in result
        assert json.loads(result["contents"][0]["text"])["dataset_id"] == "colleges"

    async def test_read_dataset_with_failing_upstream(self, server: LowLevelServer, upstream):
        upstream.fail = True
        uri = "haute-garonne://dataset/unknown"
        result = await server.dispatch("resources/read", {"uri": uri})
        assert result is not None
        assert result["isError"] is True
        (contents,) = result["contents"]
        assert contents["uri"] == uri
        assert contents["mimeType"] == "text/plain"
        assert contents["text"].startswith("Error reading resource: ")

    async def test_read_unknown_uri(self, server: LowLevelServer):
        result = await server.dispatch("resources/read", {"uri": "file:///etc/passwd"})
        assert result is not None
        assert result["isError"] is True
        assert result["contents"][0]["text"] == "Error reading resource: Unknown resource URI: file:///etc/passwd"

    async def test_read_without_uri_is_a_protocol_error(self, server: LowLevelServer):
        with pytest.raises(McpError) as exc_info:
            await server.dispatch("resources/read", {})
        assert exc_info.value.error.code == INVALID_PARAMS


class TestPrompts:
    async def test_list_prompts(self, server: LowLevelServer):
        result = await server.dispatch("prompts/list")
        assert result is not None
        assert [p["name"] for p in result["prompts"]] == ["find_cultural_sites", "search_transportation_data"]
        assert result["prompts"][0]["arguments"] == [
            {"name": "location", "description": "Optional location filter", "required": False}
        ]

    async def test_find_cultural_sites_suggests_a_query(self, server: LowLevelServer):
        result = await server.dispatch(
            "prompts/get", {"name": "find_cultural_sites", "arguments": {"location": "Muret"}}
        )
        assert result is not None
        user, assistant, suggestion = result["messages"]

        assert user == {
            "role": "user",
            "content": {"type": "text", "text": "Find cultural sites in Muret in Haute Garonne."},
        }
        assert assistant["role"] == "assistant"
        assert assistant["content"]["text"] == (
            'I found 1 cultural-related datasets. Let me query the most relevant one: "Equipements culturels".'
        )
        assert suggestion == {
            "role": "user",
            "content": {
                "type": "tool-call",
                "toolCallId": "call-1",
                "name": "query_dataset",
                "arguments": {"dataset_id": "equipements-culturels", "limit": 50},
            },
        }

    async def test_search_transportation_data_lists_titles(self, server: LowLevelServer):
        result = await server.dispatch(
            "prompts/get", {"name": "search_transportation_data", "arguments": {"transport_type": "bus"}}
        )
        assert result is not None
        user, assistant = result["messages"]
        assert user["content"]["text"] == "Search for transportation data related to bus in Haute Garonne."
        assert assistant["content"]["text"] == (
            "I found 1 transportation-related datasets. Here are the most relevant ones:\n\n"
            "1. Lignes de bus Arc-en-ciel"
        )

    async def test_prompt_without_matches_only_has_the_request(self, http_client: httpx.AsyncClient, upstream):
        upstream.datasets = upstream.datasets[2:]
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        server, _ = build_server(CatalogService(CatalogClient(http_client)), settings)
        result = await server.dispatch("prompts/get", {"name": "find_cultural_sites"})
        assert result is not None
        assert [m["content"]["text"] for m in result["messages"]] == ["Find cultural sites in Haute Garonne."]

    @pytest.mark.parametrize("location", [None, ""])
    async def test_blank_prompt_argument_is_left_out(self, server: LowLevelServer, location: str | None):
        result = await server.dispatch(
            "prompts/get", {"name": "find_cultural_sites", "arguments": {"location": location}}
        )
        assert result is not None
        assert result["messages"][0]["content"]["text"] == "Find cultural sites in Haute Garonne."

    async def test_unknown_prompt_returns_error_message(self, server: LowLevelServer):
        result = await server.dispatch("prompts/get", {"name": "nope"})
        assert result is not None
        assert result["messages"] == [
            {"role": "assistant", "content": {"type": "text", "text": "Error: Unknown prompt: nope"}}
        ]

    async def test_prompt_upstream_failure_returns_error_message(self, server: LowLevelServer, upstream):
        upstream.fail = True
        result = await server.dispatch("prompts/get", {"name": "search_transportation_data"})
        assert result is not None
        (message,) = result["messages"]
        assert message["role"] == "assistant"
        assert message["content"]["text"].startswith("Error: Failed to fetch dataset catalog")
