import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from tallymcp.core.services import organization_service, user_service
from tallymcp.domain.errors import AuthenticationError, ResourceNotFoundError, TallyMcpError
from tallymcp.infrastructure.config.settings import set_config_for_testing
from tallymcp.infrastructure.mcp.server import FASTMCP_TRANSPORTS, TallyMcpServer
from tallymcp.infrastructure.resilience.query_client import ClientOptions, TallyQueryClient
from tests.fakes import FakeTransport, StaticCredentials, graphql_response

SERVICE_TOOLS = {
    "list_organizations",
    "get_organization",
    "get_organizations_with_active_proposals",
    "list_proposals",
    "get_proposal",
    "get_active_proposals",
    "get_user_profile",
    "get_delegate_statement",
    "get_dao_participants",
    "get_delegates",
}


def make_server(transport: FakeTransport) -> TallyMcpServer:
    client = TallyQueryClient(StaticCredentials(), transport, ClientOptions(retry_delay=0))
    return TallyMcpServer(transport_mode="stdio", client=client)


def tool_fn(server: TallyMcpServer, name: str):
    return server.mcp._tool_manager.get_tool(name).fn


@pytest.mark.asyncio
async def test_registers_every_tool():
    server = make_server(FakeTransport())

    names = {tool.name for tool in await server.mcp.list_tools()}

    assert names == SERVICE_TOOLS | {"get_server_info", "get_cache_stats", "clear_cache"}


@pytest.mark.asyncio
async def test_registers_resources_and_templates():
    server = make_server(FakeTransport())

    resources = {str(r.uri) for r in await server.mcp.list_resources()}
    templates = {t.uriTemplate for t in await server.mcp.list_resource_templates()}

    assert resources == {"tally://server/info", "tally://popular-daos", "tally://trending/proposals"}
    assert templates == {
        "tally://org/{organization_id}",
        "tally://org/{organization_id}/proposal/{proposal_id}",
        "tally://user/{address}",
    }


def test_server_info():
    set_config_for_testing({"tally_api_key": "configured", "tally_api_url": "https://example.test/query"})
    server = make_server(FakeTransport())

    info = server.get_server_info()

    assert info["name"] == "mcp-tally-api"
    assert info["version"] == "1.0.0"
    assert info["transport"] == "stdio"
    assert info["tally_api_url"] == "https://example.test/query"
    assert info["api_key_configured"] is True
    assert "configured" not in json.dumps({k: v for k, v in info.items() if k != "api_key_configured"})


def test_client_required_before_use():
    server = TallyMcpServer(transport_mode="http")

    assert server.auth_manager.get_mode() == "http"
    with pytest.raises(TallyMcpError, match="Server not properly initialized"):
        server.client


def test_initialize_requires_api_key():
    server = TallyMcpServer(transport_mode="stdio")

    with pytest.raises(AuthenticationError):
        server.initialize()


def test_initialize_builds_client_from_config():
    set_config_for_testing({"tally_api_key": "configured", "max_retries": 2, "enable_cache": False})
    server = TallyMcpServer(transport_mode="stdio")

    server.initialize()

    assert server.client.options.retry_attempts == 2
    assert not server.client.is_caching_enabled()


@pytest.mark.asyncio
async def test_tool_returns_json_text():
    transport = FakeTransport(graphql_response({
        "organizations": {"nodes": [{"id": "1", "name": "Uniswap", "slug": "uniswap"}], "pageInfo": {"count": 1}}
    }))
    server = make_server(transport)

    text = await tool_fn(server, "list_organizations")(page_size=5)

    body = json.loads(text)
    assert body["organizations"][0]["slug"] == "uniswap"
    assert transport.calls[0]["payload"]["variables"]["pageSize"] == 5


@pytest.mark.asyncio
async def test_tool_error_carries_structured_report():
    transport = FakeTransport(graphql_response(None, errors=[{"message": "Organization not found"}]))
    server = make_server(transport)

    with pytest.raises(ToolError) as exc_info:
        await tool_fn(server, "get_organization")(organization_slug="missing")

    report = json.loads(str(exc_info.value))
    assert report["code"] == -32005
    assert report["message"] == "GraphQL errors: Organization not found"


@pytest.mark.asyncio
async def test_tool_validation_error_reported_without_network():
    transport = FakeTransport()
    server = make_server(transport)

    with pytest.raises(ToolError) as exc_info:
        await tool_fn(server, "get_user_profile")(address="not-an-address")

    assert json.loads(str(exc_info.value))["code"] == -32602
    assert transport.call_count == 0


@pytest.mark.asyncio
async def test_unexpected_error_becomes_internal_error():
    server = make_server(FakeTransport())
    failing = AsyncMock(side_effect=RuntimeError("boom"))
    failing.__name__ = "failing"

    with pytest.raises(ToolError) as exc_info:
        await server._run_tool(failing)

    assert json.loads(str(exc_info.value)) == {
        "code": -32603, "message": "Internal error", "data": {"originalMessage": "boom"},
    }


@pytest.mark.asyncio
async def test_cache_tools():
    transport = FakeTransport(graphql_response({"delegate": {"id": "g1"}}))
    server = make_server(transport)
    address = "0x" + "ab" * 20

    await tool_fn(server, "get_delegate_statement")(address=address, organization_id="1")
    await tool_fn(server, "get_delegate_statement")(address=address, organization_id="1")

    stats = json.loads(await tool_fn(server, "get_cache_stats")())
    assert stats == {"size": 1, "hits": 1, "misses": 1}

    cleared = json.loads(await tool_fn(server, "clear_cache")())
    assert cleared == {"cleared": True, "stats": {"size": 0, "hits": 1, "misses": 1}}
    assert transport.call_count == 1


@pytest.mark.asyncio
async def test_read_resource_missing_raises_not_found():
    server = make_server(FakeTransport(graphql_response({"accountV2": None})))
    address = "0x" + "cd" * 20

    with pytest.raises(ResourceNotFoundError) as exc_info:
        await server._read_resource(f"tally://user/{address}", user_service.get_user_profile, address=address)

    assert exc_info.value.uri == f"tally://user/{address}"


@pytest.mark.asyncio
async def test_read_resource_returns_json():
    server = make_server(FakeTransport(graphql_response({"organization": {"id": "1", "name": "Uniswap"}})))

    text = await server._read_resource(
        "tally://org/1", organization_service.get_organization, organization_id="1"
    )

    assert json.loads(text)["name"] == "Uniswap"


def test_run_maps_transport_and_port(mocker):
    set_config_for_testing({"tally_api_key": "configured"})
    server = TallyMcpServer(transport_mode="http")
    run = mocker.patch.object(server.mcp, "run")

    server.run(port=4321)

    run.assert_called_once_with(transport="streamable-http")
    assert server.mcp.settings.port == 4321


def test_run_stdio(mocker):
    server = make_server(FakeTransport())
    run = mocker.patch.object(server.mcp, "run")

    server.run()

    run.assert_called_once_with(transport=FASTMCP_TRANSPORTS["stdio"])


def test_run_rejects_unknown_transport():
    server = make_server(FakeTransport())

    with pytest.raises(ValueError):
        server.run(transport="grpc")


def test_tools_can_use_mock_client():
    client = MagicMock(spec=TallyQueryClient)
    server = TallyMcpServer(transport_mode="stdio", client=client)

    assert server.client is client


def test_sse_server_serves_configured_key():
    set_config_for_testing({"tally_api_key": "configured"})
    server = TallyMcpServer(transport_mode="sse")

    server.initialize()

    assert server.auth_manager.get_mode() == "http"
    assert server.auth_manager.get_api_key() == "configured"


@pytest.mark.asyncio
async def test_trending_proposals_resource():
    transport = FakeTransport(
        graphql_response({"organizations": {"nodes": [
            {"id": "1", "name": "Uniswap", "slug": "uniswap", "hasActiveProposals": True},
        ]}}),
        graphql_response({"proposals": {"nodes": [{
            "id": "p1", "status": "active", "metadata": {"title": "Fee switch"},
            "organization": {"id": "1", "name": "Uniswap", "slug": "uniswap"},
            "end": {"timestamp": "2026-11-01T00:00:00Z"}, "voteStats": [],
        }]}}),
    )
    server = make_server(transport)

    contents = list(await server.mcp.read_resource("tally://trending/proposals"))

    body = json.loads(contents[0].content)
    assert [p["id"] for p in body["proposals"]] == ["p1"]
    assert body["pagination"]["pageSize"] == 20
    assert transport.call_count == 2


# --- Prompts ---

@pytest.mark.asyncio
async def test_registers_governance_prompts():
    server = make_server(FakeTransport())

    prompts = {p.name: p for p in await server.mcp.list_prompts()}

    assert set(prompts) == {
        "analyze-dao-governance",
        "compare-dao-governance",
        "analyze-delegate-profile",
        "discover-governance-trends",
        "find-dao-to-join",
        "analyze-proposal",
    }
    assert prompts["analyze-proposal"].description == "Governance analysis prompt: analyze proposal"
    arguments = {a.name: a.required for a in prompts["analyze-dao-governance"].arguments}
    assert arguments == {"organizationId": True, "includeComparison": False}


@pytest.mark.asyncio
async def test_prompt_renders_user_message():
    server = make_server(FakeTransport())

    result = await server.mcp.get_prompt(
        "analyze-dao-governance", {"organizationId": "2206072050315953936", "includeComparison": "true"}
    )

    message = result.messages[0]
    assert message.role == "user"
    assert message.content.text.startswith("Analyze the governance health of organization 2206072050315953936.")
    assert "5. **Compare with Peers**" in message.content.text


@pytest.mark.asyncio
async def test_prompt_requires_arguments():
    server = make_server(FakeTransport())

    with pytest.raises(ValueError):
        await server.mcp.get_prompt("analyze-proposal", {"organizationId": "1"})
