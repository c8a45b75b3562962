import json

import httpx
import pytest

from tallymcp.domain.errors import NetworkError
from tallymcp.infrastructure.http.httpx_transport import USER_AGENT, HttpxTransport


def make_transport(handler) -> HttpxTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), headers={"User-Agent": USER_AGENT})
    return HttpxTransport(client)


@pytest.mark.asyncio
async def test_send_posts_json_and_returns_raw_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("Api-Key")
        seen["user_agent"] = request.headers.get("User-Agent")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"ok": True}})

    transport = make_transport(handler)
    response = await transport.send(
        "https://example.test/query",
        {"Content-Type": "application/json", "Api-Key": "k"},
        {"query": "{ ok }", "variables": None},
        5.0,
    )

    assert seen == {
        "method": "POST",
        "url": "https://example.test/query",
        "api_key": "k",
        "user_agent": USER_AGENT,
        "body": {"query": "{ ok }", "variables": None},
    }
    assert response.ok
    assert json.loads(response.content) == {"data": {"ok": True}}
    await transport.aclose()


@pytest.mark.asyncio
async def test_error_status_is_returned_not_raised():
    transport = make_transport(lambda request: httpx.Response(503))

    response = await transport.send("https://example.test/query", {}, {}, 5.0)

    assert response.status_code == 503
    assert response.reason == "Service Unavailable"
    assert not response.ok


@pytest.mark.asyncio
async def test_timeout_becomes_network_error():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(NetworkError, match="Request timed out"):
        await make_transport(handler).send("https://example.test/query", {}, {}, 0.1)


@pytest.mark.asyncio
async def test_connection_failure_becomes_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError, match="Network error: connection refused"):
        await make_transport(handler).send("https://example.test/query", {}, {}, 5.0)


@pytest.mark.asyncio
async def test_aclose_resets_client():
    transport = make_transport(lambda request: httpx.Response(200))

    await transport.aclose()
    assert transport._client is None
    await transport.aclose()
