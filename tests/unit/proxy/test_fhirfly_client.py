"""Tests unitaires — fhirfly_mcp.proxy.client.

Objectifs:
    - Vérifier la requête sortante (URL, en-têtes, enveloppe JSON-RPC)
    - Vérifier le mapping des échecs transport vers les codes -32000..-32003
    - Vérifier l'asymétrie list_tools (lève) / call_tool (résultat isError)

Contraintes:
    - Aucun appel réseau externe (httpx.MockTransport / ASGITransport)
"""

from __future__ import annotations

import json

import httpx
import pytest

from fhirfly_mcp.core.exceptions import UpstreamRpcError


def _tool_error_payload(result: dict[str, object]) -> dict[str, object]:
    assert result["isError"] is True
    content = result["content"]
    assert isinstance(content, list) and len(content) == 1
    assert content[0]["type"] == "text"
    return json.loads(content[0]["text"])


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_posts_jsonrpc_envelope_with_credentials(mock_client_factory, server_config):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"ok": True}})

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.result == {"ok": True}
    assert len(seen) == 1

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.fhirfly.test/mcp"
    assert request.headers["x-api-key"] == server_config.api_key
    assert request.headers["content-type"] == "application/json"
    assert request.headers["user-agent"].startswith("fhirfly-mcp-server/")

    body = json.loads(request.content)
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "tools/list"
    assert body["params"] == {}
    assert isinstance(body["id"], int)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_request_ids_are_distinct(mock_client_factory):
    ids: list[object] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        ids.append(body["id"])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {}})

    client = mock_client_factory(handler)
    await client.request("ping")
    await client.request("ping")

    assert len(set(ids)) == 2


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "status, code, fragment",
    [
        (401, -32001, "Authentication failed"),
        (429, -32002, "Rate limit exceeded"),
        (500, -32000, "API error: 500 Internal Server Error"),
        (404, -32000, "API error: 404 Not Found"),
    ],
)
async def test_http_status_mapping(mock_client_factory, status, code, fragment):
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(status, json={"jsonrpc": "2.0", "id": 1, "result": {"ignored": True}})

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.result is None
    assert response.error.code == code
    assert fragment in response.error.message
    # Une seule tentative, pas de retry.
    assert calls["count"] == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_network_failure_maps_to_network_error(mock_client_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.error.code == -32003
    assert response.error.message == "Network error: Connection refused"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_timeout_without_message_still_describes_failure(mock_client_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("", request=request)

    client = mock_client_factory(handler)
    response = await client.request("tools/call", {"name": "x", "arguments": {}})

    assert response.error.code == -32003
    assert response.error.message == "Network error: ReadTimeout"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_httpx_exception_maps_to_network_error(mock_client_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise RuntimeError("unhandled errors in a TaskGroup (1 sub-exception)")

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.error.code == -32003
    assert response.error.message == "Network error: unhandled errors in a TaskGroup (1 sub-exception)"

    result = await client.call_tool("ndc_lookup", {"code": "1"})
    assert _tool_error_payload(result)["code"] == -32003


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_json_body_maps_to_network_error(mock_client_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.error.code == -32003
    assert response.error.message.startswith("Network error:")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_non_object_body_maps_to_network_error(mock_client_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.error.code == -32003


@pytest.mark.asyncio
@pytest.mark.unit
async def test_upstream_response_is_returned_unmodified(mock_client_factory):
    upstream = {"jsonrpc": "2.0", "id": "server-chosen", "result": {"tools": [], "nextCursor": "abc"}}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=upstream)

    client = mock_client_factory(handler)
    response = await client.request("tools/list", {})

    assert response.to_dict() == upstream


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_tools_returns_result(api_client):
    result = await api_client.list_tools()
    assert [tool["name"] for tool in result["tools"]] == ["ndc_lookup", "icd10_search"]
    assert result["tools"][0]["inputSchema"]["required"] == ["code"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_tools_raises_on_upstream_error(mock_client_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    client = mock_client_factory(handler)
    with pytest.raises(UpstreamRpcError) as err:
        await client.list_tools()

    assert err.value.rpc_code == -32001
    assert err.value.message.startswith("Authentication failed")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_tool_returns_result_verbatim(api_client, fake_api):
    result = await api_client.call_tool("ndc_lookup", {"code": "0363-0160"})

    assert result == {"content": [{"type": "text", "text": "NDC 0363-0160: Aspirin 81 mg"}]}
    sent = fake_api.state.requests[-1]
    assert sent["method"] == "tools/call"
    assert sent["params"] == {"name": "ndc_lookup", "arguments": {"code": "0363-0160"}}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_call_tool_absorbs_upstream_rpc_error(api_client):
    result = await api_client.call_tool("does_not_exist", {})

    payload = _tool_error_payload(result)
    assert payload == {"error": "Unknown tool: does_not_exist", "code": -32602}


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("status, code", [(401, -32001), (429, -32002), (502, -32000)])
async def test_call_tool_absorbs_transport_errors(mock_client_factory, status, code):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status)

    client = mock_client_factory(handler)
    result = await client.call_tool("ndc_lookup", {"code": "1"})

    assert _tool_error_payload(result)["code"] == code


@pytest.mark.asyncio
@pytest.mark.unit
async def test_wrong_api_key_is_rejected_by_upstream(fake_api):
    from fhirfly_mcp.config.settings import ServerConfig
    from fhirfly_mcp.proxy.client import FhirflyClient

    config = ServerConfig(api_key="ffly_wrong_key", api_url="https://api.fhirfly.test")
    transport = httpx.ASGITransport(app=fake_api)
    async with httpx.AsyncClient(transport=transport) as http_client:
        async with FhirflyClient(config, http_client=http_client) as client:
            response = await client.request("tools/list", {})

    assert response.error.code == -32001
    assert fake_api.state.headers[-1]["x-api-key"] == "ffly_wrong_key"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_owned_http_client_is_closed_on_exit(server_config):
    from fhirfly_mcp.proxy.client import FhirflyClient

    client = FhirflyClient(server_config)
    async with client:
        http_client = client._http_client
        assert http_client is not None
        assert not http_client.is_closed

    assert http_client.is_closed
    assert client._http_client is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_injected_http_client_is_left_open(server_config):
    from fhirfly_mcp.proxy.client import FhirflyClient

    async with httpx.AsyncClient() as http_client:
        async with FhirflyClient(server_config, http_client=http_client):
            pass
        assert not http_client.is_closed
