"""
Configuration des tests pytest.
"""
import os
import socket
import sys
import threading
import time

import httpx
import pytest
import pytest_asyncio
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from fhirfly_mcp.config.settings import ServerConfig  # noqa: E402
from fhirfly_mcp.proxy.client import FhirflyClient  # noqa: E402


TEST_API_KEY = "ffly_test_key_123456"
TEST_API_URL = "https://api.fhirfly.test"

FAKE_TOOLS = [
    {
        "name": "ndc_lookup",
        "description": "Recherche un médicament par code NDC",
        "inputSchema": {
            "type": "object",
            "properties": {"code": {"type": "string"}},
            "required": ["code"],
        },
    },
    {
        "name": "icd10_search",
        "description": "Recherche de codes ICD-10",
        "inputSchema": {"type": "object", "properties": {"query": {"type": "string"}}},
    },
]


def pytest_configure(config):
    """Enregistre les markers du projet."""
    config.addinivalue_line("markers", "unit: test unitaire (sans réseau)")
    config.addinivalue_line("markers", "e2e: lance le serveur dans un sous-process")


def create_fake_api() -> FastAPI:
    """API FHIRfly factice: endpoint JSON-RPC `/mcp` authentifié par `x-api-key`."""
    app = FastAPI()
    app.state.requests = []
    app.state.headers = []

    @app.post("/mcp")
    async def mcp(request: Request):
        app.state.headers.append(dict(request.headers))
        if request.headers.get("x-api-key") != TEST_API_KEY:
            return JSONResponse(status_code=401, content={"error": "unauthorized"})

        body = await request.json()
        app.state.requests.append(body)
        req_id = body.get("id")
        method = body.get("method")

        if method == "tools/list":
            return {"jsonrpc": "2.0", "id": req_id, "result": {"tools": FAKE_TOOLS}}

        if method == "tools/call":
            params = body.get("params") or {}
            if params.get("name") == "ndc_lookup":
                code = (params.get("arguments") or {}).get("code")
                return {
                    "jsonrpc": "2.0",
                    "id": req_id,
                    "result": {
                        "content": [{"type": "text", "text": f"NDC {code}: Aspirin 81 mg"}],
                    },
                }
            return {
                "jsonrpc": "2.0",
                "id": req_id,
                "error": {"code": -32602, "message": f"Unknown tool: {params.get('name')}"},
            }

        return {"jsonrpc": "2.0", "id": req_id, "error": {"code": -32601, "message": "Method not found"}}

    return app


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(api_key=TEST_API_KEY, api_url=TEST_API_URL)


@pytest.fixture
def fake_api() -> FastAPI:
    return create_fake_api()


@pytest_asyncio.fixture
async def api_client(server_config: ServerConfig, fake_api: FastAPI):
    """FhirflyClient branché sur l'API factice (ASGI, aucun réseau)."""
    transport = httpx.ASGITransport(app=fake_api)
    async with httpx.AsyncClient(transport=transport) as http_client:
        async with FhirflyClient(server_config, http_client=http_client) as client:
            yield client


@pytest_asyncio.fixture
async def mock_client_factory(server_config: ServerConfig):
    """Fabrique de FhirflyClient dont les réponses HTTP proviennent d'un handler (httpx.MockTransport)."""
    http_clients: list[httpx.AsyncClient] = []

    def _factory(handler) -> FhirflyClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        http_clients.append(http_client)
        return FhirflyClient(server_config, http_client=http_client)

    yield _factory

    for http_client in http_clients:
        await http_client.aclose()


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def live_api_url():
    """API factice servie par uvicorn sur 127.0.0.1 (tests en sous-process)."""
    port = _free_port()
    config = uvicorn.Config(create_fake_api(), host="127.0.0.1", port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 10.0
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            raise RuntimeError("Le serveur uvicorn de test n'a pas démarré")
        time.sleep(0.01)

    yield f"http://127.0.0.1:{port}"

    server.should_exit = True
    thread.join(timeout=5.0)


@pytest.fixture
def closed_port_url() -> str:
    """URL vers un port local sans serveur (connexion refusée)."""
    return f"http://127.0.0.1:{_free_port()}"
