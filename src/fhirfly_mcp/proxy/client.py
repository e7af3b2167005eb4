"""fhirfly_mcp.proxy.client

Client HTTP pour l'endpoint MCP de l'API FHIRfly (`{api_url}/mcp`).

Couche Proxy:
- Contient l'I/O HTTP (httpx.AsyncClient)
- Une seule tentative par appel: pas de retry, pas de backoff
- Les échecs transport (HTTP != 2xx, réseau) sont convertis en réponses JSON-RPC
  structurées; `request()` ne lève jamais pour ces cas.

Asymétrie volontaire entre les deux opérations MCP:
- `list_tools()` lève `UpstreamRpcError` si la réponse porte une `error`
- `call_tool()` ne lève pas: l'erreur devient un résultat d'outil `isError=True`
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from ..config.settings import ServerConfig
from ..core.constants import USER_AGENT, ErrorCode
from ..core.exceptions import UpstreamRpcError
from ..core.models import RpcRequest, RpcResponse, ToolCallResult, ToolsListResult

logger = logging.getLogger(__name__)


class FhirflyClient:
    """Client de l'API FHIRfly.

    Usage:
        async with FhirflyClient(config) as client:
            tools = await client.list_tools()
    """

    def __init__(self, config: ServerConfig, *, http_client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "FhirflyClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.close()

    @property
    def config(self) -> ServerConfig:
        return self._config

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=_timeout_from_ms(self._config.timeout_ms))
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Ferme le client HTTP s'il a été créé par cette instance."""
        if self._owns_client and self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._config.api_key,
            "User-Agent": USER_AGENT,
        }

    async def request(self, method: str, params: dict[str, Any] | None = None) -> RpcResponse:
        """Envoie une requête JSON-RPC à l'endpoint MCP FHIRfly.

        Mapping des échecs transport:
        - HTTP 401 → -32001 (authentification)
        - HTTP 429 → -32002 (rate limit)
        - autre HTTP != 2xx → -32000
        - exception réseau / corps non JSON → -32003

        Returns:
            La réponse JSON-RPC de l'API (non re-validée), ou une réponse d'erreur
            synthétisée pour les échecs transport.
        """
        rpc_request = RpcRequest(method=method, id=time.time_ns(), params=params)
        url = self._config.mcp_endpoint

        logger.debug(f"API Request: {method} {params}")

        try:
            response = await self._get_client().post(
                url,
                json=rpc_request.to_dict(),
                headers=self._build_headers(),
            )

            if not response.is_success:
                return _http_error_response(rpc_request.id, response)

            body: object = response.json()
        except Exception as e:
            message = _describe_exception(e)
            logger.debug(f"API Error: {message}")
            return RpcResponse.failure(
                rpc_request.id,
                ErrorCode.NETWORK_ERROR,
                f"Network error: {message}",
            )

        if not isinstance(body, dict):
            logger.debug(f"API Error: réponse non-objet ({type(body).__name__})")
            return RpcResponse.failure(
                rpc_request.id,
                ErrorCode.NETWORK_ERROR,
                "Network error: Invalid JSON-RPC response body",
            )

        logger.debug(f"API Response: {json.dumps(body, indent=2, ensure_ascii=False)}")
        return RpcResponse.from_dict(body)

    async def list_tools(self) -> ToolsListResult:
        """Liste les outils exposés par FHIRfly.

        Raises:
            UpstreamRpcError: la réponse JSON-RPC porte une erreur.
        """
        response = await self.request("tools/list", {})

        if response.error is not None:
            raise UpstreamRpcError(
                response.error.message,
                rpc_code=response.error.code,
                data=response.error.data,
            )

        return response.result

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolCallResult:
        """Appelle un outil FHIRfly.

        Une erreur JSON-RPC n'est pas levée: elle est renvoyée sous forme de
        résultat d'outil (`isError=True`) dont le texte est `{"error", "code"}` en JSON.
        """
        response = await self.request("tools/call", {"name": name, "arguments": arguments})

        if response.error is not None:
            return {
                "content": [
                    {
                        "type": "text",
                        "text": json.dumps(
                            {"error": response.error.message, "code": response.error.code},
                            ensure_ascii=False,
                        ),
                    }
                ],
                "isError": True,
            }

        return response.result


def _http_error_response(req_id: int, response: httpx.Response) -> RpcResponse:
    status = response.status_code

    if status == 401:
        return RpcResponse.failure(
            req_id,
            ErrorCode.AUTH_FAILED,
            "Authentication failed. Check your FHIRFLY_API_KEY.",
        )

    if status == 429:
        return RpcResponse.failure(
            req_id,
            ErrorCode.RATE_LIMITED,
            "Rate limit exceeded. Please slow down requests.",
        )

    return RpcResponse.failure(
        req_id,
        ErrorCode.API_ERROR,
        f"API error: {status} {response.reason_phrase}",
    )


def _describe_exception(exc: BaseException) -> str:
    # Certaines exceptions httpx (timeouts) ont un message vide.
    return str(exc) or type(exc).__name__


def _timeout_from_ms(timeout_ms: int | None) -> httpx.Timeout:
    if timeout_ms is None:
        return httpx.Timeout(None)
    timeout_s = max(0.001, float(timeout_ms) / 1000.0)
    return httpx.Timeout(timeout_s, connect=min(5.0, timeout_s))
