"""fhirfly_mcp.api.router

Routage des messages MCP (JSON-RPC 2.0) reçus sur stdio.

Couche API:
- Valide la forme de la requête (version JSON-RPC, méthode)
- Dispatche par méthode: initialize, initialized, tools/list, tools/call, ping
- Délègue les méthodes d'outils à `FhirflyClient` et convertit ses échecs en
  erreurs JSON-RPC

Le routeur ne lève jamais: toute exception inattendue devient une réponse -32603.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import Awaitable, Callable

from ..core.constants import (
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    SERVER_NAME,
    SERVER_VERSION,
    ErrorCode,
)
from ..core.exceptions import FhirflyMcpError
from ..core.models import RpcRequest, RpcResponse, extract_request_id
from ..proxy.client import FhirflyClient

logger = logging.getLogger(__name__)


SERVER_INFO = {
    "name": SERVER_NAME,
    "version": SERVER_VERSION,
}

SERVER_CAPABILITIES = {
    "tools": {},
}


class McpMethod(str, Enum):
    """Méthodes MCP supportées (+ UNKNOWN pour tout le reste)."""

    INITIALIZE = "initialize"
    INITIALIZED = "initialized"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    PING = "ping"
    UNKNOWN = "<unknown>"

    @classmethod
    def resolve(cls, name: str) -> "McpMethod":
        for member in cls:
            if member is not cls.UNKNOWN and member.value == name:
                return member
        return cls.UNKNOWN


class McpRouter:
    """Routeur JSON-RPC → actions MCP.

    `initialized` passe à True à la réception de la notification `initialized`;
    il n'est pas utilisé pour restreindre les autres méthodes.
    """

    def __init__(self, client: FhirflyClient):
        self._client = client
        self.initialized = False
        self._handlers: dict[McpMethod, Callable[[RpcRequest], Awaitable[RpcResponse]]] = {
            McpMethod.INITIALIZE: self._handle_initialize,
            McpMethod.INITIALIZED: self._handle_initialized,
            McpMethod.TOOLS_LIST: self._handle_tools_list,
            McpMethod.TOOLS_CALL: self._handle_tools_call,
            McpMethod.PING: self._handle_ping,
            McpMethod.UNKNOWN: self._handle_unknown,
        }

    async def handle_message(self, request: object) -> RpcResponse:
        """Traite un message décodé et retourne la réponse à écrire."""
        req_id = extract_request_id(request)

        try:
            if not _is_valid_request(request):
                return RpcResponse.failure(
                    req_id,
                    ErrorCode.INVALID_REQUEST,
                    "Invalid JSON-RPC request",
                )

            rpc_request = RpcRequest.from_dict(request)
            method = McpMethod.resolve(rpc_request.method)
            return await self._handlers[method](rpc_request)

        except Exception as e:
            message = _error_message(e)
            logger.debug(f"Handler error: {message}")
            return RpcResponse.failure(
                req_id,
                ErrorCode.INTERNAL_ERROR,
                f"Internal error: {message}",
            )

    async def _handle_initialize(self, request: RpcRequest) -> RpcResponse:
        logger.debug("Initialize request from client")

        return RpcResponse.success(
            request.id,
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "serverInfo": dict(SERVER_INFO),
                "capabilities": {key: dict(value) for key, value in SERVER_CAPABILITIES.items()},
            },
        )

    async def _handle_initialized(self, request: RpcRequest) -> RpcResponse:
        self.initialized = True
        return RpcResponse.success(request.id, {})

    async def _handle_ping(self, request: RpcRequest) -> RpcResponse:
        return RpcResponse.success(request.id, {})

    async def _handle_unknown(self, request: RpcRequest) -> RpcResponse:
        return RpcResponse.failure(
            request.id,
            ErrorCode.METHOD_NOT_FOUND,
            f"Unknown method: {request.method}",
        )

    async def _handle_tools_list(self, request: RpcRequest) -> RpcResponse:
        try:
            result = await self._client.list_tools()
        except Exception as e:
            message = _error_message(e)
            logger.debug(f"tools/list failed: {message}")
            return RpcResponse.failure(
                request.id,
                ErrorCode.INTERNAL_ERROR,
                f"Failed to list tools: {message}",
            )

        return RpcResponse.success(request.id, result)

    async def _handle_tools_call(self, request: RpcRequest) -> RpcResponse:
        params = request.params or {}
        name = params.get("name")

        if not isinstance(name, str) or not name:
            return RpcResponse.failure(
                request.id,
                ErrorCode.INVALID_PARAMS,
                "Missing tool name in params",
            )

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}

        try:
            result = await self._client.call_tool(name, arguments)
        except Exception as e:
            message = _error_message(e)
            logger.debug(f"tools/call {name} failed: {message}")
            return RpcResponse.failure(
                request.id,
                ErrorCode.INTERNAL_ERROR,
                f"Tool call failed: {message}",
            )

        return RpcResponse.success(request.id, result)


def _is_valid_request(request: object) -> bool:
    if not isinstance(request, dict):
        return False
    if request.get("jsonrpc") != JSONRPC_VERSION:
        return False
    method = request.get("method")
    return isinstance(method, str) and bool(method)


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, FhirflyMcpError):
        return exc.message
    return str(exc)
