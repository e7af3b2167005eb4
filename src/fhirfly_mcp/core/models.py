"""fhirfly_mcp.core.models

Types du protocole JSON-RPC 2.0 / MCP.

- Dataclasses figées pour les messages JSON-RPC (requête, réponse, erreur).
- TypedDict pour les structures MCP définies par l'API FHIRfly (schémas d'outils,
  résultats d'appel): elles sont transmises telles quelles, sans validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Literal, TypedDict

from .constants import JSONRPC_VERSION, ErrorCode


RequestId = str | int | float | None
JsonObject = dict[str, Any]


def encode_message(payload: object) -> str:
    """Sérialise un message sur une seule ligne JSON compacte (sans newline)."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def extract_request_id(raw: object) -> RequestId:
    """Récupère l'`id` d'un message décodé, ou None s'il est absent ou invalide."""
    if isinstance(raw, dict):
        req_id = raw.get("id")
        if isinstance(req_id, (str, int, float)) and not isinstance(req_id, bool):
            return req_id
    return None


@dataclass(frozen=True)
class RpcError:
    code: int
    message: str
    data: Any = None

    def to_dict(self) -> JsonObject:
        payload: JsonObject = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload

    @classmethod
    def from_dict(cls, raw: object) -> "RpcError":
        """Construit une erreur depuis un objet JSON (tolérant: pas de re-validation)."""
        if not isinstance(raw, dict):
            return cls(code=int(ErrorCode.INTERNAL_ERROR), message=str(raw))

        code = raw.get("code")
        if isinstance(code, bool) or not isinstance(code, int):
            code = int(ErrorCode.INTERNAL_ERROR)

        message = raw.get("message")
        return cls(
            code=code,
            message="" if message is None else str(message),
            data=raw.get("data"),
        )


@dataclass(frozen=True)
class RpcRequest:
    method: str
    id: RequestId = None
    params: JsonObject | None = None
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> JsonObject:
        payload: JsonObject = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            payload["params"] = self.params
        return payload

    @classmethod
    def from_dict(cls, raw: JsonObject) -> "RpcRequest":
        params = raw.get("params")
        return cls(
            method=raw["method"],
            id=raw.get("id"),
            params=params if isinstance(params, dict) else None,
            jsonrpc=raw.get("jsonrpc", JSONRPC_VERSION),
        )


@dataclass(frozen=True)
class RpcResponse:
    """Réponse JSON-RPC 2.0.

    Invariant: `result` et `error` sont mutuellement exclusifs. Une réponse sans
    `error` est un succès (son `result` peut valoir None, sérialisé en `null`).
    """

    id: RequestId
    result: Any = None
    error: RpcError | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION)

    def __post_init__(self) -> None:
        if self.error is not None and self.result is not None:
            raise ValueError("Une réponse JSON-RPC ne peut porter à la fois `result` et `error`")

    @classmethod
    def success(cls, req_id: RequestId, result: Any) -> "RpcResponse":
        return cls(id=req_id, result=result)

    @classmethod
    def failure(
        cls,
        req_id: RequestId,
        code: int,
        message: str,
        data: Any = None,
    ) -> "RpcResponse":
        return cls(id=req_id, error=RpcError(code=int(code), message=message, data=data))

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> JsonObject:
        payload: JsonObject = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        else:
            payload["result"] = self.result
        return payload

    @classmethod
    def from_dict(cls, raw: JsonObject) -> "RpcResponse":
        """Décode une réponse telle que reçue (l'erreur l'emporte sur le résultat)."""
        raw_error = raw.get("error")
        if raw_error is not None:
            return cls(
                id=raw.get("id"),
                error=RpcError.from_dict(raw_error),
                jsonrpc=raw.get("jsonrpc", JSONRPC_VERSION),
            )
        return cls(
            id=raw.get("id"),
            result=raw.get("result"),
            jsonrpc=raw.get("jsonrpc", JSONRPC_VERSION),
        )


# ============================================================================
# MCP (structures opaques, définies par l'API FHIRfly)
# ============================================================================


class ToolInputSchema(TypedDict, total=False):
    type: Literal["object"]
    properties: dict[str, Any]
    required: list[str]


class ToolDefinition(TypedDict):
    name: str
    description: str
    inputSchema: ToolInputSchema


class ToolsListResult(TypedDict):
    tools: list[ToolDefinition]


class ToolCallParams(TypedDict):
    name: str
    arguments: dict[str, Any]


class ToolContent(TypedDict, total=False):
    type: Literal["text", "image", "resource"]
    text: str
    data: str
    mimeType: str


class ToolCallResult(TypedDict, total=False):
    content: list[ToolContent]
    isError: bool
