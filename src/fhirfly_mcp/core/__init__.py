"""
Noyau: constantes, exceptions et types du protocole.
"""

from .constants import ErrorCode
from .exceptions import FhirflyMcpError, ConfigurationError, UpstreamRpcError
from .models import (
    RpcError,
    RpcRequest,
    RpcResponse,
    ToolCallParams,
    ToolCallResult,
    ToolContent,
    ToolDefinition,
    ToolInputSchema,
    ToolsListResult,
    encode_message,
    extract_request_id,
)

__all__ = [
    "ErrorCode",
    "FhirflyMcpError",
    "ConfigurationError",
    "UpstreamRpcError",
    "RpcError",
    "RpcRequest",
    "RpcResponse",
    "ToolCallParams",
    "ToolCallResult",
    "ToolContent",
    "ToolDefinition",
    "ToolInputSchema",
    "ToolsListResult",
    "encode_message",
    "extract_request_id",
]
