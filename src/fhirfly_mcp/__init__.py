"""
FHIRfly MCP Server

Serveur MCP (Model Context Protocol) sur stdio qui relaie la découverte et
l'appel d'outils vers l'endpoint JSON-RPC de l'API FHIRfly.

Configuration Claude Desktop (claude_desktop_config.json):

    {
      "mcpServers": {
        "fhirfly": {
          "command": "fhirfly-mcp",
          "env": {"FHIRFLY_API_KEY": "your_api_key_here"}
        }
      }
    }
"""

from .api.router import McpRouter
from .config.settings import ServerConfig
from .core.constants import SERVER_VERSION as __version__
from .core.models import (
    RpcError,
    RpcRequest,
    RpcResponse,
    ToolCallParams,
    ToolCallResult,
    ToolDefinition,
    ToolsListResult,
)
from .main import McpServer
from .proxy.client import FhirflyClient
from .transport.stdio import StdioTransport

__all__ = [
    "McpServer",
    "McpRouter",
    "FhirflyClient",
    "StdioTransport",
    "ServerConfig",
    "RpcError",
    "RpcRequest",
    "RpcResponse",
    "ToolCallParams",
    "ToolCallResult",
    "ToolDefinition",
    "ToolsListResult",
    "__version__",
]
