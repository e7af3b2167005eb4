"""
Constantes globales pour le serveur MCP FHIRfly.
"""
from enum import IntEnum

# ============================================================================
# PROTOCOLE
# ============================================================================
JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

SERVER_NAME = "fhirfly-mcp-server"
SERVER_VERSION = "0.1.0"
USER_AGENT = f"{SERVER_NAME}/{SERVER_VERSION} (python)"

# ============================================================================
# API FHIRFLY
# ============================================================================
DEFAULT_API_URL = "https://api.fhirfly.io"
API_KEY_PREFIX = "ffly_"
MCP_ENDPOINT_PATH = "/mcp"

# ============================================================================
# VARIABLES D'ENVIRONNEMENT
# ============================================================================
ENV_API_KEY = "FHIRFLY_API_KEY"
ENV_API_URL = "FHIRFLY_API_URL"
ENV_DEBUG = "FHIRFLY_DEBUG"
ENV_TIMEOUT_MS = "FHIRFLY_TIMEOUT_MS"
ENV_FRAMING = "FHIRFLY_FRAMING"
ENV_STREAM_LIMIT = "FHIRFLY_STDIO_STREAM_LIMIT"

# ============================================================================
# STDIO
# ============================================================================
FRAMING_BUFFERED = "buffered"  # heuristique historique (accumulation jusqu'à '}')
FRAMING_LINE = "line"  # 1 ligne = 1 message JSON complet
FRAMING_MODES = frozenset({FRAMING_BUFFERED, FRAMING_LINE})

DEFAULT_STREAM_LIMIT_BYTES = 8 * 1024 * 1024  # 8 MiB
MIN_STREAM_LIMIT_BYTES = 64 * 1024
MAX_STREAM_LIMIT_BYTES = 64 * 1024 * 1024


class ErrorCode(IntEnum):
    """Codes d'erreur JSON-RPC exposés au client MCP."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Erreurs upstream (API FHIRfly)
    API_ERROR = -32000
    AUTH_FAILED = -32001
    RATE_LIMITED = -32002
    NETWORK_ERROR = -32003
