"""
Configuration du serveur MCP FHIRfly.
"""

from .settings import ServerConfig, is_valid_api_key

__all__ = [
    "ServerConfig",
    "is_valid_api_key",
]
