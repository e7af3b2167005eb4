"""
Couche API: routage des méthodes MCP.
"""

from .router import McpMethod, McpRouter

__all__ = ["McpMethod", "McpRouter"]
