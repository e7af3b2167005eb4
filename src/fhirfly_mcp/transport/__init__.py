"""
Transport MCP (stdin/stdout).
"""

from .stdio import MessageHandler, StdioTransport

__all__ = [
    "MessageHandler",
    "StdioTransport",
]
