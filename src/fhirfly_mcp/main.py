"""
Serveur MCP FHIRfly: assemble le transport stdio, le routeur et le client API.
"""
from __future__ import annotations

import logging

from .api.router import McpRouter
from .config.settings import ServerConfig
from .proxy.client import FhirflyClient
from .transport.stdio import StdioTransport

logger = logging.getLogger(__name__)


class McpServer:
    """Process MCP: un transport, un routeur, un client pour toute la durée de vie."""

    def __init__(
        self,
        config: ServerConfig,
        *,
        transport: StdioTransport | None = None,
        client: FhirflyClient | None = None,
    ):
        self.config = config
        self.client = client or FhirflyClient(config)
        self.router = McpRouter(self.client)
        self.transport = transport or StdioTransport(
            config.debug,
            framing=config.framing,
            stream_limit_bytes=config.stream_limit_bytes,
        )

    @property
    def initialized(self) -> bool:
        return self.router.initialized

    async def run(self) -> int:
        """Démarre la boucle stdio et retourne le code de sortie une fois drainée."""
        logger.debug("Starting FHIRfly MCP Server")
        logger.debug(f"API URL: {self.config.api_url}")
        logger.debug(f"API Key: {self.config.masked_api_key()}")

        self.transport.set_handler(self.router.handle_message)

        async with self.client:
            return await self.transport.run()
