"""fhirfly_mcp.transport.stdio

Transport MCP sur stdin/stdout.

- Lit stdin ligne par ligne (StreamReader asyncio non-bloquant) et reconstitue les
  messages JSON-RPC, y compris ceux découpés sur plusieurs lignes.
- Chaque message accepté est traité dans sa propre tâche asyncio: la lecture de
  stdin n'attend pas la fin d'un appel réseau.
- Écrit une réponse JSON compacte par ligne sur stdout.
- À la fermeture de stdin, attend que toutes les requêtes en vol aient répondu
  avant de rendre la main (code de sortie 0).

Important:
- Ne jamais écrire de logs sur stdout (sinon corruption JSON-RPC): les logs passent
  par `logging`, configuré sur stderr.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Awaitable, Callable, TextIO

from ..core.constants import (
    DEFAULT_STREAM_LIMIT_BYTES,
    FRAMING_BUFFERED,
    FRAMING_LINE,
    ErrorCode,
)
from ..core.models import RequestId, RpcResponse, encode_message, extract_request_id

logger = logging.getLogger(__name__)


MessageHandler = Callable[[object], Awaitable[RpcResponse]]


class StdioTransport:
    """Framer JSON-RPC ligne à ligne avec suivi des requêtes en vol."""

    def __init__(
        self,
        debug: bool = False,
        *,
        reader: asyncio.StreamReader | None = None,
        writer: TextIO | None = None,
        framing: str = FRAMING_BUFFERED,
        stream_limit_bytes: int = DEFAULT_STREAM_LIMIT_BYTES,
    ) -> None:
        self._debug = debug
        self._reader = reader
        self._writer = writer if writer is not None else sys.stdout
        self._framing = framing
        self._stream_limit_bytes = stream_limit_bytes

        self._handler: MessageHandler | None = None
        self._buffer = ""
        self._pending_requests = 0
        self._stdin_closed = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._drained: asyncio.Event | None = None

    @property
    def pending_requests(self) -> int:
        return self._pending_requests

    @property
    def stdin_closed(self) -> bool:
        return self._stdin_closed

    def set_handler(self, handler: MessageHandler) -> None:
        """Définit le handler appelé pour chaque message décodé."""
        self._handler = handler

    async def run(self) -> int:
        """Lit stdin jusqu'à EOF puis attend la fin des requêtes en vol.

        Returns:
            Code de sortie du process (0 après drainage complet).
        """
        self._drained = asyncio.Event()
        reader = self._reader if self._reader is not None else await self._connect_stdin_reader()

        while True:
            try:
                raw = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                # EOF: dernière ligne sans \n (vide si stdin est fermé).
                raw = e.partial
            except asyncio.LimitOverrunError as e:
                # Ligne au-delà de la limite du StreamReader: le message est perdu.
                logger.warning(f"Ligne stdin trop volumineuse, ignorée: {e}")
                await self._discard_line(reader, e.consumed)
                self._buffer = ""
                self.send_error(None, ErrorCode.PARSE_ERROR, "Parse error: Message too large")
                continue
            except (ConnectionError, OSError) as e:
                logger.debug(f"stdin error: {e}")
                break

            if not raw:
                break

            self._handle_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))

        self._stdin_closed = True
        logger.debug("stdin closed, waiting for pending requests...")
        self._maybe_exit()

        await self._drained.wait()
        logger.debug("All requests complete, exiting")
        return 0

    async def _connect_stdin_reader(self) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        # La limite par défaut (64KiB) ferait échouer readuntil() sur de gros messages.
        reader = asyncio.StreamReader(limit=self._stream_limit_bytes)
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, sys.stdin.buffer)
        return reader

    @staticmethod
    async def _discard_line(reader: asyncio.StreamReader, consumed: int) -> None:
        """Vide la ligne trop longue jusqu'à son \\n inclus (la suite peut arriver plus tard).

        `LimitOverrunError` laisse les octets dans le buffer du reader: on retire
        `consumed` octets puis on relit jusqu'au séparateur, autant de fois que
        nécessaire.
        """
        while True:
            await reader.readexactly(consumed)
            try:
                await reader.readuntil(b"\n")
                return
            except asyncio.IncompleteReadError:
                return
            except asyncio.LimitOverrunError as e:
                consumed = e.consumed

    def _handle_line(self, line: str) -> None:
        if self._framing == FRAMING_LINE:
            if not line.strip():
                return
            candidate = line
        else:
            self._buffer += line
            candidate = self._buffer

        try:
            request: object = json.loads(candidate)
        except ValueError:
            if self._framing == FRAMING_LINE or line.strip().endswith("}"):
                self.send_error(None, ErrorCode.PARSE_ERROR, "Parse error: Invalid JSON")
                self._buffer = ""
            # Sinon: message partiel, on continue d'accumuler.
            return

        self._buffer = ""

        if self._debug:
            logger.debug(f"Received: {json.dumps(request, indent=2, ensure_ascii=False)}")

        if self._handler is None:
            logger.warning("Message reçu sans handler enregistré, ignoré")
            return

        self._pending_requests += 1
        task = asyncio.create_task(self._dispatch(self._handler, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, handler: MessageHandler, request: object) -> None:
        try:
            try:
                response = await handler(request)
            except Exception as e:
                logger.exception("Handler error")
                response = RpcResponse.failure(
                    extract_request_id(request),
                    ErrorCode.INTERNAL_ERROR,
                    f"Internal error: {e}",
                )
            try:
                self.send(response)
            except OSError as e:
                # stdout fermé côté client: rien d'autre ne peut être écrit.
                logger.error(f"Écriture stdout impossible: {e}")
        finally:
            self._pending_requests -= 1
            self._maybe_exit()

    def _maybe_exit(self) -> None:
        if self._stdin_closed and self._pending_requests == 0 and self._drained is not None:
            self._drained.set()

    def send(self, response: RpcResponse) -> None:
        """Écrit une réponse JSON-RPC sur stdout (une ligne)."""
        payload = response.to_dict()

        if self._debug:
            logger.debug(f"Sending: {json.dumps(payload, indent=2, ensure_ascii=False)}")

        self._writer.write(encode_message(payload) + "\n")
        self._writer.flush()

    def send_error(self, req_id: RequestId, code: int, message: str, data: object = None) -> None:
        self.send(RpcResponse.failure(req_id, code, message, data))