"""fhirfly_mcp.config.settings

Configuration du serveur MCP, lue depuis les variables d'environnement.

Aucune clé en dur: la clé API provient de FHIRFLY_API_KEY (fournie par le client
MCP, ex: `env` de claude_desktop_config.json).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from ..core.constants import (
    API_KEY_PREFIX,
    DEFAULT_API_URL,
    DEFAULT_STREAM_LIMIT_BYTES,
    ENV_API_KEY,
    ENV_API_URL,
    ENV_DEBUG,
    ENV_FRAMING,
    ENV_STREAM_LIMIT,
    ENV_TIMEOUT_MS,
    FRAMING_BUFFERED,
    FRAMING_MODES,
    MAX_STREAM_LIMIT_BYTES,
    MCP_ENDPOINT_PATH,
    MIN_STREAM_LIMIT_BYTES,
)
from ..core.exceptions import ConfigurationError


@dataclass(frozen=True)
class ServerConfig:
    """Configuration immuable pour la durée de vie du process."""

    api_key: str
    api_url: str = DEFAULT_API_URL
    debug: bool = False
    # None = pas de timeout réseau (un appel bloqué retarde l'arrêt)
    timeout_ms: int | None = None
    framing: str = FRAMING_BUFFERED
    stream_limit_bytes: int = field(default=DEFAULT_STREAM_LIMIT_BYTES)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServerConfig":
        """Construit la configuration depuis l'environnement.

        Raises:
            ConfigurationError: clé API absente ou au mauvais format.
        """
        env = os.environ if environ is None else environ

        api_key = (env.get(ENV_API_KEY) or "").strip()
        if not api_key:
            raise ConfigurationError(
                f"La variable d'environnement {ENV_API_KEY} est requise",
                config_key=ENV_API_KEY,
            )
        if not is_valid_api_key(api_key):
            raise ConfigurationError(
                f"Format de clé API invalide: les clés FHIRfly commencent par '{API_KEY_PREFIX}'",
                config_key=ENV_API_KEY,
            )

        api_url = (env.get(ENV_API_URL) or "").strip() or DEFAULT_API_URL

        framing = (env.get(ENV_FRAMING) or FRAMING_BUFFERED).strip().lower()
        if framing not in FRAMING_MODES:
            framing = FRAMING_BUFFERED

        stream_limit = _env_int(env, ENV_STREAM_LIMIT, default=DEFAULT_STREAM_LIMIT_BYTES)
        if stream_limit is None or stream_limit <= 0:
            stream_limit = DEFAULT_STREAM_LIMIT_BYTES

        timeout_ms = _env_int(env, ENV_TIMEOUT_MS, default=None)
        if timeout_ms is not None and timeout_ms <= 0:
            timeout_ms = None

        return cls(
            api_key=api_key,
            api_url=api_url.rstrip("/"),
            debug=_env_flag(env, ENV_DEBUG, default=False),
            timeout_ms=timeout_ms,
            framing=framing,
            stream_limit_bytes=min(MAX_STREAM_LIMIT_BYTES, max(MIN_STREAM_LIMIT_BYTES, stream_limit)),
        )

    @property
    def mcp_endpoint(self) -> str:
        return f"{self.api_url}{MCP_ENDPOINT_PATH}"

    def masked_api_key(self, visible: int = 10) -> str:
        return self.api_key[:visible] + "..."


def is_valid_api_key(api_key: str) -> bool:
    return api_key.startswith(API_KEY_PREFIX) and len(api_key) > len(API_KEY_PREFIX)


def _env_flag(env: Mapping[str, str], name: str, *, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], name: str, *, default: int | None) -> int | None:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default
