"""
Point d'entrée pour `python -m fhirfly_mcp` (et la commande `fhirfly-mcp`).
"""
import asyncio
import logging
import sys

from .config.settings import ServerConfig
from .core.constants import API_KEY_PREFIX, ENV_API_KEY, ENV_API_URL, ENV_DEBUG, SERVER_VERSION
from .core.exceptions import ConfigurationError
from .main import McpServer


def _print_api_key_help(api_key_missing: bool) -> None:
    err = sys.stderr
    if api_key_missing:
        print(f"Error: {ENV_API_KEY} environment variable is required", file=err)
        print("", file=err)
        print("To get an API key:", file=err)
        print("  1. Sign up at https://fhirfly.io", file=err)
        print("  2. Go to Dashboard > Credentials", file=err)
        print("  3. Create an MCP credential", file=err)
        print("", file=err)
        print("Then set the environment variable:", file=err)
        print(f'  export {ENV_API_KEY}="your_api_key_here"', file=err)
        print("", file=err)
        print("Or configure in Claude Desktop's claude_desktop_config.json", file=err)
        return

    print("Error: Invalid API key format", file=err)
    print(f"FHIRfly API keys start with '{API_KEY_PREFIX}'", file=err)
    print("", file=err)
    print(f"Please check your {ENV_API_KEY} environment variable.", file=err)


def _configure_logging(debug: bool) -> None:
    # stdout est réservé aux messages JSON-RPC.
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if debug else logging.WARNING,
        format="[MCP %(levelname)s] %(name)s: %(message)s",
    )
    # httpx/httpcore sont trop bavards en DEBUG.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main(argv=None):
    """Fonction principale."""
    import argparse
    import os

    parser = argparse.ArgumentParser(description="FHIRfly MCP Server (stdio)")
    parser.add_argument("--api-url", default=None, help=f"URL de l'API (défaut: ${ENV_API_URL})")
    parser.add_argument("--debug", action="store_true", help=f"Logs de debug sur stderr (ou ${ENV_DEBUG}=1)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")

    args = parser.parse_args(argv)

    environ = dict(os.environ)
    if args.api_url:
        environ[ENV_API_URL] = args.api_url
    if args.debug:
        environ[ENV_DEBUG] = "1"

    try:
        config = ServerConfig.from_env(environ)
    except ConfigurationError:
        _print_api_key_help(api_key_missing=not (environ.get(ENV_API_KEY) or "").strip())
        return 1

    _configure_logging(config.debug)

    if config.debug:
        err = sys.stderr
        print("=" * 50, file=err)
        print("FHIRfly MCP Server - Debug Mode", file=err)
        print("=" * 50, file=err)
        print(f"API URL: {config.api_url}", file=err)
        print(f"API Key: {config.masked_api_key(15)}", file=err)
        print("=" * 50, file=err)

    return asyncio.run(McpServer(config).run())


if __name__ == "__main__":
    sys.exit(main())
