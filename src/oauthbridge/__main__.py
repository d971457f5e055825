"""oauthbridge entry point."""

from __future__ import annotations

import argparse
import logging

from oauthbridge import __version__
from oauthbridge.config import get_settings
from oauthbridge.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _list_connectors() -> None:
    from oauthbridge.connectors.catalog import CONNECTORS

    for name, connector in sorted(CONNECTORS.items()):
        encoding = "form" if connector.is_form else "json"
        print(f"{name:<15} {encoding:<5} {connector.scope_string}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="oauthbridge",
        description="OAuth 2.0 authorization server chained to an upstream provider",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  oauthbridge serve                  Start the server (settings from OAUTHBRIDGE_* env)
  oauthbridge serve --port 8080      Override the bind port
  oauthbridge connectors             List built-in connectors
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the authorization server")
    serve.add_argument("--host", help="Bind address (default: OAUTHBRIDGE_HOST)")
    serve.add_argument("--port", type=int, help="Bind port (default: OAUTHBRIDGE_PORT)")
    serve.add_argument("--dev", action="store_true", help="Auto-reload on code changes")

    sub.add_parser("connectors", help="List built-in connectors")

    args = parser.parse_args(argv)

    if args.command == "connectors":
        _list_connectors()
        return

    if args.command != "serve":
        parser.print_help()
        return

    settings = get_settings()
    setup_logging(level=settings.log_level)

    overrides = {k: v for k, v in (("host", args.host), ("port", args.port)) if v is not None}
    if overrides:
        settings = settings.model_copy(update=overrides)
    if not settings.client_id or not settings.client_secret:
        logger.warning("OAUTHBRIDGE_CLIENT_ID / OAUTHBRIDGE_CLIENT_SECRET are not set")

    from oauthbridge.api.serve import run_api_server

    run_api_server(settings, dev=args.dev)


if __name__ == "__main__":
    main()
