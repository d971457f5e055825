"""Application factory and server runner.

``create_api_app`` wires the connector, storage, authorization provider and
callback orchestrator from an explicit :class:`Settings` and keeps them on
``app.state``; routers reach them through the dependencies in ``deps``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from oauthbridge import __version__
from oauthbridge.api import oauth2, resource
from oauthbridge.api.resource import ResourceHandler
from oauthbridge.config import Settings, get_settings
from oauthbridge.connectors.catalog import get_connector
from oauthbridge.connectors.models import Connector
from oauthbridge.oauth2.callback import CallbackOrchestrator
from oauthbridge.oauth2.server import AuthorizationProvider
from oauthbridge.oauth2.storage import OAuthStorage
from oauthbridge.oauth2.upstream import UpstreamExchange

logger = logging.getLogger(__name__)


def create_api_app(
    settings: Settings | None = None,
    *,
    connector: Connector | None = None,
    storage: OAuthStorage | None = None,
    upstream: UpstreamExchange | None = None,
    resource_handler: ResourceHandler | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Server settings; read from the environment when omitted.
        connector: Upstream connector; looked up by ``settings.connector`` when omitted.
        storage: Store for clients and credentials.
        upstream: Upstream exchange service (inject a mock transport in tests).
        resource_handler: Coroutine ``(request, auth_info)`` serving ``/mcp``.
    """
    settings = settings or get_settings()
    if connector is None:
        connector = get_connector(settings.connector)
        connector_name = settings.connector
    else:
        connector_name = "custom"

    provider = AuthorizationProvider(settings, connector, storage)
    orchestrator = CallbackOrchestrator(provider, upstream)

    app = FastAPI(
        title="oauthbridge",
        description="OAuth 2.0 authorization server chained to an upstream provider.",
        version=__version__,
    )
    app.state.provider = provider
    app.state.orchestrator = orchestrator
    app.state.connector_name = connector_name
    app.state.resource_handler = resource_handler or resource.default_resource_handler

    # Public clients (browser-based) call /register and /token cross-origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.include_router(oauth2.router)
    app.include_router(resource.router)

    logger.info("OAuth bridge ready (connector=%s, base_url=%s)", connector_name, settings.base_url)
    return app


def run_api_server(settings: Settings, dev: bool = False) -> None:
    """Start the server with uvicorn."""
    import uvicorn

    print(f"\nAuthorize URL: {settings.base_url}/authorize")
    print(f"Token URL:     {settings.base_url}/token")
    print(f"Callback URL:  {settings.callback_url}  (register this with the connector)\n")

    if dev:
        uvicorn.run(
            "oauthbridge.api.serve:create_api_app",
            factory=True,
            host=settings.host,
            port=settings.port,
            reload=True,
            log_level="debug",
        )
    else:
        uvicorn.run(create_api_app(settings), host=settings.host, port=settings.port)
