# Bearer-protected resource endpoint and health check.
# Created: 2026-10-18
#
# The business logic behind /mcp is supplied by the embedding application as a
# ResourceHandler; this router only authenticates and dispatches.

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from oauthbridge.api.deps import require_bearer
from oauthbridge.oauth2.models import AuthInfo

logger = logging.getLogger(__name__)

ResourceHandler = Callable[[Request, AuthInfo], Awaitable[Any]]

router = APIRouter(tags=["Resource"])


async def default_resource_handler(request: Request, auth: AuthInfo) -> dict[str, Any]:
    """Echo who the caller is. Used when no handler is configured."""
    return {
        "client_id": auth.client_id,
        "scopes": auth.scopes,
        "expires_at": auth.expires_at,
        "connector_connected": auth.connector_token is not None,
    }


@router.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "connector": request.app.state.connector_name}


@router.api_route("/mcp", methods=["GET", "POST", "DELETE"])
async def protected_resource(request: Request, auth: AuthInfo = Depends(require_bearer)):
    handler: ResourceHandler = request.app.state.resource_handler
    try:
        result = await handler(request, auth)
    except Exception:
        logger.exception("Resource handler failed for client %s", auth.client_id)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    if isinstance(result, Response):
        return result
    return JSONResponse(content=result)
