# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-18

from __future__ import annotations

from fastapi import HTTPException, Request

from oauthbridge.errors import UnauthorizedError
from oauthbridge.oauth2.callback import CallbackOrchestrator
from oauthbridge.oauth2.models import AuthInfo
from oauthbridge.oauth2.server import AuthorizationProvider


def get_provider(request: Request) -> AuthorizationProvider:
    return request.app.state.provider


def get_orchestrator(request: Request) -> CallbackOrchestrator:
    return request.app.state.orchestrator


async def require_bearer(request: Request) -> AuthInfo:
    """FastAPI dependency that resolves ``Authorization: Bearer <token>``.

    Usage::

        @router.get("/mcp")
        async def handler(auth: AuthInfo = Depends(require_bearer)): ...

    Raises 401 with a ``WWW-Authenticate`` challenge when the token is
    missing, unknown or expired.
    """
    auth_header = request.headers.get("Authorization", "")
    token = auth_header.removeprefix("Bearer ").strip() if auth_header.startswith("Bearer ") else ""
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        auth = get_provider(request).verify_access_token(token)
    except UnauthorizedError as exc:
        raise HTTPException(
            status_code=401,
            detail=exc.description,
            headers={"WWW-Authenticate": f'Bearer error="{exc.error}"'},
        ) from exc

    request.state.auth = auth
    return auth
