# OAuth2 router: register, authorize, callback, token, metadata.
# Created: 2026-10-18

from __future__ import annotations

import base64
import binascii
import hmac
import logging
import time
import uuid
from typing import Annotated
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from oauthbridge.api.deps import get_orchestrator, get_provider
from oauthbridge.api.schemas import (
    AuthorizationServerMetadata,
    ClientRegistrationRequest,
    TokenRequest,
    TokenResponse,
)
from oauthbridge.config import CALLBACK_PATH
from oauthbridge.connectors.mapping import now_ms
from oauthbridge.errors import BadRequestError, OAuthBridgeError, UnauthorizedError
from oauthbridge.oauth2.callback import CallbackOrchestrator
from oauthbridge.oauth2.models import OAuthClientInformation
from oauthbridge.oauth2.pkce import verify_code_verifier
from oauthbridge.oauth2.server import AuthorizationProvider, generate_token, url_with_params

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"])

Provider = Annotated[AuthorizationProvider, Depends(get_provider)]


def _oauth_error(error: str, description: str = "", status_code: int = 400) -> JSONResponse:
    content = {"error": error}
    if description:
        content["error_description"] = description
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={"Cache-Control": "no-store"},
    )


@router.get("/.well-known/oauth-authorization-server")
async def server_metadata(provider: Provider) -> AuthorizationServerMetadata:
    base = provider.settings.base_url
    return AuthorizationServerMetadata(
        issuer=base,
        authorization_endpoint=f"{base}/authorize",
        token_endpoint=f"{base}/token",
        registration_endpoint=f"{base}/register",
    )


@router.post("/register", status_code=201)
async def register_client(
    body: ClientRegistrationRequest, provider: Provider
) -> OAuthClientInformation:
    """Register a relying-party client and return its credentials."""
    public = body.token_endpoint_auth_method == "none"
    client = OAuthClientInformation(
        client_id=str(uuid.uuid4()),
        client_secret=None if public else generate_token(),
        client_name=body.client_name,
        redirect_uris=body.redirect_uris,
        token_endpoint_auth_method=body.token_endpoint_auth_method,
        grant_types=body.grant_types,
        response_types=body.response_types,
        scope=body.scope,
        client_id_issued_at=int(time.time()),
        client_secret_expires_at=None if public else 0,
    )
    return provider.register_client(client)


@router.get("/authorize")
async def authorize(
    provider: Provider,
    client_id: str = Query(...),
    redirect_uri: str | None = Query(None),
    response_type: str = Query("code"),
    code_challenge: str | None = Query(None),
    code_challenge_method: str = Query("S256"),
    state: str | None = Query(None),
):
    """Start an authorization: redirect the browser to the upstream connector."""
    try:
        client = provider.get_client(client_id)
    except UnauthorizedError:
        raise HTTPException(status_code=400, detail="Unknown client_id") from None

    if redirect_uri is None:
        if len(client.redirect_uris) != 1:
            raise HTTPException(status_code=400, detail="redirect_uri is required")
        redirect_uri = client.redirect_uris[0]
    elif redirect_uri not in client.redirect_uris:
        raise HTTPException(status_code=400, detail="Invalid redirect_uri")

    # From here on errors can safely go back to the registered redirect URI
    error = None
    if response_type != "code":
        error = "unsupported_response_type"
    elif code_challenge and code_challenge_method != "S256":
        error = "invalid_request"
    if error:
        return RedirectResponse(
            url_with_params(redirect_uri, {"error": error, "state": state}), status_code=302
        )

    try:
        location = provider.authorize(
            client,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            state=state,
        )
    except OAuthBridgeError:
        logger.exception("Authorize failed for client %s", client_id)
        raise HTTPException(status_code=500, detail="Authorization is not available") from None
    return RedirectResponse(location, status_code=302)


@router.get(CALLBACK_PATH)
async def oauth_callback(
    orchestrator: Annotated[CallbackOrchestrator, Depends(get_orchestrator)],
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
):
    """Upstream redirect target; finishes both flows and returns to the relying party."""
    try:
        location = await orchestrator.handle_callback(code, state, error)
    except (BadRequestError, UnauthorizedError) as exc:
        logger.warning("Rejected OAuth callback: %s", exc)
        raise HTTPException(status_code=400, detail=exc.description) from None
    except Exception:
        logger.exception("OAuth callback failed")
        raise HTTPException(status_code=500, detail="Authorization failed") from None
    return RedirectResponse(location, status_code=302)


def _client_credentials(request: Request, body: TokenRequest) -> tuple[str | None, str | None]:
    """Client id/secret from HTTP Basic auth, falling back to the form body."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Basic "):
        try:
            decoded = base64.b64decode(auth_header[6:]).decode()
        except (binascii.Error, UnicodeDecodeError):
            return None, None
        client_id, _, client_secret = decoded.partition(":")
        return unquote(client_id), unquote(client_secret)
    return body.client_id, body.client_secret


def _authenticate_client(
    provider: AuthorizationProvider, client_id: str | None, client_secret: str | None
) -> OAuthClientInformation:
    if not client_id:
        raise UnauthorizedError("client_id is required", error="invalid_client")
    client = provider.get_client(client_id)
    if client.client_secret and client.token_endpoint_auth_method != "none":
        if not client_secret or not hmac.compare_digest(client.client_secret, client_secret):
            raise UnauthorizedError("Invalid client credentials", error="invalid_client")
        expires = client.client_secret_expires_at
        if expires and expires < time.time():
            raise UnauthorizedError("Client secret has expired", error="invalid_client")
    return client


@router.post("/token")
async def token_exchange(
    request: Request,
    body: Annotated[TokenRequest, Form()],
    provider: Provider,
):
    """Exchange an authorization code or refresh token for an access token."""
    client_id, client_secret = _client_credentials(request, body)
    try:
        client = _authenticate_client(provider, client_id, client_secret)
    except UnauthorizedError as exc:
        return _oauth_error("invalid_client", exc.description, status_code=401)

    try:
        if body.grant_type == "authorization_code":
            if not body.code:
                return _oauth_error("invalid_request", "code is required")
            challenge = provider.challenge_for_authorization_code(client, body.code)
            if not verify_code_verifier(body.code_verifier, challenge):
                return _oauth_error("invalid_grant", "code_verifier does not match the challenge")
            credentials = provider.exchange_authorization_code(client, body.code)
            result = TokenResponse(
                access_token=credentials.access_token,
                token_type=credentials.token_type,
                expires_in=max(0, (credentials.access_token_expired_at - now_ms()) // 1000),
                refresh_token=credentials.refresh_token,
                scope=credentials.scope,
            )
        elif body.grant_type == "refresh_token":
            if not body.refresh_token:
                return _oauth_error("invalid_request", "refresh_token is required")
            scopes = body.scope.split() if body.scope else None
            result = TokenResponse(
                **provider.exchange_refresh_token(client, body.refresh_token, scopes)
            )
        else:
            return _oauth_error(
                "unsupported_grant_type", f"Unsupported grant_type: {body.grant_type}"
            )
    except UnauthorizedError as exc:
        return _oauth_error(exc.error, exc.description)

    return JSONResponse(content=result.model_dump(), headers={"Cache-Control": "no-store"})
