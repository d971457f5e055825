# OAuth2 request/response schemas.
# Created: 2026-10-18

from __future__ import annotations

from pydantic import BaseModel, Field


class ClientRegistrationRequest(BaseModel):
    """Dynamic client registration request (RFC 7591)."""

    redirect_uris: list[str] = Field(..., min_length=1)
    client_name: str | None = None
    token_endpoint_auth_method: str = Field(
        "client_secret_post", pattern="^(none|client_secret_post|client_secret_basic)$"
    )
    grant_types: list[str] = Field(default_factory=lambda: ["authorization_code", "refresh_token"])
    response_types: list[str] = Field(default_factory=lambda: ["code"])
    scope: str | None = None


class TokenRequest(BaseModel):
    """Token exchange or refresh request (form-encoded)."""

    grant_type: str
    code: str | None = None
    code_verifier: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None
    scope: str | None = None


class TokenResponse(BaseModel):
    """OAuth2 token response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
    scope: str


class AuthorizationServerMetadata(BaseModel):
    """RFC 8414 authorization server metadata."""

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    registration_endpoint: str
    response_types_supported: list[str] = ["code"]
    grant_types_supported: list[str] = ["authorization_code", "refresh_token"]
    code_challenge_methods_supported: list[str] = ["S256"]
    token_endpoint_auth_methods_supported: list[str] = [
        "client_secret_post",
        "client_secret_basic",
        "none",
    ]
