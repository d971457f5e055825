# OAuth2 data models.
# Created: 2026-10-18

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from oauthbridge.connectors.models import ConnectorCredentials


class OAuthClientInformation(BaseModel):
    """Registered relying-party client (RFC 7591 client information)."""

    client_id: str
    client_secret: str | None = None
    client_name: str | None = None
    redirect_uris: list[str] = Field(default_factory=list)
    token_endpoint_auth_method: str = "client_secret_post"
    grant_types: list[str] = Field(default_factory=lambda: ["authorization_code", "refresh_token"])
    response_types: list[str] = Field(default_factory=lambda: ["code"])
    scope: str | None = None
    client_id_issued_at: int | None = None
    client_secret_expires_at: int | None = None


@dataclass
class AuthorizationCode:
    """One-time authorization code issued to a client."""

    client_id: str
    code: str
    code_challenge: str | None = None
    created_at_ms: int = 0
    ready: bool = False  # set once the upstream leg has completed
    used: bool = False


@dataclass
class Credentials:
    """Internal access + refresh token pair."""

    access_token: str
    refresh_token: str
    access_token_expired_at: int  # epoch millis
    scope: str
    token_type: str = "Bearer"


@dataclass
class ClientRecord:
    """Everything stored for one client id."""

    client: OAuthClientInformation
    code: AuthorizationCode | None = None
    credentials: Credentials | None = None
    connector_credentials: ConnectorCredentials | None = None


@dataclass
class AuthInfo:
    """Result of verifying an internal access token."""

    token: str
    client_id: str
    scopes: list[str] = field(default_factory=list)
    expires_at: int | None = None  # epoch millis
    connector_credentials: ConnectorCredentials | None = None

    @property
    def connector_token(self) -> str | None:
        if self.connector_credentials is None:
            return None
        return self.connector_credentials.access_token
