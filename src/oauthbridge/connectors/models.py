# Upstream connector data models.
# Created: 2026-10-18

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Connector:
    """Static description of an upstream OAuth 2.0 provider."""

    auth_url: str = ""
    token_url: str = ""
    scopes: tuple[str, ...] = ()
    is_form: bool = True
    extra_auth_params: dict[str, str] = field(default_factory=dict)
    credentials_mapping: str = "standard"

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)


@dataclass
class ConnectorCredentials:
    """Normalized upstream credentials produced from a token response."""

    access_token: str
    expires_at: str | None = None  # ISO 8601
    refresh_token: str | None = None
    refresh_token_expires_at: str | None = None  # ISO 8601
    scope: str | None = None
    token_type: str = "Bearer"
