# Internal OAuth2 authorization server chained to an upstream connector.
# Created: 2026-10-18
#
# The provider issues its own codes and tokens. The authorize step does not
# show a consent page; it redirects straight to the connector, carrying the
# internal code inside a signed state envelope.

from __future__ import annotations

import logging
import secrets
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from oauthbridge.config import Settings
from oauthbridge.connectors.mapping import now_ms
from oauthbridge.connectors.models import Connector, ConnectorCredentials
from oauthbridge.errors import ConfigError, UnauthorizedError
from oauthbridge.oauth2.models import AuthInfo, Credentials, OAuthClientInformation
from oauthbridge.oauth2.state import RedirectState, encode_state
from oauthbridge.oauth2.storage import OAuthStorage

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "openid email profile"


def generate_token() -> str:
    """256 bits of entropy, hex-encoded."""
    return secrets.token_hex(32)


def url_with_params(base_url: str, params: dict[str, str | None]) -> str:
    """Set query parameters on *base_url*, skipping empty values.

    Other parameters already on the URL, repeated keys included, are kept.
    """
    parts = urlsplit(base_url)
    updates = {k: v for k, v in params.items() if v}
    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in updates
    ]
    query.extend(updates.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthorizationProvider:
    """OAuth2 authorization server whose authorize step chains to a connector."""

    # PKCE verifiers are checked by the token endpoint, not here.
    skip_local_pkce_validation = True

    def __init__(
        self,
        settings: Settings,
        connector: Connector,
        storage: OAuthStorage | None = None,
    ):
        self.settings = settings
        self.connector = connector
        self.storage = storage or OAuthStorage(settings.storage_path)
        self.token_expiration_time = settings.token_expiration_time
        if settings.state_secret:
            self.state_secret = settings.state_secret
        else:
            logger.warning(
                "No state secret configured; using a per-process key. "
                "Authorizations in flight will not survive a restart."
            )
            self.state_secret = secrets.token_hex(32)

    @property
    def callback_url(self) -> str:
        return self.settings.callback_url

    # -- clients -----------------------------------------------------------

    def register_client(self, client: OAuthClientInformation) -> OAuthClientInformation:
        self.storage.create_client(client)
        logger.info("Registered OAuth client %s", client.client_id)
        return client

    def get_client(self, client_id: str) -> OAuthClientInformation:
        client = self.storage.get_client_by_id(client_id)
        if client is None:
            raise UnauthorizedError("Invalid client ID", error="invalid_client")
        return client

    # -- authorization -----------------------------------------------------

    def authorize(
        self,
        client: OAuthClientInformation,
        redirect_uri: str,
        code_challenge: str | None = None,
        state: str | None = None,
    ) -> str:
        """Issue a one-time code and return the connector's authorize URL.

        The code replaces any earlier live code for the same client.
        """
        if not self.connector.auth_url:
            raise ConfigError("OAuth authorization URL not configured for this connector")

        code = generate_token()
        try:
            self.storage.record_authorization_code(client.client_id, code, code_challenge)
        except KeyError:
            raise UnauthorizedError("Invalid client ID", error="invalid_client") from None

        envelope = RedirectState(
            original_state=state,
            code=code,
            client_id=client.client_id,
            redirect_uri=redirect_uri,
        )
        params: dict[str, str | None] = {
            "client_id": self.settings.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": self.connector.scope_string,
            "access_type": "offline",
            **self.connector.extra_auth_params,
            "state": encode_state(envelope, self.state_secret),
        }
        logger.debug("Authorize redirect for client %s", client.client_id)
        return url_with_params(self.connector.auth_url, params)

    def challenge_for_authorization_code(
        self, client: OAuthClientInformation, authorization_code: str
    ) -> str:
        auth_code = self.storage.get_authorization_code(client.client_id, authorization_code)
        if auth_code is None:
            raise UnauthorizedError("Invalid authorization code")
        return auth_code.code_challenge or ""

    def exchange_authorization_code(
        self,
        client: OAuthClientInformation,
        authorization_code: str,
        *,
        consume: bool = True,
        connector_credentials: ConnectorCredentials | None = None,
    ) -> Credentials:
        """Mint internal credentials for a live code.

        The callback passes ``consume=False`` together with the upstream
        credentials, which marks the code ready. With ``consume`` (the token
        endpoint) only a ready code is accepted, and it cannot be redeemed again.
        """
        auth_code = self.storage.get_authorization_code(client.client_id, authorization_code)
        if auth_code is None:
            raise UnauthorizedError("Invalid authorization code")
        if auth_code.used:
            logger.warning("Replay of consumed authorization code for client %s", client.client_id)
            raise UnauthorizedError("Authorization code already used")
        if consume and not auth_code.ready:
            logger.warning(
                "Authorization code redeemed before the upstream callback for client %s",
                client.client_id,
            )
            raise UnauthorizedError("Authorization has not completed")

        credentials = Credentials(
            access_token=generate_token(),
            refresh_token=generate_token(),
            access_token_expired_at=self._expiry_ms(),
            scope=DEFAULT_SCOPE,
        )
        self.storage.update_credentials(client.client_id, credentials, connector_credentials)
        if consume:
            self.storage.mark_code_used(client.client_id, authorization_code)
        else:
            self.storage.mark_code_ready(client.client_id, authorization_code)
        return credentials

    def exchange_refresh_token(
        self,
        client: OAuthClientInformation,
        refresh_token: str,
        scopes: list[str] | None = None,
    ) -> dict[str, Any]:
        """Issue a new access token; the refresh token itself is kept."""
        record = self.storage.get_by_refresh_token(refresh_token)
        if record is None or record.credentials is None:
            raise UnauthorizedError("Invalid refresh token")
        if record.client.client_id != client.client_id:
            raise UnauthorizedError("Refresh token was issued to another client")

        old = record.credentials
        credentials = Credentials(
            access_token=generate_token(),
            refresh_token=old.refresh_token,
            access_token_expired_at=self._expiry_ms(),
            scope=old.scope,
            token_type=old.token_type,
        )
        self.storage.update_credentials(client.client_id, credentials)

        return {
            "access_token": credentials.access_token,
            "token_type": "Bearer",
            "expires_in": self.token_expiration_time,
            "scope": " ".join(scopes) if scopes else old.scope,
            "refresh_token": refresh_token,
        }

    def verify_access_token(self, token: str) -> AuthInfo:
        """Resolve an access token to its client. Expiry is checked lazily here."""
        record = self.storage.get_by_access_token(token)
        if record is None or record.credentials is None:
            raise UnauthorizedError("Invalid access token", error="invalid_token")
        expires_at = record.credentials.access_token_expired_at
        if expires_at <= now_ms():
            raise UnauthorizedError("Access token expired", error="invalid_token")
        return AuthInfo(
            token=token,
            client_id=record.client.client_id,
            scopes=record.credentials.scope.split(),
            expires_at=expires_at,
            connector_credentials=record.connector_credentials,
        )

    def _expiry_ms(self) -> int:
        return now_ms() + self.token_expiration_time * 1000
