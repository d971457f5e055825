"""Completion of the upstream leg of an authorization.

When the connector redirects back to ``/oauth/callback`` the orchestrator
exchanges the upstream code, mints internal credentials for the code carried in
the state envelope, stores both credential sets in one write and returns the
URL that sends the browser back to the relying party.
"""

from __future__ import annotations

import logging

from oauthbridge.errors import BadRequestError, UnauthorizedError
from oauthbridge.oauth2.models import OAuthClientInformation
from oauthbridge.oauth2.server import AuthorizationProvider, url_with_params
from oauthbridge.oauth2.state import RedirectState, decode_state
from oauthbridge.oauth2.upstream import UpstreamExchange

logger = logging.getLogger(__name__)


class CallbackOrchestrator:
    def __init__(self, provider: AuthorizationProvider, upstream: UpstreamExchange | None = None):
        self.provider = provider
        self.upstream = upstream or UpstreamExchange()

    def _decode(self, state: str) -> RedirectState:
        return decode_state(state, self.provider.state_secret)

    async def handle_callback(
        self,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> str:
        """Finish the flow and return the relying party redirect URL.

        Raises:
            BadRequestError: ``code`` or ``state`` missing.
            MalformedStateError: ``state`` does not verify.
            UnauthorizedError: the envelope names an unknown client or an
                unregistered redirect URI, or the internal code is not live.
            UpstreamHttpError, MappingError, ConfigError: upstream exchange failed.
        """
        if error and state:
            # Upstream refused (e.g. user denied); hand the error back to the relying party
            envelope = self._decode(state)
            self._check_redirect(envelope)
            logger.info("Upstream returned error %r for client %s", error, envelope.client_id)
            return url_with_params(
                envelope.redirect_uri,
                {"error": error, "state": envelope.original_state},
            )

        if not code or not state:
            raise BadRequestError("Missing code or state parameter")

        envelope = self._decode(state)
        client = self._check_redirect(envelope)

        settings = self.provider.settings
        connector_credentials = await self.upstream.exchange_code(
            self.provider.connector,
            settings.client_id,
            settings.client_secret,
            settings.base_url,
            code,
        )

        self.provider.exchange_authorization_code(
            client,
            envelope.code,
            consume=False,
            connector_credentials=connector_credentials,
        )
        logger.info("Authorization completed for client %s", client.client_id)

        return url_with_params(
            envelope.redirect_uri,
            {"code": envelope.code, "state": envelope.original_state},
        )

    def _check_redirect(self, envelope: RedirectState) -> OAuthClientInformation:
        client = self.provider.get_client(envelope.client_id)
        if envelope.redirect_uri not in client.redirect_uris:
            raise UnauthorizedError(
                "Redirect URI is not registered for this client", error="invalid_request"
            )
        return client
