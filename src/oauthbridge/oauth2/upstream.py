# Upstream token exchange against a connector's token endpoint.
# Created: 2026-10-18

from __future__ import annotations

import logging
from typing import Any

import httpx

from oauthbridge.config import CALLBACK_PATH
from oauthbridge.connectors.mapping import map_credentials
from oauthbridge.connectors.models import Connector, ConnectorCredentials
from oauthbridge.errors import ConfigError, MappingError, UpstreamHttpError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


class UpstreamExchange:
    """Authorization-code exchange with the upstream provider.

    Args:
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._transport = transport
        self._timeout = timeout

    async def exchange_code(
        self,
        connector: Connector,
        client_id: str,
        client_secret: str,
        base_url: str,
        code: str,
    ) -> ConnectorCredentials:
        """Exchange an upstream authorization code for connector credentials.

        ``redirect_uri`` is always this server's callback URL, never the
        relying party's.

        Raises:
            ConfigError: the connector has no token URL.
            UpstreamHttpError: non-2xx response or transport failure.
            MappingError: the response has no access token.
        """
        if not connector.token_url:
            raise ConfigError("OAuth token URL not configured for this connector")

        payload = {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": f"{base_url.rstrip('/')}{CALLBACK_PATH}",
            "grant_type": "authorization_code",
        }
        body_kwargs: dict[str, Any] = {"data": payload} if connector.is_form else {"json": payload}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(
                    connector.token_url,
                    headers={"Accept": "application/json"},
                    **body_kwargs,
                )
        except httpx.HTTPError as exc:
            logger.warning("Upstream token request to %s failed: %s", connector.token_url, exc)
            raise UpstreamHttpError(0, str(exc)) from exc

        if not resp.is_success:
            logger.warning(
                "Upstream token endpoint %s returned %d", connector.token_url, resp.status_code
            )
            raise UpstreamHttpError(resp.status_code, resp.text)

        data = _decode_body(resp)
        credentials = map_credentials(data, connector.credentials_mapping)
        logger.info("Upstream tokens obtained from %s", connector.token_url)
        return credentials


def _decode_body(resp: httpx.Response) -> dict[str, Any]:
    # Some providers answer form-encoded even when asked for JSON
    content_type = resp.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(httpx.QueryParams(resp.text))
    try:
        data = resp.json()
    except ValueError as exc:
        raise MappingError("Upstream token response is not JSON") from exc
    if not isinstance(data, dict):
        raise MappingError("Upstream token response is not an object")
    return data
