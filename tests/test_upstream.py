# Tests for oauth2/upstream.py (token exchange with the connector)
# Created: 2026-10-18

import json
from urllib.parse import parse_qs

import httpx
import pytest

from oauthbridge.connectors.catalog import CONNECTORS, generic_oauth2_connector
from oauthbridge.connectors.models import Connector
from oauthbridge.errors import ConfigError, MappingError, UpstreamHttpError
from oauthbridge.oauth2.upstream import UpstreamExchange

FORM_CONNECTOR = generic_oauth2_connector(
    auth_url="https://provider.example/authorize",
    token_url="https://provider.example/token",
    scopes=["read"],
)


def _exchange(handler):
    return UpstreamExchange(transport=httpx.MockTransport(handler))


async def _run(upstream, connector=FORM_CONNECTOR, code="upstream-code"):
    return await upstream.exchange_code(
        connector, "test-client-id", "test-client-secret", "http://localhost/", code
    )


async def test_form_encoded_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["content-type"]
        seen["accept"] = request.headers["accept"]
        seen["body"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={"access_token": "up-token", "expires_in": 3600})

    creds = await _run(_exchange(handler))

    assert creds.access_token == "up-token"
    assert creds.expires_at is not None
    assert seen["url"] == "https://provider.example/token"
    assert seen["content_type"] == "application/x-www-form-urlencoded"
    assert seen["accept"] == "application/json"
    assert seen["body"] == {
        "client_id": "test-client-id",
        "client_secret": "test-client-secret",
        "code": "upstream-code",
        "redirect_uri": "http://localhost/oauth/callback",
        "grant_type": "authorization_code",
    }


async def test_json_request_for_github():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "access_token": "gho_x",
                "token_type": "bearer",
                "scope": "repo",
                "expires_in": 28800,
                "refresh_token": "ghr_x",
                "refresh_token_expires_in": 15897600,
            },
        )

    creds = await _run(_exchange(handler), CONNECTORS["github"])

    assert seen["content_type"] == "application/json"
    assert seen["body"]["grant_type"] == "authorization_code"
    assert seen["body"]["redirect_uri"] == "http://localhost/oauth/callback"
    assert creds.refresh_token == "ghr_x"
    assert creds.refresh_token_expires_at is not None


async def test_form_encoded_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=b"access_token=abc&scope=read&token_type=bearer",
            headers={"content-type": "application/x-www-form-urlencoded"},
        )

    creds = await _run(_exchange(handler))
    assert creds.access_token == "abc"
    assert creds.scope == "read"


async def test_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    with pytest.raises(UpstreamHttpError) as exc_info:
        await _run(_exchange(handler))
    assert exc_info.value.status_code == 400
    assert "invalid_grant" in exc_info.value.body


async def test_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamHttpError) as exc_info:
        await _run(_exchange(handler))
    assert exc_info.value.status_code == 0


async def test_missing_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "bad_verification_code"})

    with pytest.raises(MappingError):
        await _run(_exchange(handler))


async def test_non_json_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(MappingError):
        await _run(_exchange(handler))


async def test_missing_token_url():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("no request expected")

    with pytest.raises(ConfigError):
        await _run(_exchange(handler), Connector(auth_url="https://x/a"))
