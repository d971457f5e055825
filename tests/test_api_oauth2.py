# Tests for the OAuth2 HTTP surface: register, authorize, callback, token, /mcp.
# Created: 2026-10-18

import base64
import hashlib
import secrets
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from oauthbridge.api.serve import create_api_app
from oauthbridge.config import Settings
from oauthbridge.connectors.catalog import generic_oauth2_connector
from oauthbridge.oauth2.state import decode_state
from oauthbridge.oauth2.storage import OAuthStorage
from oauthbridge.oauth2.upstream import UpstreamExchange

REDIRECT_URI = "https://app.example/cb"

CONNECTOR = generic_oauth2_connector(
    auth_url="https://provider.example/authorize",
    token_url="https://provider.example/token",
    scopes=["read"],
)


def _make_pkce_pair():
    """Generate a PKCE code_verifier and code_challenge pair."""
    verifier = secrets.token_urlsafe(32)
    challenge = (
        base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )
    return verifier, challenge


def _query(url):
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


class UpstreamStub:
    def __init__(self):
        self.status = 200
        self.calls = 0

    def __call__(self, request):
        self.calls += 1
        if self.status != 200:
            return httpx.Response(self.status, text="upstream unavailable")
        return httpx.Response(
            200, json={"access_token": "upstream-token", "expires_in": 3600, "scope": "read"}
        )


@pytest.fixture
def upstream_stub():
    return UpstreamStub()


@pytest.fixture
def storage():
    return OAuthStorage()


@pytest.fixture
def test_app(storage, upstream_stub):
    settings = Settings(
        base_url="http://bridge.local",
        client_id="bridge-id",
        client_secret="bridge-secret",
        state_secret="test-state-secret",
    )
    return create_api_app(
        settings,
        connector=CONNECTOR,
        storage=storage,
        upstream=UpstreamExchange(transport=httpx.MockTransport(upstream_stub)),
    )


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


@pytest.fixture
def registered(client):
    resp = client.post(
        "/register", json={"redirect_uris": [REDIRECT_URI], "client_name": "Test App"}
    )
    assert resp.status_code == 201
    return resp.json()


def _authorize(client, registered, challenge, state="s1"):
    resp = client.get(
        "/authorize",
        params={
            "client_id": registered["client_id"],
            "redirect_uri": REDIRECT_URI,
            "response_type": "code",
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "state": state,
        },
        follow_redirects=False,
    )
    assert resp.status_code == 302
    return resp.headers["location"]


def _complete(client, registered, challenge):
    """Run authorize and the upstream callback; return the relying party code."""
    location = _authorize(client, registered, challenge)
    resp = client.get(
        "/oauth/callback",
        params={"code": "upstream-code", "state": _query(location)["state"]},
        follow_redirects=False,
    )
    assert resp.status_code == 302
    return _query(resp.headers["location"])["code"]


def _token(client, registered, code, verifier):
    return client.post(
        "/token",
        data={
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": verifier,
            "client_id": registered["client_id"],
            "client_secret": registered["client_secret"],
        },
    )


# ===================== Registration and metadata =====================


class TestRegistration:
    def test_register_assigns_credentials(self, registered):
        assert registered["client_id"]
        assert registered["client_secret"]
        assert registered["client_id_issued_at"] > 0
        assert registered["redirect_uris"] == [REDIRECT_URI]
        assert registered["client_name"] == "Test App"

    def test_public_client_has_no_secret(self, client):
        resp = client.post(
            "/register",
            json={"redirect_uris": [REDIRECT_URI], "token_endpoint_auth_method": "none"},
        )
        assert resp.status_code == 201
        assert resp.json()["client_secret"] is None

    def test_redirect_uris_required(self, client):
        resp = client.post("/register", json={"redirect_uris": []})
        assert resp.status_code == 422

    def test_metadata(self, client):
        resp = client.get("/.well-known/oauth-authorization-server")
        assert resp.status_code == 200
        data = resp.json()
        assert data["issuer"] == "http://bridge.local"
        assert data["token_endpoint"] == "http://bridge.local/token"
        assert data["code_challenge_methods_supported"] == ["S256"]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "connector": "custom"}


# ===================== Authorize =====================


class TestAuthorize:
    def test_redirects_to_connector(self, client, registered):
        _, challenge = _make_pkce_pair()
        location = _authorize(client, registered, challenge)
        params = _query(location)
        assert location.startswith("https://provider.example/authorize?")
        assert params["client_id"] == "bridge-id"
        assert params["redirect_uri"] == "http://bridge.local/oauth/callback"
        assert params["scope"] == "read"
        assert params["access_type"] == "offline"

    def test_unknown_client(self, client):
        resp = client.get(
            "/authorize", params={"client_id": "nope"}, follow_redirects=False
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Unknown client_id"

    def test_unregistered_redirect_uri(self, client, registered):
        resp = client.get(
            "/authorize",
            params={"client_id": registered["client_id"], "redirect_uri": "https://evil/cb"},
            follow_redirects=False,
        )
        assert resp.status_code == 400

    def test_single_redirect_uri_is_default(self, client, registered):
        resp = client.get(
            "/authorize", params={"client_id": registered["client_id"]}, follow_redirects=False
        )
        assert resp.status_code == 302
        assert resp.headers["location"].startswith("https://provider.example/authorize")

    def test_unsupported_response_type(self, client, registered):
        resp = client.get(
            "/authorize",
            params={
                "client_id": registered["client_id"],
                "response_type": "token",
                "state": "s1",
            },
            follow_redirects=False,
        )
        assert resp.status_code == 302
        assert resp.headers["location"] == (
            f"{REDIRECT_URI}?error=unsupported_response_type&state=s1"
        )

    def test_plain_challenge_method_rejected(self, client, registered):
        resp = client.get(
            "/authorize",
            params={
                "client_id": registered["client_id"],
                "code_challenge": "abc",
                "code_challenge_method": "plain",
            },
            follow_redirects=False,
        )
        assert resp.status_code == 302
        assert _query(resp.headers["location"])["error"] == "invalid_request"


# ===================== Callback =====================


class TestCallback:
    def test_redirects_back_with_code_and_state(self, client, registered):
        _, challenge = _make_pkce_pair()
        location = _authorize(client, registered, challenge)
        resp = client.get(
            "/oauth/callback",
            params={"code": "upstream-code", "state": _query(location)["state"]},
            follow_redirects=False,
        )
        assert resp.status_code == 302
        back = resp.headers["location"]
        assert back.startswith(f"{REDIRECT_URI}?code=")
        assert _query(back)["state"] == "s1"

    def test_missing_code(self, client):
        resp = client.get("/oauth/callback", params={"state": "x"}, follow_redirects=False)
        assert resp.status_code == 400

    def test_tampered_state(self, client, registered):
        _, challenge = _make_pkce_pair()
        state = _query(_authorize(client, registered, challenge))["state"]
        resp = client.get(
            "/oauth/callback",
            params={"code": "upstream-code", "state": state + "0"},
            follow_redirects=False,
        )
        assert resp.status_code == 400

    def test_upstream_failure_is_generic_500(self, client, registered, upstream_stub):
        upstream_stub.status = 503
        _, challenge = _make_pkce_pair()
        state = _query(_authorize(client, registered, challenge))["state"]
        resp = client.get(
            "/oauth/callback",
            params={"code": "upstream-code", "state": state},
            follow_redirects=False,
        )
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Authorization failed"

    def test_upstream_denial_forwarded(self, client, registered):
        _, challenge = _make_pkce_pair()
        state = _query(_authorize(client, registered, challenge))["state"]
        resp = client.get(
            "/oauth/callback",
            params={"error": "access_denied", "state": state},
            follow_redirects=False,
        )
        assert resp.status_code == 302
        assert resp.headers["location"] == f"{REDIRECT_URI}?error=access_denied&state=s1"


# ===================== Token endpoint =====================


class TestTokenEndpoint:
    def test_full_flow(self, client, registered):
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)

        resp = _token(client, registered, code, verifier)
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        data = resp.json()
        assert data["token_type"] == "Bearer"
        assert 0 < data["expires_in"] <= 3600
        assert data["scope"] == "openid email profile"
        assert data["access_token"] != data["refresh_token"]

    def test_code_cannot_be_replayed(self, client, registered):
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        assert _token(client, registered, code, verifier).status_code == 200

        resp = _token(client, registered, code, verifier)
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_grant"

    def test_wrong_verifier(self, client, registered):
        _, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        resp = _token(client, registered, code, "not-the-verifier")
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_grant"

    def test_unknown_code(self, client, registered):
        resp = _token(client, registered, "bogus", "verifier")
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_grant"

    def test_wrong_client_secret(self, client, registered):
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        resp = _token(client, {**registered, "client_secret": "wrong"}, code, verifier)
        assert resp.status_code == 401
        assert resp.json()["error"] == "invalid_client"

    def test_unknown_client(self, client):
        resp = client.post(
            "/token",
            data={"grant_type": "authorization_code", "code": "x", "client_id": "nope"},
        )
        assert resp.status_code == 401
        assert resp.json()["error"] == "invalid_client"

    def test_basic_auth(self, client, registered):
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        resp = client.post(
            "/token",
            data={"grant_type": "authorization_code", "code": code, "code_verifier": verifier},
            auth=(registered["client_id"], registered["client_secret"]),
        )
        assert resp.status_code == 200

    def test_unsupported_grant_type(self, client, registered):
        resp = client.post(
            "/token",
            data={
                "grant_type": "password",
                "client_id": registered["client_id"],
                "client_secret": registered["client_secret"],
            },
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "unsupported_grant_type"

    def test_code_redeemed_before_callback(self, client, upstream_stub):
        public = client.post(
            "/register",
            json={"redirect_uris": [REDIRECT_URI], "token_endpoint_auth_method": "none"},
        ).json()
        resp = client.get(
            "/authorize",
            params={"client_id": public["client_id"], "state": "s1"},
            follow_redirects=False,
        )
        state = _query(resp.headers["location"])["state"]
        code = decode_state(state, "test-state-secret").code

        resp = client.post(
            "/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": public["client_id"],
            },
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_grant"
        assert upstream_stub.calls == 0

        # The same code works once the upstream leg has completed
        resp = client.get(
            "/oauth/callback",
            params={"code": "upstream-code", "state": state},
            follow_redirects=False,
        )
        assert _query(resp.headers["location"])["code"] == code
        resp = client.post(
            "/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": public["client_id"],
            },
        )
        assert resp.status_code == 200
        assert upstream_stub.calls == 1

    def test_refresh(self, client, registered):
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        first = _token(client, registered, code, verifier).json()

        resp = client.post(
            "/token",
            data={
                "grant_type": "refresh_token",
                "refresh_token": first["refresh_token"],
                "client_id": registered["client_id"],
                "client_secret": registered["client_secret"],
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["refresh_token"] == first["refresh_token"]
        assert data["access_token"] != first["access_token"]
        assert data["expires_in"] == 3600

        # The old access token is no longer resolvable
        old = client.get("/mcp", headers={"Authorization": f"Bearer {first['access_token']}"})
        assert old.status_code == 401

    def test_refresh_unknown_token(self, client, registered):
        resp = client.post(
            "/token",
            data={
                "grant_type": "refresh_token",
                "refresh_token": "bogus",
                "client_id": registered["client_id"],
                "client_secret": registered["client_secret"],
            },
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_grant"


# ===================== Protected resource =====================


class TestProtectedResource:
    def test_requires_bearer(self, client):
        resp = client.get("/mcp")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        resp = client.post("/mcp", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401
        assert "invalid_token" in resp.headers["www-authenticate"]

    def test_default_handler(self, client, registered):
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        token = _token(client, registered, code, verifier).json()["access_token"]

        resp = client.post("/mcp", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["client_id"] == registered["client_id"]
        assert data["connector_connected"] is True

    def test_custom_handler(self, test_app, client, registered):
        seen = {}

        async def handler(request, auth):
            seen["token"] = auth.connector_token
            return PlainTextResponse("hello")

        test_app.state.resource_handler = handler
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        token = _token(client, registered, code, verifier).json()["access_token"]

        resp = client.get("/mcp", headers={"Authorization": f"Bearer {token}"})
        assert resp.text == "hello"
        assert seen["token"] == "upstream-token"

    def test_handler_failure(self, test_app, client, registered):
        async def handler(request, auth):
            raise RuntimeError("boom")

        test_app.state.resource_handler = handler
        verifier, challenge = _make_pkce_pair()
        code = _complete(client, registered, challenge)
        token = _token(client, registered, code, verifier).json()["access_token"]

        resp = client.get("/mcp", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 500
