# Built-in connector catalog.
# Created: 2026-10-18
#
# Extensible by adding to CONNECTORS or building one with generic_oauth2_connector().

from __future__ import annotations

from oauthbridge.connectors.models import Connector
from oauthbridge.errors import ConfigError


def generic_oauth2_connector(
    auth_url: str,
    token_url: str,
    scopes: list[str] | tuple[str, ...] | None = None,
    is_form: bool = True,
    extra_auth_params: dict[str, str] | None = None,
    credentials_mapping: str = "standard",
) -> Connector:
    """Build a connector for a standard OAuth 2.0 provider."""
    return Connector(
        auth_url=auth_url,
        token_url=token_url,
        scopes=tuple(scopes or ()),
        is_form=is_form,
        extra_auth_params=dict(extra_auth_params or {}),
        credentials_mapping=credentials_mapping,
    )


CONNECTORS: dict[str, Connector] = {
    "github": Connector(
        auth_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        scopes=("repo",),
        is_form=False,
        credentials_mapping="refresh_expiry",
    ),
    "google": Connector(
        auth_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=("openid", "email", "profile"),
        extra_auth_params={"access_type": "offline", "prompt": "consent"},
    ),
    "google-slides": Connector(
        auth_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=("https://www.googleapis.com/auth/presentations.readonly",),
        extra_auth_params={"prompt": "consent"},
        credentials_mapping="refresh_expiry",
    ),
    "slack": Connector(
        auth_url="https://slack.com/oauth/v2/authorize",
        token_url="https://slack.com/api/oauth.v2.access",
        scopes=("channels:read", "chat:write", "users:read"),
        credentials_mapping="slack_user",
    ),
    "notion": Connector(
        auth_url="https://api.notion.com/v1/oauth/authorize",
        token_url="https://api.notion.com/v1/oauth/token",
        scopes=("read_content",),
    ),
    "jira": Connector(
        auth_url="https://auth.atlassian.com/authorize",
        token_url="https://auth.atlassian.com/oauth/token",
        scopes=("read:jira-work",),
        extra_auth_params={"audience": "api.atlassian.com", "prompt": "consent"},
    ),
    "trello": Connector(
        auth_url="https://trello.com/1/authorize",
        token_url="https://trello.com/1/OAuthGetAccessToken",
        scopes=("read",),
        credentials_mapping="no_expiry",
    ),
    "asana": Connector(
        auth_url="https://app.asana.com/-/oauth_authorize",
        token_url="https://app.asana.com/-/oauth_token",
        scopes=("default",),
    ),
    "monday": Connector(
        auth_url="https://auth.monday.com/oauth2/authorize",
        token_url="https://auth.monday.com/oauth2/token",
        scopes=("boards:read", "me:read"),
        is_form=False,
        credentials_mapping="minimal",
    ),
    "gitlab": Connector(
        auth_url="https://gitlab.com/oauth/authorize",
        token_url="https://gitlab.com/oauth/token",
        scopes=("read_user", "read_repository"),
    ),
    "salesforce": Connector(
        auth_url="https://login.salesforce.com/services/oauth2/authorize",
        token_url="https://login.salesforce.com/services/oauth2/token",
        scopes=("id", "api"),
        credentials_mapping="no_expiry",
    ),
    "figma": Connector(
        auth_url="https://www.figma.com/oauth",
        token_url="https://www.figma.com/api/oauth/token",
        scopes=("file_read",),
    ),
    "zeplin": Connector(
        auth_url="https://app.zeplin.io/oauth/authorize",
        token_url="https://app.zeplin.io/oauth/token",
        scopes=("read",),
    ),
    "amplitude": Connector(
        auth_url="https://amplitude.com/oauth2/authorize",
        token_url="https://amplitude.com/oauth2/access_token",
        scopes=("read",),
    ),
    "discord": generic_oauth2_connector(
        auth_url="https://discord.com/api/oauth2/authorize",
        token_url="https://discord.com/api/oauth2/token",
        scopes=["identify", "email"],
    ),
    "spotify": generic_oauth2_connector(
        auth_url="https://accounts.spotify.com/authorize",
        token_url="https://accounts.spotify.com/api/token",
        scopes=["user-read-private", "user-read-email"],
    ),
    "twitter": generic_oauth2_connector(
        auth_url="https://twitter.com/i/oauth2/authorize",
        token_url="https://api.twitter.com/2/oauth2/token",
        scopes=["tweet.read", "users.read"],
        extra_auth_params={"code_challenge_method": "S256"},
    ),
}


def get_connector(name: str) -> Connector:
    """Look up a built-in connector by name."""
    connector = CONNECTORS.get(name.lower())
    if connector is None:
        raise ConfigError(f"Unknown connector: {name}")
    return connector
