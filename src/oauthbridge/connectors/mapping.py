"""Credential mapping strategies.

A connector names one of a closed set of strategies; each turns a raw token
response into :class:`ConnectorCredentials`. Expiry arithmetic is done in
epoch milliseconds and rendered as ISO 8601 UTC text.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from oauthbridge.connectors.models import ConnectorCredentials
from oauthbridge.errors import ConfigError, MappingError

DEFAULT_MAPPING = "standard"

_Strategy = Callable[[Mapping[str, Any], int], dict[str, Any]]


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def iso_from_millis(millis: int) -> str:
    """Format epoch milliseconds as ISO 8601 UTC with millisecond precision."""
    dt = datetime.fromtimestamp(millis / 1000, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _expiry(now: int, seconds: Any) -> str | None:
    if seconds is None or seconds == "":
        return None
    try:
        return iso_from_millis(now + int(float(seconds) * 1000))
    except (TypeError, ValueError, OverflowError, OSError):
        # Non-numeric, NaN, infinite or past the representable date range
        raise MappingError(f"Invalid expiry value: {seconds!r}") from None


def _standard(data: Mapping[str, Any], now: int) -> dict[str, Any]:
    return {
        "access_token": data.get("access_token"),
        "expires_at": _expiry(now, data.get("expires_in")),
        "refresh_token": data.get("refresh_token"),
        "refresh_token_expires_at": None,
        "scope": data.get("scope"),
        "token_type": data.get("token_type"),
    }


def _refresh_expiry(data: Mapping[str, Any], now: int) -> dict[str, Any]:
    fields = _standard(data, now)
    fields["refresh_token_expires_at"] = _expiry(now, data.get("refresh_token_expires_in"))
    return fields


def _no_expiry(data: Mapping[str, Any], now: int) -> dict[str, Any]:
    fields = _standard(data, now)
    fields["expires_at"] = None
    return fields


def _minimal(data: Mapping[str, Any], now: int) -> dict[str, Any]:
    return {"access_token": data.get("access_token"), "scope": data.get("scope")}


def _slack_user(data: Mapping[str, Any], now: int) -> dict[str, Any]:
    # Slack puts the user token under authed_user, not at the top level
    user = data.get("authed_user") or {}
    if not isinstance(user, Mapping):
        raise MappingError("authed_user is not an object")
    return {"access_token": user.get("access_token"), "scope": user.get("scope")}


STRATEGIES: dict[str, _Strategy] = {
    "standard": _standard,
    "refresh_expiry": _refresh_expiry,
    "no_expiry": _no_expiry,
    "minimal": _minimal,
    "slack_user": _slack_user,
}


def map_credentials(
    token_response: Mapping[str, Any],
    mapping: str | None = None,
    *,
    now: int | None = None,
) -> ConnectorCredentials:
    """Map a provider token response to :class:`ConnectorCredentials`.

    Args:
        token_response: Decoded JSON (or form) body from the token endpoint.
        mapping: Strategy name; ``None`` selects the default mapping.
        now: Reference time in epoch milliseconds (defaults to the clock).

    Raises:
        ConfigError: unknown strategy name.
        MappingError: the mapped record has no access token.
    """
    name = mapping or DEFAULT_MAPPING
    strategy = STRATEGIES.get(name)
    if strategy is None:
        raise ConfigError(f"Unknown credentials mapping: {name}")

    fields = strategy(token_response, now_ms() if now is None else now)
    access_token = fields.get("access_token")
    if not access_token or not isinstance(access_token, str):
        raise MappingError("Token response has no access_token")

    return ConnectorCredentials(
        access_token=access_token,
        expires_at=fields.get("expires_at"),
        refresh_token=fields.get("refresh_token"),
        refresh_token_expires_at=fields.get("refresh_token_expires_at"),
        scope=fields.get("scope"),
        token_type=fields.get("token_type") or "Bearer",
    )
