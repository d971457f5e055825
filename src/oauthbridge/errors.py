# Error taxonomy for the authorization bridge.
# Created: 2026-10-18
#
# Each error carries an OAuth-style ``error`` code so the HTTP layer can turn it
# into a response without inspecting the exception type twice.

from __future__ import annotations

__all__ = [
    "OAuthBridgeError",
    "ConfigError",
    "UnauthorizedError",
    "UpstreamHttpError",
    "MappingError",
    "BadRequestError",
    "MalformedStateError",
]


class OAuthBridgeError(Exception):
    """Base class for all bridge errors."""

    error = "server_error"

    def __init__(self, message: str = "", *, error: str | None = None):
        super().__init__(message)
        if error is not None:
            self.error = error

    @property
    def description(self) -> str:
        return str(self) or self.error


class ConfigError(OAuthBridgeError):
    """A connector or server setting is missing or invalid."""

    error = "server_error"


class UnauthorizedError(OAuthBridgeError):
    """Unknown client, code, access token or refresh token."""

    error = "invalid_grant"


class UpstreamHttpError(OAuthBridgeError):
    """The connector's token endpoint rejected the exchange."""

    error = "temporarily_unavailable"

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Upstream token endpoint returned {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class MappingError(OAuthBridgeError):
    """The upstream token response could not be mapped to credentials."""

    error = "server_error"


class BadRequestError(OAuthBridgeError):
    """A request is missing required parameters."""

    error = "invalid_request"


class MalformedStateError(BadRequestError):
    """The ``state`` parameter could not be decoded or verified."""
