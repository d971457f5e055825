"""Signed redirect state envelopes.

Envelope format: ``{base64url(json)}.{hex_hmac}``

The JSON object carries ``originalState``, ``code``, ``clientId`` and
``redirectUri`` through the upstream provider and back to the callback. It is
never stored server-side, so the HMAC is the only thing stopping a forged
``state`` from steering credentials to another redirect URI.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass

from oauthbridge.errors import MalformedStateError

__all__ = ["RedirectState", "encode_state", "decode_state"]


@dataclass(frozen=True)
class RedirectState:
    original_state: str | None
    code: str
    client_id: str
    redirect_uri: str

    def to_dict(self) -> dict[str, str | None]:
        return {
            "originalState": self.original_state,
            "code": self.code,
            "clientId": self.client_id,
            "redirectUri": self.redirect_uri,
        }


def encode_state(envelope: RedirectState, secret: str) -> str:
    payload = json.dumps(envelope.to_dict(), separators=(",", ":")).encode()
    body = base64.urlsafe_b64encode(payload).rstrip(b"=").decode()
    return f"{body}.{_sign(secret, body)}"


def decode_state(value: str, secret: str) -> RedirectState:
    """Verify and decode a state envelope. Raises MalformedStateError."""
    body, sep, sig = value.rpartition(".")
    if not sep or not body:
        raise MalformedStateError("State is not a signed envelope")
    if not hmac.compare_digest(sig, _sign(secret, body)):
        raise MalformedStateError("State signature mismatch")

    try:
        padded = body + "=" * (-len(body) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError) as exc:
        raise MalformedStateError("State payload is not valid JSON") from exc

    if not isinstance(data, dict):
        raise MalformedStateError("State payload is not an object")
    code, client_id, redirect_uri = data.get("code"), data.get("clientId"), data.get("redirectUri")
    if not (isinstance(code, str) and isinstance(client_id, str) and isinstance(redirect_uri, str)):
        raise MalformedStateError("State payload is missing fields")
    original = data.get("originalState")
    if original is not None and not isinstance(original, str):
        raise MalformedStateError("originalState must be a string")

    return RedirectState(
        original_state=original,
        code=code,
        client_id=client_id,
        redirect_uri=redirect_uri,
    )


def _sign(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()
