# PKCE (RFC 7636) S256 helpers.

from __future__ import annotations

import base64
import hashlib
import hmac


def s256_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding."""
    return (
        base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )


def verify_code_verifier(code_verifier: str | None, code_challenge: str) -> bool:
    """Check a verifier against a stored challenge.

    An empty challenge means PKCE was not used for this code, so anything passes.
    """
    if not code_challenge:
        return True
    if not code_verifier:
        return False
    return hmac.compare_digest(s256_challenge(code_verifier), code_challenge)
