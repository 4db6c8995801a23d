"""Shared-secret verification for administrative calls."""

from __future__ import annotations

import hmac


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def verify_shared_secret(token: str | None, expected: str | None) -> bool:
    """Constant-time, byte-for-byte comparison. An unset secret never matches."""
    if not token or not expected:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
