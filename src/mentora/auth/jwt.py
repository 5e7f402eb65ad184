"""
Bearer identity tokens.

Tokens are issued by the auth provider and carry the opaque user id in `sub`
plus an optional `email` claim. `create_access_token` mints compatible tokens
for operators and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from mentora.config import get_settings


def create_access_token(uid: str, email: str | None = None, *, expires_in: timedelta | None = None) -> str:
    """
    Create a signed access token.

    Args:
        uid: The user's opaque identity key.
        email: The user's email, used for grader allow-listing.
        expires_in: Lifetime override; defaults to the configured expiry.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_in or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": uid,
        "iat": now,
        "exp": now + lifetime,
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or not an access token.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type", "access") != "access":
        msg = f"Expected an access token, got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)
    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        msg = "Token subject is missing"
        raise jwt.InvalidTokenError(msg)

    return payload
