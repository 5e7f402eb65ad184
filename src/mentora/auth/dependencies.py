"""FastAPI authentication dependencies."""

from __future__ import annotations

from typing import Any

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.auth.jwt import verify_token
from mentora.auth.service import get_or_create_user, is_admin, is_grader
from mentora.database import get_session
from mentora.db.models import User
from mentora.errors import Forbidden, Unauthorized

# auto_error=False: a missing header is a 401 with our error body, not a bare 403
_bearer = HTTPBearer(auto_error=False)


async def get_token_payload(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> dict[str, Any]:
    """Decode the bearer token; 401 when missing or invalid."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Missing Authorization header")
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise Unauthorized(str(e) or "Invalid token") from e


async def get_current_user(
    payload: dict[str, Any] = Depends(get_token_payload),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Return the User for the bearer token.

    The account row is created on first authentication.
    """
    user, _ = await get_or_create_user(db, payload["sub"], payload.get("email"))
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Admin back-office actions (request approvals, season rollover)."""
    if not is_admin(user):
        raise Forbidden("Forbidden")
    return user


async def require_grader(
    user: User = Depends(get_current_user),
    payload: dict[str, Any] = Depends(get_token_payload),
) -> User:
    """Assignment reviewers: admin roles or allow-listed emails."""
    if not is_grader(user, payload.get("email")):
        raise Forbidden("Forbidden")
    return user
