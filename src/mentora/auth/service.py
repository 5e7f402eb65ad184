"""User lookup, first-login provisioning and role checks."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import get_settings
from mentora.db.models import User

logger = structlog.get_logger()


async def get_user_by_uid(db: AsyncSession, uid: str) -> User | None:
    """Fetch a user by identity key."""
    result = await db.execute(select(User).where(User.uid == uid))
    return result.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, uid: str, email: str | None = None) -> tuple[User, bool]:
    """
    Get the user for an authenticated identity, creating it on first login.

    Returns:
        Tuple of (user, created).
    """
    user = await get_user_by_uid(db, uid)
    if user is not None:
        if email and not user.email:
            user.email = email
            await db.commit()
        return user, False

    user = User(
        uid=uid,
        email=email,
        roles=[],
        claimed_courses=[],
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.commit()
    logger.info("user_created", user_id=uid)
    return user, True


def user_roles(user: User) -> set[str]:
    """Union of the legacy single `role` field and the `roles` list."""
    roles = {r for r in (user.roles or []) if isinstance(r, str)}
    if user.role:
        roles.add(user.role)
    return roles


def is_admin(user: User) -> bool:
    return bool(user_roles(user) & set(get_settings().admin_roles))


def is_elevated(user: User) -> bool:
    return bool(user_roles(user) & set(get_settings().elevated_roles))


def is_grader(user: User, token_email: str | None = None) -> bool:
    """Graders hold an admin role or an identity on the email allow-list."""
    allowed = {e.strip().lower() for e in get_settings().grader_emails if e.strip()}
    email = (token_email or user.email or "").lower()
    if email and email in allowed:
        return True
    return is_admin(user)
