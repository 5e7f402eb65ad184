"""Shared FastAPI dependencies."""

from datetime import datetime

from mentora.database import get_session as _get_session
from mentora.gamification.day_boundary import utcnow

get_db = _get_session


async def get_now() -> datetime:
    """Request clock. Overridden in tests to pin the UTC day."""
    return utcnow()
