"""Leaderboard ranking and monthly season rollover."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.db.models import LeaderboardMeta, LeaderboardReward, User
from mentora.gamification.day_boundary import utcnow

logger = structlog.get_logger()

Board = Literal["total", "seasonal"]

# Number of seasonal winners who receive a reward when a month closes
SEASON_WINNERS = 3


def season_period(dt: datetime) -> str:
    """Monthly season key, e.g. '2026-10'."""
    return f"{dt.year:04d}-{dt.month:02d}"


async def top_users(db: AsyncSession, board: Board = "total", limit: int = 50) -> list[User]:
    """Users ordered by score (desc), earliest account first on ties."""
    column = User.total_score if board == "total" else User.seasonal_score
    result = await db.execute(
        select(User).order_by(column.desc(), User.created_at.asc(), User.uid.asc()).limit(limit)
    )
    return list(result.scalars())


async def roll_over_season(db: AsyncSession, now: datetime | None = None) -> dict[str, object]:
    """Close the previous monthly season if the calendar month changed.

    Idempotent: the meta row is locked and compared with the current period,
    so running twice in the same month is a no-op. On rollover the top
    seasonal scorers get a pending reward and every seasonal score resets.
    """
    now = now or utcnow()
    current = season_period(now)

    result = await db.execute(
        select(LeaderboardMeta).where(LeaderboardMeta.key == "global").with_for_update()
    )
    meta = result.scalar_one_or_none()
    if meta is None:
        # First run: start tracking without awarding or resetting anything
        db.add(LeaderboardMeta(key="global", current_period=current, updated_at=now))
        await db.commit()
        logger.info("season_bootstrapped", period=current)
        return {"rolled_over": False, "period": current, "winners": []}

    if meta.current_period == current:
        await db.commit()
        return {"rolled_over": False, "period": current, "winners": []}

    previous = meta.current_period
    winners = await top_users(db, "seasonal", SEASON_WINNERS)
    awarded: list[str] = []
    for rank, user in enumerate(winners, start=1):
        if user.seasonal_score <= 0:
            continue
        db.add(LeaderboardReward(
            user_id=user.uid,
            period=previous,
            rank=rank,
            score=user.seasonal_score,
            status="pending",
            subscription_months=1,
            created_at=now,
        ))
        awarded.append(user.uid)

    await db.execute(update(User).values(seasonal_score=0).execution_options(synchronize_session=False))
    meta.current_period = current
    meta.updated_at = now
    await db.commit()

    logger.info("season_rolled_over", previous=previous, period=current, winners=awarded)
    return {"rolled_over": True, "period": current, "previous_period": previous, "winners": awarded}
