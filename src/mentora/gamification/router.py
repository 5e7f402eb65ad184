"""Daily claim, streak and leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.auth.dependencies import get_current_user, require_admin
from mentora.db.models import User
from mentora.dependencies import get_db, get_now
from mentora.gamification.day_boundary import day_diff_utc, next_utc_day
from mentora.gamification.leaderboard_service import Board, roll_over_season, top_users
from mentora.gamification.schemas import (
    ClaimResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    SeasonRolloverResponse,
    StreakResponse,
)
from mentora.gamification.streak_service import apply_daily_claim, get_streak_state

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.post("/streak/claim", response_model=ClaimResponse)
async def claim_daily(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Claim today's streak reward (once per UTC calendar day)."""
    outcome = await apply_daily_claim(db, user.uid, now)
    return ClaimResponse(
        already_claimed=outcome.already_claimed,
        next_available_at=outcome.next_available_at,
        streak_count=outcome.state.streak_count,
        longest_streak=outcome.state.longest_streak,
        total_score=outcome.state.total_score,
        reward=outcome.reward,
    )


@router.get("/streak", response_model=StreakResponse)
async def get_streak(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Current streak and whether today's claim is still available."""
    state = await get_streak_state(db, user.uid)
    claimed_today = state.last_claim_at is not None and day_diff_utc(now, state.last_claim_at) <= 0
    return StreakResponse(
        streak_count=state.streak_count,
        longest_streak=state.longest_streak,
        last_claim_at=state.last_claim_at,
        total_score=state.total_score,
        seasonal_score=state.seasonal_score,
        total_claims=state.total_claims,
        claimed_today=claimed_today,
        next_available_at=next_utc_day(now) if claimed_today else now,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    board: Board = Query("total"),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Top users by overall or current-season score."""
    users = await top_users(db, board, limit)
    return LeaderboardResponse(
        board=board,
        entries=[
            LeaderboardEntry(
                rank=i,
                uid=u.uid,
                display_name=u.display_name,
                score=u.total_score if board == "total" else u.seasonal_score,
                streak_count=u.streak_count,
            )
            for i, u in enumerate(users, start=1)
        ],
    )


@router.post("/admin/leaderboard/rollover", response_model=SeasonRolloverResponse)
async def rollover_season(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Close the previous monthly season if the month changed (idempotent)."""
    return SeasonRolloverResponse(**await roll_over_season(db, now))
