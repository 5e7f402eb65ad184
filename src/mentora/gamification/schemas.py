"""Pydantic models for streak and leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from mentora.schemas import CamelModel


# --- Streak ---


class ClaimResponse(CamelModel):
    already_claimed: bool
    next_available_at: datetime
    streak_count: int
    longest_streak: int
    total_score: int
    reward: int


class StreakResponse(CamelModel):
    streak_count: int
    longest_streak: int
    last_claim_at: datetime | None = None
    total_score: int
    seasonal_score: int
    total_claims: int
    claimed_today: bool
    next_available_at: datetime


# --- Leaderboard ---


class LeaderboardEntry(CamelModel):
    rank: int
    uid: str
    display_name: str | None = None
    score: int
    streak_count: int


class LeaderboardResponse(CamelModel):
    board: str
    entries: list[LeaderboardEntry]


class SeasonRolloverResponse(CamelModel):
    rolled_over: bool
    period: str
    previous_period: str | None = None
    winners: list[str] = []
