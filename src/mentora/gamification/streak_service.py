"""Daily claim: streak accrual and the guarded write that persists it."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import get_settings
from mentora.db.models import ScoreLedger, User
from mentora.errors import NotFound
from mentora.gamification.day_boundary import day_diff_utc, next_utc_day, start_of_utc_day, utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class StreakPolicy:
    """Reward = base_reward + min(streak, bonus_cap)."""

    base_reward: int = 5
    bonus_cap: int = 10

    @classmethod
    def from_settings(cls) -> StreakPolicy:
        settings = get_settings()
        return cls(base_reward=settings.streak_base_reward, bonus_cap=settings.streak_bonus_cap)

    def reward_for(self, streak: int) -> int:
        return self.base_reward + min(streak, self.bonus_cap)


@dataclass(frozen=True)
class StreakState:
    streak_count: int = 0
    longest_streak: int = 0
    last_claim_at: datetime | None = None
    total_score: int = 0
    seasonal_score: int = 0
    total_claims: int = 0

    @classmethod
    def from_user(cls, user: User) -> StreakState:
        return cls(
            streak_count=user.streak_count or 0,
            longest_streak=user.longest_streak or 0,
            last_claim_at=user.last_claim_at,
            total_score=user.total_score or 0,
            seasonal_score=user.seasonal_score or 0,
            total_claims=user.total_claims or 0,
        )


@dataclass(frozen=True)
class ClaimOutcome:
    already_claimed: bool
    state: StreakState
    reward: int
    next_available_at: datetime


def claim(now: datetime, state: StreakState, policy: StreakPolicy | None = None) -> ClaimOutcome:
    """Evaluate one daily claim. Pure: no I/O, no clock reads.

    At most one claim succeeds per UTC calendar day. A previous claim dated
    in a later UTC day than `now` (clock skew) is also rejected.
    """
    policy = policy or StreakPolicy()
    next_at = next_utc_day(now)

    diff = day_diff_utc(now, state.last_claim_at) if state.last_claim_at is not None else None
    if diff is not None and diff <= 0:
        return ClaimOutcome(already_claimed=True, state=state, reward=0, next_available_at=next_at)

    new_streak = state.streak_count + 1 if diff == 1 else 1
    reward = policy.reward_for(new_streak)
    new_state = replace(
        state,
        streak_count=new_streak,
        longest_streak=max(new_streak, state.longest_streak),
        last_claim_at=now,
        total_score=state.total_score + reward,
        seasonal_score=state.seasonal_score + reward,
        total_claims=state.total_claims + 1,
    )
    return ClaimOutcome(already_claimed=False, state=new_state, reward=reward, next_available_at=next_at)


async def _read_state(db: AsyncSession, user_id: str) -> StreakState:
    result = await db.execute(
        select(User).where(User.uid == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return StreakState.from_user(user)


async def apply_daily_claim(
    db: AsyncSession,
    user_id: str,
    now: datetime | None = None,
    policy: StreakPolicy | None = None,
    max_retries: int | None = None,
) -> ClaimOutcome:
    """Claim today's reward for `user_id` and commit.

    The write is a compare-and-set on `last_claim_at`: if another claim
    committed between our read and our write, zero rows match, the state is
    re-read and the guard re-evaluated, so the loser sees `already_claimed`.
    """
    now = now or utcnow()
    policy = policy or StreakPolicy.from_settings()
    attempts = max_retries or get_settings().claim_max_retries

    for attempt in range(1, attempts + 1):
        state = await _read_state(db, user_id)
        outcome = claim(now, state, policy)
        if outcome.already_claimed:
            await db.commit()
            logger.info("streak_already_claimed", user_id=user_id, streak=state.streak_count)
            return outcome

        new = outcome.state
        result = await db.execute(
            update(User)
            .where(
                User.uid == user_id,
                User.last_claim_at.is_not_distinct_from(state.last_claim_at),
            )
            .values(
                streak_count=new.streak_count,
                longest_streak=new.longest_streak,
                last_claim_at=new.last_claim_at,
                total_score=User.total_score + outcome.reward,
                seasonal_score=User.seasonal_score + outcome.reward,
                total_claims=User.total_claims + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await db.commit()
            logger.info("streak_claim_race_retry", user_id=user_id, attempt=attempt)
            continue

        day = start_of_utc_day(now).date().isoformat()
        db.add(ScoreLedger(
            user_id=user_id,
            amount=outcome.reward,
            source="daily_claim",
            source_id=day,
            description=f"Daily claim, streak day {new.streak_count}",
            idempotency_key=f"claim:{user_id}:{day}",
            created_at=now,
        ))
        await db.commit()
        logger.info(
            "streak_claimed",
            user_id=user_id,
            streak=new.streak_count,
            reward=outcome.reward,
            total_score=new.total_score,
        )
        return outcome

    # Every attempt lost a race: whatever won already claimed today
    state = await _read_state(db, user_id)
    await db.commit()
    return ClaimOutcome(already_claimed=True, state=state, reward=0, next_available_at=next_utc_day(now))


async def get_streak_state(db: AsyncSession, user_id: str) -> StreakState:
    """Current streak state for display."""
    return await _read_state(db, user_id)
