"""Daily claim endpoint tests."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.database import get_engine
from mentora.db.models import ScoreLedger, User
from mentora.gamification import streak_service
from mentora.gamification.streak_service import apply_daily_claim

UTC = timezone.utc
CLAIM = "/api/v1/streak/claim"


async def _ledger_count(db_session, uid: str) -> int:
    result = await db_session.execute(select(func.count()).select_from(ScoreLedger).where(ScoreLedger.user_id == uid))
    return result.scalar_one()


class TestClaim:
    @pytest.mark.asyncio
    async def test_first_claim(self, client, auth_headers, clock):
        response = await client.post(CLAIM, headers=auth_headers("u1"))
        assert response.status_code == 200
        data = response.json()
        assert data["alreadyClaimed"] is False
        assert data["streakCount"] == 1
        assert data["longestStreak"] == 1
        assert data["reward"] == 6
        assert data["totalScore"] == 6
        assert datetime.fromisoformat(data["nextAvailableAt"]) == datetime(2026, 10, 20, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_second_claim_same_day_is_rejected(self, client, auth_headers, clock, db_session, fetch):
        await client.post(CLAIM, headers=auth_headers("u1"))
        clock.now = clock.now.replace(hour=23, minute=59)

        response = await client.post(CLAIM, headers=auth_headers("u1"))
        data = response.json()
        assert response.status_code == 200
        assert data["alreadyClaimed"] is True
        assert data["reward"] == 0
        assert data["streakCount"] == 1
        assert data["totalScore"] == 6

        user = await fetch(User, "u1")
        assert user.total_claims == 1
        assert await _ledger_count(db_session, "u1") == 1

    @pytest.mark.asyncio
    async def test_claim_across_midnight_continues_streak(self, client, auth_headers, clock, make_user, fetch):
        await make_user(
            "u1",
            streak_count=3,
            longest_streak=5,
            last_claim_at=datetime(2026, 10, 18, 23, 59, tzinfo=UTC),
            total_score=40,
            seasonal_score=10,
        )
        clock.now = datetime(2026, 10, 19, 0, 1, tzinfo=UTC)

        data = (await client.post(CLAIM, headers=auth_headers("u1"))).json()
        assert data["streakCount"] == 4
        assert data["reward"] == 9
        assert data["totalScore"] == 49
        assert data["longestStreak"] == 5

        user = await fetch(User, "u1")
        assert user.total_score == 49
        assert user.seasonal_score == 19
        assert user.last_claim_at == clock.now

    @pytest.mark.asyncio
    async def test_gap_resets_streak(self, client, auth_headers, clock, make_user):
        await make_user("u1", streak_count=7, longest_streak=7, last_claim_at=clock.now - timedelta(days=3))
        data = (await client.post(CLAIM, headers=auth_headers("u1"))).json()
        assert data["streakCount"] == 1
        assert data["reward"] == 6
        assert data["longestStreak"] == 7

    @pytest.mark.asyncio
    async def test_consecutive_days(self, client, auth_headers, clock):
        rewards = []
        for _ in range(3):
            rewards.append((await client.post(CLAIM, headers=auth_headers("u1"))).json()["reward"])
            clock.now += timedelta(days=1)
        assert rewards == [6, 7, 8]

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        response = await client.post(CLAIM)
        assert response.status_code == 401
        assert "error" in response.json()

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.post(CLAIM, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestStreakStatus:
    @pytest.mark.asyncio
    async def test_before_and_after_claim(self, client, auth_headers, clock):
        before = (await client.get("/api/v1/streak", headers=auth_headers("u1"))).json()
        assert before["claimedToday"] is False
        assert before["streakCount"] == 0

        await client.post(CLAIM, headers=auth_headers("u1"))
        after = (await client.get("/api/v1/streak", headers=auth_headers("u1"))).json()
        assert after["claimedToday"] is True
        assert after["totalClaims"] == 1
        assert datetime.fromisoformat(after["nextAvailableAt"]) == datetime(2026, 10, 20, tzinfo=UTC)


class TestApplyDailyClaim:
    @pytest.mark.asyncio
    async def test_second_claim_same_day(self, db_session, make_user, clock):
        """The committed claim is visible to the next attempt on the same UTC day."""
        await make_user("u1")
        first = await apply_daily_claim(db_session, "u1", clock.now)
        second = await apply_daily_claim(db_session, "u1", clock.now + timedelta(hours=1))

        assert first.already_claimed is False
        assert second.already_claimed is True
        assert second.state.total_score == first.state.total_score

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session, clock):
        from mentora.errors import NotFound

        with pytest.raises(NotFound):
            await apply_daily_claim(db_session, "ghost", clock.now)

    @pytest.mark.asyncio
    async def test_claim_racing_between_read_and_write_awards_once(
        self, db_session, make_user, clock, fetch, monkeypatch
    ):
        """Another claim commits after our read: the guarded write misses and we report already claimed."""
        await make_user("u1")
        real_read = streak_service._read_state
        raced = False

        async def read_then_race(db, user_id):
            nonlocal raced
            state = await real_read(db, user_id)
            if not raced:
                raced = True
                async with AsyncSession(get_engine(), expire_on_commit=False) as other:
                    await apply_daily_claim(other, user_id, clock.now)
            return state

        monkeypatch.setattr(streak_service, "_read_state", read_then_race)
        outcome = await apply_daily_claim(db_session, "u1", clock.now)

        assert outcome.already_claimed is True
        assert outcome.reward == 0
        user = await fetch(User, "u1")
        assert user.total_score == 6
        assert user.total_claims == 1
        assert await _ledger_count(db_session, "u1") == 1
