"""Subscription expiry, score grants and the operator CLI parser."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from mentora.cli import build_parser
from mentora.db.models import ScoreLedger, Subscription, User
from mentora.gamification.score_service import grant_score
from mentora.subscriptions.service import expire_lapsed_subscriptions


class TestExpireLapsedSubscriptions:
    @pytest.mark.asyncio
    async def test_expires_only_ended_periods(self, db_session, make_user, clock, fetch):
        await make_user("old", subscription_active=True, subscriber_until=clock.now - timedelta(days=1))
        await make_user("live", subscription_active=True, subscriber_until=clock.now + timedelta(days=1))
        db_session.add_all([
            Subscription(user_id="old", plan_id="basic_monthly", status="active",
                         current_period_end=clock.now - timedelta(days=1)),
            Subscription(user_id="live", plan_id="basic_monthly", status="active",
                         current_period_end=clock.now + timedelta(days=1)),
        ])
        await db_session.commit()

        assert await expire_lapsed_subscriptions(db_session, clock.now) == 1
        assert (await fetch(Subscription, "old")).status == "expired"
        assert (await fetch(User, "old")).subscription_active is False
        assert (await fetch(Subscription, "live")).status == "active"
        assert (await fetch(User, "live")).subscription_active is True

        assert await expire_lapsed_subscriptions(db_session, clock.now) == 0


class TestGrantScore:
    @pytest.mark.asyncio
    async def test_idempotent_by_key(self, db_session, make_user, clock, fetch):
        await make_user("u1", total_score=5)
        kwargs = {
            "source": "assignment",
            "source_id": "a1",
            "description": "Reviewed",
            "idempotency_key": "submission:a1:u1",
            "now": clock.now,
        }
        assert await grant_score(db_session, "u1", 12, **kwargs) is True
        await db_session.commit()
        assert await grant_score(db_session, "u1", 12, **kwargs) is False
        await db_session.commit()

        assert (await fetch(User, "u1")).total_score == 17
        count = (await db_session.execute(select(func.count()).select_from(ScoreLedger))).scalar_one()
        assert count == 1


class TestCliParser:
    def test_claim_requires_uid(self):
        args = build_parser().parse_args(["claim", "u1"])
        assert args.command == "claim"
        assert args.uid == "u1"

    @pytest.mark.parametrize("command", ["rollover-season", "expire-subscriptions"])
    def test_maintenance_commands(self, command):
        args = build_parser().parse_args([command])
        assert callable(args.handler)

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["nope"])
