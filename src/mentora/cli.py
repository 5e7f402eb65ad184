"""Operator commands that share the API's service layer.

Usage:
    mentora claim <uid>
    mentora rollover-season
    mentora expire-subscriptions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import get_settings
from mentora.database import close_db, get_session, init_db
from mentora.gamification.day_boundary import utcnow
from mentora.gamification.leaderboard_service import roll_over_season
from mentora.gamification.streak_service import apply_daily_claim
from mentora.middleware.logging import setup_logging
from mentora.subscriptions.service import expire_lapsed_subscriptions


async def _claim(db: AsyncSession, args: argparse.Namespace) -> dict[str, Any]:
    outcome = await apply_daily_claim(db, args.uid, utcnow())
    return {
        "alreadyClaimed": outcome.already_claimed,
        "nextAvailableAt": outcome.next_available_at.isoformat(),
        "streakCount": outcome.state.streak_count,
        "longestStreak": outcome.state.longest_streak,
        "totalScore": outcome.state.total_score,
        "reward": outcome.reward,
    }


async def _rollover(db: AsyncSession, _args: argparse.Namespace) -> dict[str, Any]:
    return await roll_over_season(db, utcnow())


async def _expire(db: AsyncSession, _args: argparse.Namespace) -> dict[str, Any]:
    return {"expired": await expire_lapsed_subscriptions(db, utcnow())}


Command = Callable[[AsyncSession, argparse.Namespace], Awaitable[dict[str, Any]]]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mentora", description="Mentora maintenance commands")
    sub = parser.add_subparsers(dest="command", required=True)

    claim = sub.add_parser("claim", help="Run today's streak claim for a user")
    claim.add_argument("uid")
    claim.set_defaults(handler=_claim)

    rollover = sub.add_parser("rollover-season", help="Close the monthly leaderboard season if due")
    rollover.set_defaults(handler=_rollover)

    expire = sub.add_parser("expire-subscriptions", help="Expire subscriptions whose period has ended")
    expire.set_defaults(handler=_expire)
    return parser


async def run(handler: Command, args: argparse.Namespace) -> dict[str, Any]:
    settings = get_settings()
    await init_db(settings.database_url)
    try:
        async for db in get_session():
            return await handler(db, args)
        return {}
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings())
    result = asyncio.run(run(args.handler, args))
    sys.stdout.write(json.dumps(result) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
