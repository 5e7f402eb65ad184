"""Score grants with idempotency keys."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.db.models import ScoreLedger, User

logger = structlog.get_logger()


async def ledger_entry_exists(db: AsyncSession, idempotency_key: str) -> bool:
    result = await db.execute(
        select(ScoreLedger.id).where(ScoreLedger.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none() is not None


async def grant_score(
    db: AsyncSession,
    user_id: str,
    amount: int,
    source: str,
    source_id: str,
    description: str,
    idempotency_key: str,
    now: datetime,
) -> bool:
    """Credit `amount` to the user's total score. Returns False if duplicate.

    Inserts the ledger entry and increments `users.total_score` in the
    caller's transaction; the caller commits.
    """
    if await ledger_entry_exists(db, idempotency_key):
        return False

    db.add(ScoreLedger(
        user_id=user_id,
        amount=amount,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
    ))
    await db.execute(
        update(User)
        .where(User.uid == user_id)
        .values(total_score=User.total_score + amount, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    logger.info("score_granted", user_id=user_id, amount=amount, source=source, source_id=source_id)
    return True
