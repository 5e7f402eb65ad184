"""Subscription lifecycle: activation, payment outcomes, manual requests, expiry."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import get_settings
from mentora.db.models import Payment, Subscription, SubscriptionRequest, User
from mentora.errors import Conflict, InvalidInput, NotFound
from mentora.subscriptions.period import (
    ACTIVE,
    BillingPeriod,
    PaymentOutcome,
    classify_transaction_status,
    extend,
)

logger = structlog.get_logger()

SUBSCRIBER_ROLE = "subscriber"

Decision = Literal["approved", "rejected"]


async def _lock_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.uid == user_id).with_for_update())
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def _lock_subscription(db: AsyncSession, user_id: str) -> Subscription | None:
    result = await db.execute(
        select(Subscription).where(Subscription.user_id == user_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def get_subscription(db: AsyncSession, user_id: str) -> Subscription | None:
    result = await db.execute(select(Subscription).where(Subscription.user_id == user_id))
    return result.scalar_one_or_none()


async def activate_subscription(
    db: AsyncSession,
    user_id: str,
    now: datetime,
    *,
    plan_id: str,
    price: int,
    method: str,
    order_id: str | None = None,
    request_id: str | None = None,
) -> BillingPeriod:
    """Open or chain a billing period and flag the user as a subscriber.

    Locks the user and subscription rows; the caller commits.
    """
    user = await _lock_user(db, user_id)
    sub = await _lock_subscription(db, user_id)
    period = extend(now, sub, get_settings().subscription_duration_days)

    if sub is None:
        sub = Subscription(user_id=user_id, plan_id=plan_id)
        db.add(sub)
    sub.plan_id = plan_id
    sub.price = price
    sub.status = ACTIVE
    sub.method = method
    sub.current_period_start = period.start
    sub.current_period_end = period.end
    sub.last_payment_at = now
    sub.order_id = order_id
    sub.request_id = request_id
    sub.updated_at = now

    roles = list(user.roles or [])
    if SUBSCRIBER_ROLE not in roles:
        roles.append(SUBSCRIBER_ROLE)
    user.roles = roles
    user.subscription_active = True
    user.subscriber_until = period.end
    user.updated_at = now

    await db.flush()
    logger.info(
        "subscription_extended",
        user_id=user_id,
        method=method,
        start=period.start.isoformat(),
        end=period.end.isoformat(),
        order_id=order_id,
        request_id=request_id,
    )
    return period


async def record_payment_outcome(
    db: AsyncSession,
    payment: Payment,
    now: datetime,
    *,
    transaction_status: str,
    fraud_status: str | None = None,
    payment_type: str | None = None,
    gross_amount: int | None = None,
    raw: dict[str, Any] | None = None,
) -> PaymentOutcome:
    """Apply a gateway status to the payment, subscription and user rows.

    Success activates or chains the subscription once per order: a repeated
    notification for an order already recorded as successful only refreshes
    the payment row. Definitive failures store the raw status on the
    subscription (period dates untouched) and clear `subscription_active`,
    unless a different, still-running paid period is in force. Pending and
    unknown statuses only touch the payment row. The caller commits.
    """
    previous = classify_transaction_status(payment.status, payment.fraud_status)
    outcome = classify_transaction_status(transaction_status, fraud_status)

    payment.status = transaction_status
    payment.fraud_status = fraud_status
    payment.payment_type = payment_type
    if raw is not None:
        payment.raw = raw
    payment.updated_at = now

    uid = payment.user_id
    if uid is None:
        logger.warning("payment_without_user", order_id=payment.order_id, status=transaction_status)
        return outcome

    if outcome is PaymentOutcome.SUCCESS:
        if previous is PaymentOutcome.SUCCESS:
            logger.info("payment_already_applied", order_id=payment.order_id, user_id=uid)
            return outcome
        settings = get_settings()
        await activate_subscription(
            db,
            uid,
            now,
            plan_id=settings.subscription_plan_id,
            price=gross_amount or payment.amount or settings.subscription_price,
            method="midtrans",
            order_id=payment.order_id,
        )
    elif outcome is PaymentOutcome.FAILURE:
        await _record_failure(db, uid, payment.order_id, transaction_status, now)

    return outcome


async def _record_failure(db: AsyncSession, user_id: str, order_id: str, status: str, now: datetime) -> None:
    user = await _lock_user(db, user_id)
    sub = await _lock_subscription(db, user_id)

    if (
        sub is not None
        and sub.status == ACTIVE
        and sub.current_period_end is not None
        and sub.current_period_end > now
        and sub.order_id != order_id
    ):
        # A failed renewal attempt does not cancel time already paid for
        logger.info("payment_failure_ignored_active_period", user_id=user_id, order_id=order_id, status=status)
        return

    if sub is None:
        sub = Subscription(user_id=user_id, plan_id=get_settings().subscription_plan_id, price=0)
        db.add(sub)
    sub.status = status
    sub.order_id = order_id
    sub.updated_at = now

    user.subscription_active = False
    user.updated_at = now
    await db.flush()
    logger.info("subscription_payment_failed", user_id=user_id, order_id=order_id, status=status)


# ---------------------------------------------------------------------------
# Manual transfer requests
# ---------------------------------------------------------------------------


async def create_subscription_request(
    db: AsyncSession,
    user_id: str,
    amount: int,
    proof_url: str,
    note: str | None = None,
) -> SubscriptionRequest:
    if amount < 0:
        raise InvalidInput("amount must be non-negative")
    if not proof_url.strip():
        raise InvalidInput("proofUrl is required")
    req = SubscriptionRequest(user_id=user_id, amount=amount, proof_url=proof_url.strip(), note=note, status="pending")
    db.add(req)
    await db.commit()
    logger.info("subscription_request_created", user_id=user_id, request_id=req.id, amount=amount)
    return req


async def decide_subscription_request(
    db: AsyncSession,
    request_id: str,
    decision: Decision,
    admin_uid: str,
    now: datetime,
) -> SubscriptionRequest:
    """Move a pending request to approved/rejected exactly once and commit.

    Approval opens or chains the user's billing period in the same
    transaction. A request that is no longer pending raises Conflict.
    """
    if decision not in ("approved", "rejected"):
        raise InvalidInput("decision must be 'approved' or 'rejected'")

    result = await db.execute(
        update(SubscriptionRequest)
        .where(SubscriptionRequest.id == request_id, SubscriptionRequest.status == "pending")
        .values(status=decision, decided_by=admin_uid, decided_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        existing = await db.get(SubscriptionRequest, request_id)
        if existing is None:
            raise NotFound("Subscription request not found")
        raise Conflict(f"Request already {existing.status}")

    req = (
        await db.execute(
            select(SubscriptionRequest)
            .where(SubscriptionRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()

    if decision == "approved":
        await activate_subscription(
            db,
            req.user_id,
            now,
            plan_id="manual",
            price=req.amount,
            method="manual_transfer",
            request_id=req.id,
        )

    await db.commit()
    logger.info("subscription_request_decided", request_id=request_id, decision=decision, admin=admin_uid)
    return req


async def list_subscription_requests(db: AsyncSession, status: str | None = None) -> list[SubscriptionRequest]:
    stmt = select(SubscriptionRequest).order_by(SubscriptionRequest.created_at.desc())
    if status:
        stmt = stmt.where(SubscriptionRequest.status == status)
    return list((await db.execute(stmt)).scalars())


# ---------------------------------------------------------------------------
# Housekeeping
# ---------------------------------------------------------------------------


async def expire_lapsed_subscriptions(db: AsyncSession, now: datetime) -> int:
    """Mark active subscriptions whose period ended as expired; returns count."""
    result = await db.execute(
        select(Subscription).where(
            Subscription.status == ACTIVE,
            Subscription.current_period_end <= now,
        ).with_for_update()
    )
    expired = 0
    for sub in result.scalars():
        sub.status = "expired"
        sub.updated_at = now
        await db.execute(
            update(User)
            .where(User.uid == sub.user_id)
            .values(subscription_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        expired += 1
    await db.commit()
    logger.info("subscriptions_expired", count=expired)
    return expired
