"""Checkout creation, status confirmation and webhook processing."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.config import get_settings
from mentora.db.models import Payment, User
from mentora.errors import Forbidden, InvalidInput
from mentora.payments.midtrans import MidtransClient, PaymentGatewayError
from mentora.payments.signature import is_valid_signature
from mentora.subscriptions.period import PaymentOutcome
from mentora.subscriptions.service import record_payment_outcome

logger = structlog.get_logger()


def parse_gross_amount(value: Any) -> int | None:
    """'30000.00' -> 30000. Unparseable or empty values give None."""
    if value is None or value == "":
        return None
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return None


def build_order_id(uid: str, now: datetime) -> str:
    return f"sub_{uid}_{int(now.timestamp() * 1000)}"


def build_snap_params(
    order_id: str,
    amount: int,
    *,
    name: str | None,
    email: str | None,
    base_url: str,
) -> dict[str, Any]:
    settings = get_settings()
    params: dict[str, Any] = {
        "transaction_details": {"order_id": order_id, "gross_amount": amount},
        "customer_details": {"first_name": name or "User", "email": email},
        "item_details": [
            {
                "id": settings.subscription_plan_id,
                "price": amount,
                "quantity": 1,
                "name": settings.subscription_plan_name,
            }
        ],
        "enabled_payments": list(settings.midtrans_enabled_payments),
        "expiry": {"unit": "minutes", "duration": settings.midtrans_expiry_minutes},
    }
    if base_url:
        params["callbacks"] = {"finish": f"{base_url.rstrip('/')}/pages/subscription/thanks"}
    return params


async def create_checkout(
    db: AsyncSession,
    gateway: MidtransClient,
    user: User,
    now: datetime,
    *,
    name: str | None = None,
    email: str | None = None,
    base_url: str = "",
) -> dict[str, Any]:
    """Open a Snap transaction for one subscription period and record it as pending."""
    amount = get_settings().subscription_price
    order_id = build_order_id(user.uid, now)
    params = build_snap_params(
        order_id,
        amount,
        name=name or user.display_name,
        email=email or user.email,
        base_url=base_url,
    )
    snap = await gateway.create_snap_transaction(params)

    db.add(Payment(order_id=order_id, user_id=user.uid, amount=amount, status="pending", created_at=now))
    await db.commit()
    logger.info("payment_created", order_id=order_id, user_id=user.uid, amount=amount)
    return {"token": snap["token"], "order_id": order_id, "redirect_url": snap.get("redirect_url")}


async def _lock_payment(db: AsyncSession, order_id: str) -> Payment | None:
    result = await db.execute(
        select(Payment)
        .where(Payment.order_id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _apply_status(
    db: AsyncSession,
    order_id: str,
    status: dict[str, Any],
    now: datetime,
) -> tuple[str, PaymentOutcome]:
    transaction_status = str(status.get("transaction_status") or "pending")
    fraud_status = status.get("fraud_status") or None
    payment_type = status.get("payment_type") or None
    gross_amount = parse_gross_amount(status.get("gross_amount"))

    payment = await _lock_payment(db, order_id)
    if payment is None:
        # Order unknown locally (e.g. created outside this API); keep a record
        payment = Payment(order_id=order_id, user_id=None, amount=gross_amount or 0, created_at=now)
        db.add(payment)

    outcome = await record_payment_outcome(
        db,
        payment,
        now,
        transaction_status=transaction_status,
        fraud_status=fraud_status,
        payment_type=payment_type,
        gross_amount=gross_amount,
        raw=status,
    )
    await db.commit()
    return transaction_status, outcome


async def confirm_payment(db: AsyncSession, gateway: MidtransClient, order_id: str, now: datetime) -> str:
    """Pull the order's status from the gateway and reconcile local state."""
    if not order_id:
        raise InvalidInput("Missing orderId")
    if not order_id.strip("."):
        raise InvalidInput("Invalid orderId")
    status = await gateway.get_transaction_status(order_id)
    if str(status.get("status_code", "")) == "404":
        raise PaymentGatewayError(f"Midtrans status error: {status.get('status_message') or 'order not found'}")
    transaction_status, outcome = await _apply_status(db, order_id, status, now)
    logger.info("payment_confirmed", order_id=order_id, status=transaction_status, outcome=outcome.value)
    return transaction_status


async def handle_notification(db: AsyncSession, payload: dict[str, Any], now: datetime) -> PaymentOutcome:
    """Verify and apply a gateway notification.

    An invalid signature raises Forbidden before anything is read or written.
    """
    order_id = str(payload.get("order_id") or "")
    status_code = str(payload.get("status_code") or "")
    gross_amount = str(payload.get("gross_amount") or "")
    signature = payload.get("signature_key")

    if not is_valid_signature(order_id, status_code, gross_amount, signature, get_settings().midtrans_server_key):
        logger.warning("webhook_signature_invalid", order_id=order_id, status_code=status_code)
        raise Forbidden("Invalid signature")

    transaction_status, outcome = await _apply_status(db, order_id, payload, now)
    logger.info("webhook_processed", order_id=order_id, status=transaction_status, outcome=outcome.value)
    return outcome
