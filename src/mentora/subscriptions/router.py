"""Subscription status and manual-transfer request endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.auth.dependencies import get_current_user, require_admin
from mentora.db.models import SubscriptionRequest, User
from mentora.dependencies import get_db, get_now
from mentora.subscriptions.schemas import (
    DecisionRequest,
    SubscriptionRequestCreate,
    SubscriptionRequestResponse,
    SubscriptionResponse,
)
from mentora.subscriptions.service import (
    create_subscription_request,
    decide_subscription_request,
    get_subscription,
    list_subscription_requests,
)

router = APIRouter(prefix="/api/v1", tags=["Subscriptions"])


def _request_response(req: SubscriptionRequest) -> SubscriptionRequestResponse:
    return SubscriptionRequestResponse(
        id=req.id,
        uid=req.user_id,
        amount=req.amount,
        proof_url=req.proof_url,
        note=req.note,
        status=req.status,
        decided_by=req.decided_by,
        decided_at=req.decided_at,
        created_at=req.created_at,
    )


@router.get("/subscriptions/me", response_model=SubscriptionResponse)
async def my_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current user's subscription flags and billing period."""
    sub = await get_subscription(db, user.uid)
    return SubscriptionResponse(
        subscription_active=user.subscription_active,
        subscriber_until=user.subscriber_until,
        plan_id=sub.plan_id if sub else None,
        price=sub.price if sub else None,
        status=sub.status if sub else None,
        method=sub.method if sub else None,
        current_period_start=sub.current_period_start if sub else None,
        current_period_end=sub.current_period_end if sub else None,
        last_payment_at=sub.last_payment_at if sub else None,
        order_id=sub.order_id if sub else None,
    )


@router.post("/subscriptions/requests", response_model=SubscriptionRequestResponse, status_code=201)
async def submit_subscription_request(
    body: SubscriptionRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit proof of a manual bank transfer for admin review."""
    req = await create_subscription_request(db, user.uid, body.amount, body.proof_url, body.note)
    return _request_response(req)


@router.get("/admin/subscription-requests", response_model=list[SubscriptionRequestResponse])
async def admin_list_subscription_requests(
    status: str | None = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return [_request_response(r) for r in await list_subscription_requests(db, status)]


@router.post("/admin/subscription-requests/{request_id}/decision", response_model=SubscriptionRequestResponse)
async def admin_decide_subscription_request(
    request_id: str,
    body: DecisionRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Approve (opens or chains the billing period) or reject, exactly once."""
    req = await decide_subscription_request(db, request_id, body.decision, admin.uid, now)
    return _request_response(req)
