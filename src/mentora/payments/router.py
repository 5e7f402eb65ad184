"""Payment gateway endpoints: checkout, confirmation and webhook."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mentora.auth.dependencies import get_current_user
from mentora.config import get_settings
from mentora.db.models import User
from mentora.dependencies import get_db, get_now
from mentora.payments.midtrans import MidtransClient, get_gateway
from mentora.payments.schemas import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    MidtransNotification,
)
from mentora.payments.service import confirm_payment, create_checkout, handle_notification
from mentora.schemas import OkResponse

router = APIRouter(prefix="/api/v1/pay", tags=["Payments"])


def _base_url(request: Request) -> str:
    configured = get_settings().public_base_url
    if configured:
        return configured
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{proto}://{host}" if host else ""


@router.post("/create", response_model=CreatePaymentResponse)
async def create_payment(
    body: CreatePaymentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: MidtransClient = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    """Start a Snap checkout for the monthly subscription."""
    result = await create_checkout(
        db, gateway, user, now, name=body.name, email=body.email, base_url=_base_url(request)
    )
    return CreatePaymentResponse(**result)


@router.post("/confirm", response_model=ConfirmPaymentResponse)
async def confirm(
    body: ConfirmPaymentRequest,
    db: AsyncSession = Depends(get_db),
    gateway: MidtransClient = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    """Reconcile an order against the gateway's status (finish-page callback)."""
    status = await confirm_payment(db, gateway, body.order_id, now)
    return ConfirmPaymentResponse(status=status)


@router.post("/notify", response_model=OkResponse)
async def notify(
    body: MidtransNotification,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Gateway webhook. 403 on a bad signature_key, nothing is written."""
    await handle_notification(db, body.model_dump(), now)
    return OkResponse()
