"""Pydantic models for subscription endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from mentora.schemas import CamelModel


class SubscriptionRequestCreate(CamelModel):
    amount: int = Field(ge=0)
    proof_url: str = Field(min_length=1, max_length=2048)
    note: str | None = Field(default=None, max_length=1000)


class SubscriptionRequestResponse(CamelModel):
    id: str
    uid: str
    amount: int
    proof_url: str
    note: str | None = None
    status: str
    decided_by: str | None = None
    decided_at: datetime | None = None
    created_at: datetime


class DecisionRequest(CamelModel):
    decision: Literal["approved", "rejected"]


class SubscriptionResponse(CamelModel):
    subscription_active: bool
    subscriber_until: datetime | None = None
    plan_id: str | None = None
    price: int | None = None
    status: str | None = None
    method: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    last_payment_at: datetime | None = None
    order_id: str | None = None
