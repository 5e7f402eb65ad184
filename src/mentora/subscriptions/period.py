"""Billing-period arithmetic and gateway status classification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol

ACTIVE = "active"


class PeriodSource(Protocol):
    """Anything carrying a subscription's status and current period end."""

    status: str
    current_period_end: datetime | None


@dataclass(frozen=True)
class BillingPeriod:
    start: datetime
    end: datetime


def extend(now: datetime, existing: PeriodSource | None, duration_days: int = 30) -> BillingPeriod:
    """Compute the billing window opened by a successful payment or approval.

    An active, unexpired subscription is chained: the new period starts where
    the current one ends, so renewing early never loses paid time. Anything
    else (no subscription, inactive, expired) restarts from `now`.
    """
    if duration_days <= 0:
        msg = f"duration_days must be positive, got {duration_days}"
        raise ValueError(msg)
    duration = timedelta(days=duration_days)

    end = existing.current_period_end if existing is not None else None
    if existing is None or existing.status != ACTIVE or end is None or end <= now:
        return BillingPeriod(start=now, end=now + duration)
    return BillingPeriod(start=end, end=end + duration)


class PaymentOutcome(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILURE = "failure"
    UNKNOWN = "unknown"


_SUCCESS = frozenset({"capture", "settlement"})
_PENDING = frozenset({"pending", "authorize"})
_FAILURE = frozenset({"deny", "cancel", "expire", "failure", "refund", "partial_refund", "chargeback", "partial_chargeback"})


def classify_transaction_status(transaction_status: str | None, fraud_status: str | None = None) -> PaymentOutcome:
    """Map a Midtrans transaction_status (+ fraud_status) onto an outcome.

    A card `capture` held for fraud review (`challenge`) is still pending;
    one the fraud screen denied is a failure.
    """
    status = (transaction_status or "pending").strip().lower()
    fraud = (fraud_status or "").strip().lower()
    if status in _SUCCESS:
        if fraud == "challenge":
            return PaymentOutcome.PENDING
        if fraud == "deny":
            return PaymentOutcome.FAILURE
        return PaymentOutcome.SUCCESS
    if status in _PENDING:
        return PaymentOutcome.PENDING
    if status in _FAILURE:
        return PaymentOutcome.FAILURE
    return PaymentOutcome.UNKNOWN
