"""Pydantic models for payment endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from mentora.schemas import CamelModel

ORDER_ID_PATTERN = r"^[A-Za-z0-9_.~-]+$"


class CreatePaymentRequest(CamelModel):
    name: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=320)


class CreatePaymentResponse(CamelModel):
    token: str
    order_id: str
    redirect_url: str | None = None


class ConfirmPaymentRequest(CamelModel):
    order_id: str = Field(min_length=1, max_length=128, pattern=ORDER_ID_PATTERN)


class ConfirmPaymentResponse(CamelModel):
    ok: bool = True
    status: str


class MidtransNotification(BaseModel):
    """Gateway webhook body. Field names are the gateway's own (snake_case)."""

    model_config = ConfigDict(extra="allow")

    order_id: str
    transaction_status: str | None = None
    status_code: str = ""
    gross_amount: str = ""
    signature_key: str = ""
    payment_type: str | None = None
    fraud_status: str | None = None
