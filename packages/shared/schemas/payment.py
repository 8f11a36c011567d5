"""Shared payment schemas (v1).

The payment service owns the session and the charge. The orders service only asks for a
session and later consumes the confirmation event.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PaymentLineItemV1(BaseModel):
    name: str
    quantity: int
    price: float


class PaymentSessionRequestV1(BaseModel):
    order_id: str
    currency: str
    items: list[PaymentLineItemV1] = Field(..., min_length=1)


class PaymentSessionV1(BaseModel):
    """Opaque session descriptor.

    Extra fields sent by the payment service are kept so the descriptor can be passed through
    unmodified.
    """

    model_config = ConfigDict(extra="allow")

    url: str
    session_id: str | None = None
    success_url: str | None = None
    cancel_url: str | None = None


class OrderPaidEventV1(BaseModel):
    # Delivered at-least-once by the payment service.
    order_id: str
    external_charge_id: str
    receipt_url: str
