from __future__ import annotations

from enum import Enum

from packages.shared.schemas.payment import PaymentSessionV1
from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class OrderItemInput(BaseModel):
    product_id: int
    # Range checks happen in the pricing layer so every caller gets the same error.
    quantity: int
    # Accepted for compatibility with older clients; never used for pricing.
    price: float | None = None


class CreateOrderRequest(BaseModel):
    items: list[OrderItemInput]


class ChangeOrderStatusRequest(BaseModel):
    status: OrderStatus


class OrderItemOut(BaseModel):
    product_id: int
    quantity: int
    price: float
    name: str | None = None


class OrderReceiptOut(BaseModel):
    receipt_url: str
    created_at: str


class OrderOut(BaseModel):
    id: str
    status: OrderStatus
    total_amount: float
    total_items: int
    paid: bool
    paid_at: str | None = None
    external_charge_id: str | None = None
    created_at: str
    updated_at: str

    items: list[OrderItemOut] = Field(default_factory=list)
    receipt: OrderReceiptOut | None = None


class OrderCreatedResponse(BaseModel):
    order: OrderOut
    payment_session: PaymentSessionV1


class PaginationMeta(BaseModel):
    total: int
    page: int
    last_page: int


class OrderListResponse(BaseModel):
    data: list[OrderOut]
    meta: PaginationMeta
