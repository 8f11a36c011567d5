from __future__ import annotations

import os

from services.orders.app.services.payment_base import PaymentClient
from services.orders.app.services.payment_mock import PaymentMockAdapter


def get_payment_client() -> PaymentClient:
    mode = os.getenv("ORDERS_PAYMENT_CLIENT", "mock").strip().lower()

    if mode == "mock":
        return PaymentMockAdapter()

    if mode == "http":
        from services.orders.app.services.payment_http import PaymentHttpAdapter

        return PaymentHttpAdapter.from_env()

    raise ValueError(f"Unknown ORDERS_PAYMENT_CLIENT={mode!r}. Expected mock or http.")


def default_currency() -> str:
    return os.getenv("ORDERS_PAYMENT_CURRENCY", "usd").strip().lower()
