from __future__ import annotations

import os

from packages.shared.schemas.payment import (
    PaymentLineItemV1,
    PaymentSessionRequestV1,
    PaymentSessionV1,
)
from pydantic import ValidationError
from services.orders.app.services.errors import PaymentSessionFailedError
from services.orders.app.services.http_rpc import RpcError, post_json


class PaymentHttpAdapter:
    """Payment client speaking JSON over HTTP.

    Env vars:
    - ORDERS_PAYMENT_CLIENT=http
    - ORDERS_PAYMENT_BASE_URL (default: http://localhost:3003)
    - ORDERS_PAYMENT_TIMEOUT_S (default: 10)
    """

    provider = "PAYMENT_HTTP"

    def __init__(self, *, base_url: str, timeout_s: float) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    @classmethod
    def from_env(cls) -> "PaymentHttpAdapter":
        return cls(
            base_url=os.getenv("ORDERS_PAYMENT_BASE_URL", "http://localhost:3003"),
            timeout_s=float(os.getenv("ORDERS_PAYMENT_TIMEOUT_S", "10")),
        )

    def create_payment_session(
        self,
        order_id: str,
        currency: str,
        items: list[PaymentLineItemV1],
    ) -> PaymentSessionV1:
        body = PaymentSessionRequestV1(order_id=order_id, currency=currency, items=items)

        try:
            payload = post_json(
                f"{self._base_url}/payments/create-payment-session",
                body.model_dump(),
                timeout=self._timeout_s,
            )
            return PaymentSessionV1.model_validate(payload)
        except RpcError as e:
            raise PaymentSessionFailedError(str(e)) from e
        except ValidationError as e:
            raise PaymentSessionFailedError(f"Unexpected payment session payload: {e}") from e
