from __future__ import annotations

from uuid import uuid4

from packages.shared.schemas.payment import PaymentLineItemV1, PaymentSessionV1


class PaymentMockAdapter:
    provider = "PAYMENT_MOCK"

    def __init__(self, base_url: str = "https://pay.example.test") -> None:
        self._base_url = base_url.rstrip("/")

    def create_payment_session(
        self,
        order_id: str,
        currency: str,
        items: list[PaymentLineItemV1],
    ) -> PaymentSessionV1:
        del currency, items

        session_id = f"cs_mock_{uuid4().hex[:12]}"
        return PaymentSessionV1(
            url=f"{self._base_url}/checkout/{session_id}",
            session_id=session_id,
            success_url=f"{self._base_url}/orders/{order_id}/success",
            cancel_url=f"{self._base_url}/orders/{order_id}/cancel",
        )
