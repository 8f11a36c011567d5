from __future__ import annotations

from typing import Protocol

from packages.shared.schemas.payment import PaymentLineItemV1, PaymentSessionV1


class PaymentClient(Protocol):
    provider: str

    def create_payment_session(
        self,
        order_id: str,
        currency: str,
        items: list[PaymentLineItemV1],
    ) -> PaymentSessionV1:
        """Request a payment session. Never retried here.

        Raises PaymentSessionFailedError on remote failure or timeout.
        """
        ...
