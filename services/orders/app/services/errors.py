from __future__ import annotations

from collections.abc import Iterable


class OrderServiceError(Exception):
    """Base class for order lifecycle errors."""


class InvalidLineItemError(OrderServiceError):
    def __init__(self, reason: str, product_id: int | None = None) -> None:
        prefix = f"Invalid line item for product {product_id}: " if product_id is not None else ""
        super().__init__(f"{prefix}{reason}")
        self.product_id = product_id


class InvalidStatusTransitionError(OrderServiceError):
    def __init__(self, order_id: str, current: str, requested: str) -> None:
        super().__init__(f"Order {order_id} cannot move from {current} to {requested}")
        self.order_id = order_id
        self.current = current
        self.requested = requested


class OrderNotFoundError(OrderServiceError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order with id {order_id} not found")
        self.order_id = order_id


class ProductNotFoundError(OrderServiceError):
    def __init__(self, product_ids: Iterable[int]) -> None:
        self.product_ids = sorted(set(product_ids))
        super().__init__(f"Some products were not found: {self.product_ids}")


class OrderAlreadyPaidError(OrderServiceError):
    def __init__(self, order_id: str, external_charge_id: str | None) -> None:
        super().__init__(
            f"Order {order_id} is already paid by a different charge ({external_charge_id})"
        )
        self.order_id = order_id
        self.external_charge_id = external_charge_id


class ChargeAlreadyUsedError(OrderServiceError):
    def __init__(self, external_charge_id: str, order_id: str) -> None:
        super().__init__(f"Charge {external_charge_id} already paid order {order_id}")
        self.external_charge_id = external_charge_id
        self.order_id = order_id


class UpstreamUnavailableError(OrderServiceError):
    """The catalog service failed or timed out."""


class PaymentSessionFailedError(OrderServiceError):
    """The payment service failed or timed out while creating a session."""


class PaymentReconciliationFailedError(OrderServiceError):
    """A payment confirmation could not be persisted. Safe to redeliver."""


class OrderCreationFailedError(OrderServiceError):
    """Create failed after validation. Nothing was committed."""


class OrderStoreError(OrderServiceError):
    """The persistence engine rejected or failed an operation."""
