"""Order lifecycle orchestration.

OrderOrchestrator sequences the catalog client, the pricing functions, the order store and
the payment client. It holds no mutable state of its own; one instance per unit of work is
fine, and so is sharing one across threads as long as the injected collaborators allow it.

Failure policy:
- input and not-found errors propagate unchanged to the caller;
- dependency failures are logged here with full context, then raised as the opaque
  gateway-class errors from errors.py;
- nothing is retried against a remote service. Create is safe to repeat because its write is
  all-or-nothing, and confirm_payment is idempotent per (order_id, external_charge_id).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from packages.shared.schemas.payment import PaymentLineItemV1, PaymentSessionV1
from services.orders.app.models.order import OrderStatus
from services.orders.app.services.catalog_base import CatalogClient
from services.orders.app.services.errors import (
    InvalidStatusTransitionError,
    OrderCreationFailedError,
    OrderNotFoundError,
    OrderStoreError,
    PaymentReconciliationFailedError,
    PaymentSessionFailedError,
    ProductNotFoundError,
    UpstreamUnavailableError,
)
from services.orders.app.services.order_store import OrderRecord, OrderStore, utcnow
from services.orders.app.services.payment_base import PaymentClient
from services.orders.app.services.pricing import LineItemRequest, price_order, validate_line_items
from services.orders.app.services.state_machine import ensure_transition

logger = logging.getLogger(__name__)

# Concurrent status writers are resolved by re-reading; this bounds the re-reads.
_STATUS_UPDATE_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class OrderLine:
    product_id: int
    quantity: int
    price: Decimal
    # Display only. None when the catalog could not be reached.
    name: str | None


@dataclass(frozen=True, slots=True)
class OrderView:
    order: OrderRecord
    lines: list[OrderLine]


@dataclass(frozen=True, slots=True)
class OrderPage:
    data: list[OrderRecord]
    total: int
    page: int
    last_page: int


class OrderOrchestrator:
    def __init__(
        self,
        *,
        catalog: CatalogClient,
        payments: PaymentClient,
        store: OrderStore,
        currency: str = "usd",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._catalog = catalog
        self._payments = payments
        self._store = store
        self._currency = currency
        self._clock = clock

    def create(self, items: Sequence[LineItemRequest]) -> OrderView:
        validate_line_items(items)

        try:
            products = self._catalog.validate_products([item.product_id for item in items])
        except UpstreamUnavailableError as e:
            logger.exception("Catalog validation failed while creating an order")
            raise OrderCreationFailedError("Catalog validation failed") from e

        pricing = price_order(items, products)

        try:
            order = self._store.create_order(
                total_amount=pricing.total_amount,
                total_items=pricing.total_items,
                lines=pricing.lines,
            )
        except OrderStoreError as e:
            logger.exception(
                "Order could not be persisted (items=%d, total=%s)",
                pricing.total_items,
                pricing.total_amount,
            )
            raise OrderCreationFailedError("Order could not be persisted") from e

        logger.info(
            "Order %s created with %d items, total %s",
            order.id,
            order.total_items,
            order.total_amount,
        )
        return _view(order, {pid: product.name for pid, product in products.items()})

    def list_orders(self, *, status: OrderStatus | None, page: int, limit: int) -> OrderPage:
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be >= 1")

        data, total = self._store.list_orders(
            status=status, offset=(page - 1) * limit, limit=limit
        )
        return OrderPage(data=data, total=total, page=page, last_page=math.ceil(total / limit))

    def get(self, order_id: str) -> OrderView:
        order = self._require(order_id)
        return _view(order, self._display_names(order))

    def change_status(self, order_id: str, new_status: OrderStatus) -> OrderRecord:
        order = self._require(order_id)

        for _ in range(_STATUS_UPDATE_ATTEMPTS):
            if order.status == new_status:
                return order

            ensure_transition(order.id, order.status, new_status)

            updated = self._store.update_status(order.id, expected=order.status, new=new_status)
            if updated is not None:
                logger.info(
                    "Order %s status changed %s -> %s",
                    order.id,
                    order.status.value,
                    new_status.value,
                )
                return updated

            order = self._require(order_id)

        raise InvalidStatusTransitionError(order.id, order.status.value, new_status.value)

    def request_payment_session(self, view: OrderView) -> PaymentSessionV1:
        items = [
            PaymentLineItemV1(
                name=line.name or f"Product {line.product_id}",
                quantity=line.quantity,
                price=float(line.price),
            )
            for line in view.lines
        ]

        try:
            return self._payments.create_payment_session(view.order.id, self._currency, items)
        except PaymentSessionFailedError:
            logger.exception("Payment session request failed for order %s", view.order.id)
            raise

    def confirm_payment(
        self, order_id: str, external_charge_id: str, receipt_url: str
    ) -> OrderRecord:
        try:
            result = self._store.mark_paid(
                order_id,
                external_charge_id=external_charge_id,
                receipt_url=receipt_url,
                paid_at=self._clock(),
            )
        except OrderStoreError as e:
            logger.exception(
                "Payment confirmation for order %s (charge %s) could not be persisted",
                order_id,
                external_charge_id,
            )
            raise PaymentReconciliationFailedError(
                f"Payment confirmation for order {order_id} failed"
            ) from e

        if result.applied:
            logger.info("Order %s has been paid (charge %s)", order_id, external_charge_id)
        else:
            logger.info(
                "Duplicate payment confirmation for order %s (charge %s) ignored",
                order_id,
                external_charge_id,
            )
        return result.order

    def _require(self, order_id: str) -> OrderRecord:
        order = self._store.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _display_names(self, order: OrderRecord) -> dict[int, str]:
        if not order.items:
            return {}

        try:
            products = self._catalog.validate_products([item.product_id for item in order.items])
        except (UpstreamUnavailableError, ProductNotFoundError) as e:
            logger.warning("Catalog names unavailable for order %s: %s", order.id, e)
            return {}

        return {pid: product.name for pid, product in products.items()}


def _view(order: OrderRecord, names: dict[int, str]) -> OrderView:
    return OrderView(
        order=order,
        lines=[
            OrderLine(
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                name=names.get(item.product_id),
            )
            for item in order.items
        ],
    )
