from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from services.orders.app.models.order import OrderStatus
from services.orders.app.services.errors import ChargeAlreadyUsedError, OrderNotFoundError
from services.orders.app.services.order_store import (
    OrderItemRecord,
    OrderReceiptRecord,
    OrderRecord,
    PaymentApplication,
    check_payable,
    utcnow,
)
from services.orders.app.services.pricing import PricedLine


class InMemoryOrderStore:
    """Process-local OrderStore. Each method holds the lock for its whole read-modify-write."""

    def __init__(self) -> None:
        self._orders: dict[str, OrderRecord] = {}
        self._lock = threading.Lock()

    def create_order(
        self, *, total_amount: Decimal, total_items: int, lines: Sequence[PricedLine]
    ) -> OrderRecord:
        now = utcnow()
        record = OrderRecord(
            id=uuid4().hex,
            status=OrderStatus.PENDING,
            total_amount=total_amount,
            total_items=total_items,
            paid=False,
            paid_at=None,
            external_charge_id=None,
            created_at=now,
            updated_at=now,
            items=[
                OrderItemRecord(product_id=line.product_id, quantity=line.quantity, price=line.price)
                for line in lines
            ],
        )
        with self._lock:
            self._orders[record.id] = record
        return record

    def get_order(self, order_id: str) -> OrderRecord | None:
        with self._lock:
            return self._orders.get(order_id)

    def list_orders(
        self, *, status: OrderStatus | None, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]:
        with self._lock:
            rows = [o for o in self._orders.values() if status is None or o.status == status]

        rows.sort(key=lambda o: (o.created_at, o.id), reverse=True)
        return rows[offset : offset + limit], len(rows)

    def update_status(
        self, order_id: str, *, expected: OrderStatus, new: OrderStatus
    ) -> OrderRecord | None:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None or current.status != expected:
                return None

            updated = replace(current, status=new, updated_at=utcnow())
            self._orders[order_id] = updated
            return updated

    def mark_paid(
        self,
        order_id: str,
        *,
        external_charge_id: str,
        receipt_url: str,
        paid_at: datetime,
    ) -> PaymentApplication:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFoundError(order_id)

            if not check_payable(current, external_charge_id):
                return PaymentApplication(order=current, applied=False)

            for other in self._orders.values():
                if other.id != order_id and other.external_charge_id == external_charge_id:
                    raise ChargeAlreadyUsedError(external_charge_id, other.id)

            updated = replace(
                current,
                status=OrderStatus.PAID,
                paid=True,
                paid_at=paid_at,
                external_charge_id=external_charge_id,
                updated_at=paid_at,
                receipt=OrderReceiptRecord(receipt_url=receipt_url, created_at=paid_at),
            )
            self._orders[order_id] = updated
            return PaymentApplication(order=updated, applied=True)
