"""Order aggregate persistence.

Every store method is one transaction. The orchestrator only depends on the OrderStore
protocol, so the SQL implementation here and the in-memory one in store.py are
interchangeable.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol
from uuid import uuid4

from services.orders.app.db.models import Order, OrderItem, OrderReceipt
from services.orders.app.models.order import OrderStatus
from services.orders.app.services.errors import (
    ChargeAlreadyUsedError,
    InvalidStatusTransitionError,
    OrderAlreadyPaidError,
    OrderNotFoundError,
    OrderStoreError,
)
from services.orders.app.services.pricing import PricedLine
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload


@dataclass(frozen=True, slots=True)
class OrderItemRecord:
    product_id: int
    quantity: int
    price: Decimal


@dataclass(frozen=True, slots=True)
class OrderReceiptRecord:
    receipt_url: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class OrderRecord:
    id: str
    status: OrderStatus
    total_amount: Decimal
    total_items: int
    paid: bool
    paid_at: datetime | None
    external_charge_id: str | None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRecord] = field(default_factory=list)
    receipt: OrderReceiptRecord | None = None


@dataclass(frozen=True, slots=True)
class PaymentApplication:
    order: OrderRecord
    # False when the confirmation was a redelivery and nothing changed.
    applied: bool


class OrderStore(Protocol):
    def create_order(
        self, *, total_amount: Decimal, total_items: int, lines: Sequence[PricedLine]
    ) -> OrderRecord: ...

    def get_order(self, order_id: str) -> OrderRecord | None: ...

    def list_orders(
        self, *, status: OrderStatus | None, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]: ...

    def update_status(
        self, order_id: str, *, expected: OrderStatus, new: OrderStatus
    ) -> OrderRecord | None:
        """Conditionally move an order from `expected` to `new`.

        Returns None when the order is no longer in `expected`.
        """
        ...

    def mark_paid(
        self,
        order_id: str,
        *,
        external_charge_id: str,
        receipt_url: str,
        paid_at: datetime,
    ) -> PaymentApplication:
        """Apply a payment confirmation at most once.

        A repeat with the same charge id returns applied=False. Raises OrderNotFoundError,
        OrderAlreadyPaidError (different charge id), ChargeAlreadyUsedError (charge id already
        recorded on another order) or InvalidStatusTransitionError (order is neither PENDING
        nor PAID).
        """
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def check_payable(current: OrderRecord, external_charge_id: str) -> bool:
    """Return True if the payment must be applied, False for a harmless redelivery."""

    if current.paid:
        if current.external_charge_id == external_charge_id:
            return False
        raise OrderAlreadyPaidError(current.id, current.external_charge_id)

    # A manual PAID status change leaves paid=False; the real confirmation still applies.
    if current.status not in (OrderStatus.PENDING, OrderStatus.PAID):
        raise InvalidStatusTransitionError(
            current.id, current.status.value, OrderStatus.PAID.value
        )
    return True


def _to_record(order: Order) -> OrderRecord:
    receipt = None
    if order.receipt is not None:
        receipt = OrderReceiptRecord(
            receipt_url=order.receipt.receipt_url,
            created_at=_as_utc(order.receipt.created_at),
        )

    return OrderRecord(
        id=order.id,
        status=OrderStatus(order.status),
        total_amount=Decimal(order.total_amount),
        total_items=order.total_items,
        paid=order.paid,
        paid_at=_as_utc(order.paid_at) if order.paid_at else None,
        external_charge_id=order.external_charge_id,
        created_at=_as_utc(order.created_at),
        updated_at=_as_utc(order.updated_at),
        items=[
            OrderItemRecord(
                product_id=item.product_id, quantity=item.quantity, price=Decimal(item.price)
            )
            for item in order.items
        ],
        receipt=receipt,
    )


class SqlOrderStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._db.begin():
                yield self._db
        except SQLAlchemyError as e:
            raise OrderStoreError(str(e)) from e

    def _load(self, db: Session, order_id: str, *, for_update: bool = False) -> Order | None:
        q = (
            db.query(Order)
            .options(selectinload(Order.items), selectinload(Order.receipt))
            .filter(Order.id == order_id)
        )
        if for_update:
            q = q.with_for_update()
        return q.first()

    def create_order(
        self, *, total_amount: Decimal, total_items: int, lines: Sequence[PricedLine]
    ) -> OrderRecord:
        with self._transaction() as db:
            order = Order(
                id=uuid4().hex,
                status=OrderStatus.PENDING.value,
                total_amount=total_amount,
                total_items=total_items,
                paid=False,
            )
            db.add(order)
            db.flush()

            for line in lines:
                order.items.append(
                    OrderItem(product_id=line.product_id, quantity=line.quantity, price=line.price)
                )
            db.flush()

            return _to_record(order)

    def get_order(self, order_id: str) -> OrderRecord | None:
        with self._transaction() as db:
            order = self._load(db, order_id)
            return _to_record(order) if order is not None else None

    def list_orders(
        self, *, status: OrderStatus | None, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]:
        with self._transaction() as db:
            q = db.query(Order)
            if status is not None:
                q = q.filter(Order.status == status.value)

            total = q.count()
            rows = (
                q.options(selectinload(Order.items), selectinload(Order.receipt))
                .order_by(Order.created_at.desc(), Order.id)
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_to_record(row) for row in rows], total

    def update_status(
        self, order_id: str, *, expected: OrderStatus, new: OrderStatus
    ) -> OrderRecord | None:
        with self._transaction() as db:
            result = db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == expected.value)
                .values(status=new.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None

            order = self._load(db, order_id)
            if order is None:
                raise OrderStoreError(f"Order {order_id} disappeared after a status update")
            return _to_record(order)

    def mark_paid(
        self,
        order_id: str,
        *,
        external_charge_id: str,
        receipt_url: str,
        paid_at: datetime,
    ) -> PaymentApplication:
        with self._transaction() as db:
            order = self._load(db, order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)

            current = _to_record(order)
            if not check_payable(current, external_charge_id):
                return PaymentApplication(order=current, applied=False)

            holder = (
                db.query(Order.id)
                .filter(Order.external_charge_id == external_charge_id, Order.id != order_id)
                .first()
            )
            if holder is not None:
                raise ChargeAlreadyUsedError(external_charge_id, holder.id)

            result = db.execute(
                update(Order)
                .where(Order.id == order_id, Order.paid.is_(False))
                .values(
                    status=OrderStatus.PAID.value,
                    paid=True,
                    paid_at=paid_at,
                    external_charge_id=external_charge_id,
                    updated_at=paid_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise OrderStoreError(f"Order {order_id} changed while confirming payment")

            order.receipt = OrderReceipt(id=uuid4().hex, receipt_url=receipt_url)
            db.flush()
            db.refresh(order, ["status", "paid", "paid_at", "external_charge_id", "updated_at"])

            return PaymentApplication(order=_to_record(order), applied=True)
