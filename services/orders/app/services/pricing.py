"""Order pricing.

Pure functions only: no I/O, no clock. Totals always come from catalog prices; any price the
client sends is ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from services.orders.app.services.catalog_base import CatalogProduct
from services.orders.app.services.errors import InvalidLineItemError, ProductNotFoundError


@dataclass(frozen=True, slots=True)
class LineItemRequest:
    product_id: int
    quantity: int


@dataclass(frozen=True, slots=True)
class PricedLine:
    product_id: int
    quantity: int
    price: Decimal
    name: str


@dataclass(frozen=True, slots=True)
class PricingResult:
    total_amount: Decimal
    total_items: int
    lines: list[PricedLine]


def validate_line_items(items: Sequence[LineItemRequest]) -> None:
    if not items:
        raise InvalidLineItemError("an order needs at least one item")

    for item in items:
        if isinstance(item.product_id, bool) or not isinstance(item.product_id, int):
            raise InvalidLineItemError("product_id must be an integer")
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
            raise InvalidLineItemError("quantity must be an integer", item.product_id)
        if item.quantity <= 0:
            raise InvalidLineItemError("quantity must be positive", item.product_id)


def price_order(
    items: Sequence[LineItemRequest], products: Mapping[int, CatalogProduct]
) -> PricingResult:
    validate_line_items(items)

    missing = [item.product_id for item in items if item.product_id not in products]
    if missing:
        raise ProductNotFoundError(missing)

    lines: list[PricedLine] = []
    total_amount = Decimal("0")
    total_items = 0
    for item in items:
        product = products[item.product_id]
        lines.append(
            PricedLine(
                product_id=item.product_id,
                quantity=item.quantity,
                price=product.price,
                name=product.name,
            )
        )
        total_amount += product.price * item.quantity
        total_items += item.quantity

    return PricingResult(total_amount=total_amount, total_items=total_items, lines=lines)
