from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from services.orders.app.services.catalog_base import CatalogProduct, distinct_ids, index_products


class CatalogMockAdapter:
    source = "CATALOG_MOCK"

    def __init__(self, products: dict[int, tuple[str, str]] | None = None) -> None:
        raw = products if products is not None else {
            1: ("Mouse", "150.00"),
            2: ("Keyboard", "80.00"),
            3: ("Monitor", "250.00"),
            4: ("Headphones", "75.50"),
            5: ("USB Cable", "9.99"),
        }
        self._catalog = {
            pid: CatalogProduct(id=pid, name=name, price=Decimal(price))
            for pid, (name, price) in raw.items()
        }

    def validate_products(self, product_ids: Sequence[int]) -> dict[int, CatalogProduct]:
        found = [self._catalog[pid] for pid in distinct_ids(product_ids) if pid in self._catalog]
        return index_products(product_ids, found)
