from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from services.orders.app.services.errors import ProductNotFoundError


@dataclass(frozen=True, slots=True)
class CatalogProduct:
    id: int
    name: str
    price: Decimal


class CatalogClient(Protocol):
    source: str

    def validate_products(self, product_ids: Sequence[int]) -> dict[int, CatalogProduct]:
        """Return one product per distinct id.

        Raises UpstreamUnavailableError on remote failure or timeout, ProductNotFoundError
        when any id is missing from the catalog response.
        """
        ...


def distinct_ids(product_ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(product_ids))


def index_products(
    requested_ids: Iterable[int], products: Iterable[CatalogProduct]
) -> dict[int, CatalogProduct]:
    by_id = {product.id: product for product in products}
    wanted = distinct_ids(requested_ids)

    missing = [pid for pid in wanted if pid not in by_id]
    if missing:
        raise ProductNotFoundError(missing)

    return {pid: by_id[pid] for pid in wanted}
