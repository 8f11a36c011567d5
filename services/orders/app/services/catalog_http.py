from __future__ import annotations

import os
from collections.abc import Sequence

from packages.shared.schemas.catalog import CatalogProductV1, ValidateProductsRequestV1
from pydantic import ValidationError
from services.orders.app.services.catalog_base import CatalogProduct, distinct_ids, index_products
from services.orders.app.services.errors import ProductNotFoundError, UpstreamUnavailableError
from services.orders.app.services.http_rpc import RpcError, post_json


class CatalogHttpAdapter:
    """Catalog client speaking JSON over HTTP.

    Env vars:
    - ORDERS_CATALOG_CLIENT=http
    - ORDERS_CATALOG_BASE_URL (default: http://localhost:3001)
    - ORDERS_CATALOG_TIMEOUT_S (default: 5)
    """

    source = "CATALOG_HTTP"

    def __init__(self, *, base_url: str, timeout_s: float) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    @classmethod
    def from_env(cls) -> "CatalogHttpAdapter":
        return cls(
            base_url=os.getenv("ORDERS_CATALOG_BASE_URL", "http://localhost:3001"),
            timeout_s=float(os.getenv("ORDERS_CATALOG_TIMEOUT_S", "5")),
        )

    def validate_products(self, product_ids: Sequence[int]) -> dict[int, CatalogProduct]:
        ids = distinct_ids(product_ids)
        body = ValidateProductsRequestV1(ids=ids).model_dump()

        try:
            payload = post_json(
                f"{self._base_url}/products/validate", body, timeout=self._timeout_s
            )
        except RpcError as e:
            # The catalog answers 404 when it knows some ids do not exist.
            if e.status_code == 404:
                raise ProductNotFoundError(ids) from e
            raise UpstreamUnavailableError(str(e)) from e

        if not isinstance(payload, list):
            raise UpstreamUnavailableError(f"Unexpected catalog response shape: {payload!r}")

        try:
            products = [CatalogProductV1.model_validate(p) for p in payload]
        except ValidationError as e:
            raise UpstreamUnavailableError(f"Invalid catalog product payload: {e}") from e

        return index_products(
            ids,
            (CatalogProduct(id=p.id, name=p.name, price=p.price) for p in products),
        )
