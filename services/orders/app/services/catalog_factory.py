from __future__ import annotations

import os

from services.orders.app.services.catalog_base import CatalogClient
from services.orders.app.services.catalog_mock import CatalogMockAdapter


def get_catalog_client() -> CatalogClient:
    """Select a catalog client based on env vars.

    Defaults to the mock client so tests and local dev are deterministic unless explicitly
    configured otherwise.
    """

    mode = os.getenv("ORDERS_CATALOG_CLIENT", "mock").strip().lower()

    if mode == "mock":
        return CatalogMockAdapter()

    if mode == "http":
        from services.orders.app.services.catalog_http import CatalogHttpAdapter

        return CatalogHttpAdapter.from_env()

    raise ValueError(f"Unknown ORDERS_CATALOG_CLIENT={mode!r}. Expected mock or http.")
