from __future__ import annotations

import os

from services.orders.app.services.catalog_factory import get_catalog_client
from services.orders.app.services.order_store import OrderStore, SqlOrderStore
from services.orders.app.services.orchestrator import OrderOrchestrator
from services.orders.app.services.payment_factory import default_currency, get_payment_client
from services.orders.app.services.store import InMemoryOrderStore
from sqlalchemy.orm import Session

_MEMORY_STORE: InMemoryOrderStore | None = None


def get_order_store(db: Session) -> OrderStore:
    global _MEMORY_STORE

    mode = os.getenv("ORDERS_ORDER_STORE", "sql").strip().lower()

    if mode == "sql":
        return SqlOrderStore(db)

    if mode == "memory":
        # One store per process, otherwise every request would see an empty one.
        if _MEMORY_STORE is None:
            _MEMORY_STORE = InMemoryOrderStore()
        return _MEMORY_STORE

    raise ValueError(f"Unknown ORDERS_ORDER_STORE={mode!r}. Expected sql or memory.")


def build_orchestrator(db: Session) -> OrderOrchestrator:
    return OrderOrchestrator(
        catalog=get_catalog_client(),
        payments=get_payment_client(),
        store=get_order_store(db),
        currency=default_currency(),
    )
