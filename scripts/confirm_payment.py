"""Replay a payment-confirmation event against the local order store.

Useful when the payment service delivered an event that failed to persist and will not be
redelivered. Replaying is safe: a confirmation already applied with the same charge id is a
no-op.
"""

from __future__ import annotations

import argparse
import logging

from services.orders.app.db.database import db_session
from services.orders.app.db.init_db import init_db
from services.orders.app.services.errors import OrderServiceError
from services.orders.app.services.orchestrator_factory import build_orchestrator


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay an order-paid event")
    parser.add_argument("--order-id", required=True)
    parser.add_argument("--charge-id", required=True, help="External charge id")
    parser.add_argument("--receipt-url", required=True)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    init_db()

    db = db_session()
    try:
        orchestrator = build_orchestrator(db)
        order = orchestrator.confirm_payment(args.order_id, args.charge_id, args.receipt_url)
    except OrderServiceError as e:
        print(f"Payment confirmation failed: {e}")
        return 1
    finally:
        db.close()

    print(f"Order {order.id}: status={order.status.value} paid_at={order.paid_at}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
