"""Orders service entrypoint."""

import logging
import os

from fastapi import FastAPI

from services.orders.app.db.init_db import init_db
from services.orders.app.routers.order import router as order_router

logging.basicConfig(
    level=os.getenv("ORDERS_LOG_LEVEL", "INFO").strip().upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(title="Orders API")

app.include_router(order_router)


@app.on_event("startup")
def _startup() -> None:
    init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
