from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from packages.shared.schemas.payment import OrderPaidEventV1, PaymentSessionV1
from services.orders.app.db.deps import get_db
from services.orders.app.models.order import (
    ChangeOrderStatusRequest,
    CreateOrderRequest,
    OrderCreatedResponse,
    OrderItemOut,
    OrderListResponse,
    OrderOut,
    OrderReceiptOut,
    OrderStatus,
    PaginationMeta,
)
from services.orders.app.services.errors import (
    ChargeAlreadyUsedError,
    InvalidLineItemError,
    InvalidStatusTransitionError,
    OrderAlreadyPaidError,
    OrderCreationFailedError,
    OrderNotFoundError,
    OrderStoreError,
    PaymentReconciliationFailedError,
    PaymentSessionFailedError,
    ProductNotFoundError,
    UpstreamUnavailableError,
)
from services.orders.app.services.order_store import OrderRecord
from services.orders.app.services.orchestrator import OrderLine, OrderOrchestrator
from services.orders.app.services.orchestrator_factory import build_orchestrator
from services.orders.app.services.pricing import LineItemRequest
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

router = APIRouter()

_GATEWAY_ERRORS = (
    UpstreamUnavailableError,
    PaymentSessionFailedError,
    PaymentReconciliationFailedError,
    OrderCreationFailedError,
    OrderStoreError,
)


def _raise_order_http_error(e: Exception) -> NoReturn:
    if isinstance(e, HTTPException):
        raise e

    if isinstance(e, (InvalidLineItemError, InvalidStatusTransitionError)):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, (OrderNotFoundError, ProductNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e)) from e

    if isinstance(e, (OrderAlreadyPaidError, ChargeAlreadyUsedError)):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, _GATEWAY_ERRORS):
        # Details stay in the log; callers only learn that a dependency failed.
        if isinstance(e, OrderStoreError):
            logger.error("Order store failure", exc_info=e)
        raise HTTPException(status_code=502, detail="Check logs") from e

    logger.error("Unhandled error in orders router", exc_info=e)
    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def get_orchestrator(db: Session = Depends(get_db)) -> OrderOrchestrator:
    try:
        return build_orchestrator(db)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def _order_out(order: OrderRecord, lines: list[OrderLine] | None = None) -> OrderOut:
    if lines is None:
        items = [
            OrderItemOut(product_id=i.product_id, quantity=i.quantity, price=float(i.price))
            for i in order.items
        ]
    else:
        items = [
            OrderItemOut(
                product_id=line.product_id,
                quantity=line.quantity,
                price=float(line.price),
                name=line.name,
            )
            for line in lines
        ]

    receipt = None
    if order.receipt is not None:
        receipt = OrderReceiptOut(
            receipt_url=order.receipt.receipt_url,
            created_at=order.receipt.created_at.isoformat(),
        )

    return OrderOut(
        id=order.id,
        status=order.status,
        total_amount=float(order.total_amount),
        total_items=order.total_items,
        paid=order.paid,
        paid_at=order.paid_at.isoformat() if order.paid_at else None,
        external_charge_id=order.external_charge_id,
        created_at=order.created_at.isoformat(),
        updated_at=order.updated_at.isoformat(),
        items=items,
        receipt=receipt,
    )


@router.post("/v1/orders", response_model=OrderCreatedResponse, status_code=201)
def create_order(
    payload: CreateOrderRequest,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderCreatedResponse:
    items = [LineItemRequest(product_id=i.product_id, quantity=i.quantity) for i in payload.items]

    try:
        view = orchestrator.create(items)
    except Exception as e:
        _raise_order_http_error(e)

    # The order is committed at this point. If the session request fails the caller can
    # retry it alone through /v1/orders/{order_id}/payment-session.
    try:
        session = orchestrator.request_payment_session(view)
    except Exception as e:
        _raise_order_http_error(e)

    return OrderCreatedResponse(order=_order_out(view.order, view.lines), payment_session=session)


@router.get("/v1/orders", response_model=OrderListResponse)
def list_orders(
    status: OrderStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderListResponse:
    try:
        result = orchestrator.list_orders(status=status, page=page, limit=limit)
    except Exception as e:
        _raise_order_http_error(e)

    return OrderListResponse(
        data=[_order_out(order) for order in result.data],
        meta=PaginationMeta(total=result.total, page=result.page, last_page=result.last_page),
    )


@router.get("/v1/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderOut:
    try:
        view = orchestrator.get(order_id)
    except Exception as e:
        _raise_order_http_error(e)

    return _order_out(view.order, view.lines)


@router.patch("/v1/orders/{order_id}/status", response_model=OrderOut)
def change_order_status(
    order_id: str,
    payload: ChangeOrderStatusRequest,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderOut:
    try:
        order = orchestrator.change_status(order_id, payload.status)
    except Exception as e:
        _raise_order_http_error(e)

    return _order_out(order)


@router.post("/v1/orders/{order_id}/payment-session", response_model=PaymentSessionV1)
def request_payment_session(
    order_id: str,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> PaymentSessionV1:
    try:
        view = orchestrator.get(order_id)
        if view.order.status != OrderStatus.PENDING:
            raise HTTPException(
                status_code=409,
                detail=f"Order {order_id} is {view.order.status.value}, not PENDING",
            )
        return orchestrator.request_payment_session(view)
    except Exception as e:
        _raise_order_http_error(e)


@router.post("/v1/orders/paid", response_model=OrderOut)
def order_paid_webhook(
    payload: OrderPaidEventV1,
    orchestrator: OrderOrchestrator = Depends(get_orchestrator),
) -> OrderOut:
    try:
        order = orchestrator.confirm_payment(
            payload.order_id, payload.external_charge_id, payload.receipt_url
        )
    except Exception as e:
        _raise_order_http_error(e)

    return _order_out(order)
