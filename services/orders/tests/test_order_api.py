from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    db_path = tmp_path / "orders_api.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("ORDERS_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("ORDERS_CATALOG_CLIENT", "mock")
    monkeypatch.setenv("ORDERS_PAYMENT_CLIENT", "mock")
    monkeypatch.setenv("ORDERS_ORDER_STORE", "sql")

    from services.orders.app.main import app

    with TestClient(app) as c:
        yield c


def _create(client: TestClient, items: list[dict]) -> dict:
    resp = client.post("/v1/orders", json={"items": items})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_create_order_prices_from_catalog(client: TestClient) -> None:
    data = _create(
        client,
        [
            {"product_id": 1, "quantity": 2, "price": 0.01},
            {"product_id": 2, "quantity": 1},
        ],
    )

    order = data["order"]
    # Mock catalog: Mouse 150.00, Keyboard 80.00.
    assert order["total_amount"] == 380.0
    assert order["total_items"] == 3
    assert order["status"] == "PENDING"
    assert order["paid"] is False
    assert [(i["name"], i["price"]) for i in order["items"]] == [
        ("Mouse", 150.0),
        ("Keyboard", 80.0),
    ]

    session = data["payment_session"]
    assert session["url"].startswith("https://")
    assert order["id"] in session["success_url"]


def test_create_order_rejects_empty_items(client: TestClient) -> None:
    resp = client.post("/v1/orders", json={"items": []})
    assert resp.status_code == 400
    assert "at least one item" in resp.json()["detail"]


def test_create_order_rejects_zero_quantity(client: TestClient) -> None:
    resp = client.post("/v1/orders", json={"items": [{"product_id": 1, "quantity": 0}]})
    assert resp.status_code == 400


def test_create_order_rejects_malformed_payload(client: TestClient) -> None:
    resp = client.post("/v1/orders", json={"items": [{"product_id": "abc", "quantity": 1}]})
    assert resp.status_code == 422


def test_create_order_unknown_product_is_404(client: TestClient) -> None:
    resp = client.post("/v1/orders", json={"items": [{"product_id": 999, "quantity": 1}]})
    assert resp.status_code == 404
    assert "999" in resp.json()["detail"]

    listing = client.get("/v1/orders").json()
    assert listing["meta"]["total"] == 0


def test_get_order_returns_names(client: TestClient) -> None:
    created = _create(client, [{"product_id": 3, "quantity": 1}])["order"]

    resp = client.get(f"/v1/orders/{created['id']}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == created["id"]
    assert data["items"][0]["name"] == "Monitor"
    assert data["total_amount"] == 250.0


def test_get_order_missing_is_404(client: TestClient) -> None:
    resp = client.get("/v1/orders/missing")
    assert resp.status_code == 404


def test_list_orders_page_past_the_end(client: TestClient) -> None:
    for _ in range(5):
        _create(client, [{"product_id": 5, "quantity": 1}])

    resp = client.get("/v1/orders", params={"page": 3, "limit": 2})
    assert resp.status_code == 200
    assert resp.json()["data"] != []

    resp = client.get("/v1/orders", params={"page": 4, "limit": 2})
    assert resp.status_code == 200
    assert resp.json() == {"data": [], "meta": {"total": 5, "page": 4, "last_page": 3}}


def test_list_orders_filters_by_status(client: TestClient) -> None:
    first = _create(client, [{"product_id": 1, "quantity": 1}])["order"]
    _create(client, [{"product_id": 2, "quantity": 1}])
    client.patch(f"/v1/orders/{first['id']}/status", json={"status": "CANCELLED"})

    data = client.get("/v1/orders", params={"status": "CANCELLED"}).json()
    assert [o["id"] for o in data["data"]] == [first["id"]]
    assert data["meta"] == {"total": 1, "page": 1, "last_page": 1}


def test_list_orders_validates_query(client: TestClient) -> None:
    assert client.get("/v1/orders", params={"page": 0}).status_code == 422
    assert client.get("/v1/orders", params={"limit": 0}).status_code == 422
    assert client.get("/v1/orders", params={"status": "SHIPPED"}).status_code == 422


def test_change_status_same_status_is_noop(client: TestClient) -> None:
    created = _create(client, [{"product_id": 1, "quantity": 1}])["order"]

    resp = client.patch(f"/v1/orders/{created['id']}/status", json={"status": "PENDING"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "PENDING"
    assert resp.json()["updated_at"] == created["updated_at"]


def test_change_status_illegal_transition_is_400(client: TestClient) -> None:
    created = _create(client, [{"product_id": 1, "quantity": 1}])["order"]

    resp = client.patch(f"/v1/orders/{created['id']}/status", json={"status": "DELIVERED"})
    assert resp.status_code == 400

    assert client.get(f"/v1/orders/{created['id']}").json()["status"] == "PENDING"


def test_change_status_missing_order_is_404(client: TestClient) -> None:
    resp = client.patch("/v1/orders/missing/status", json={"status": "CANCELLED"})
    assert resp.status_code == 404


def test_paid_webhook_is_idempotent(client: TestClient) -> None:
    created = _create(client, [{"product_id": 1, "quantity": 1}])["order"]
    event = {
        "order_id": created["id"],
        "external_charge_id": "ch_123",
        "receipt_url": "https://receipts.test/ch_123",
    }

    first = client.post("/v1/orders/paid", json=event)
    second = client.post("/v1/orders/paid", json=event)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json() == second.json()
    assert first.json()["status"] == "PAID"
    assert first.json()["paid"] is True
    assert first.json()["receipt"]["receipt_url"] == "https://receipts.test/ch_123"

    from services.orders.app.db.database import db_session
    from services.orders.app.db.models import OrderReceipt

    db = db_session()
    try:
        assert db.query(OrderReceipt).filter(OrderReceipt.order_id == created["id"]).count() == 1
    finally:
        db.close()


def test_paid_webhook_with_other_charge_is_409(client: TestClient) -> None:
    created = _create(client, [{"product_id": 1, "quantity": 1}])["order"]
    client.post(
        "/v1/orders/paid",
        json={"order_id": created["id"], "external_charge_id": "ch_1", "receipt_url": "https://r/1"},
    )

    resp = client.post(
        "/v1/orders/paid",
        json={"order_id": created["id"], "external_charge_id": "ch_2", "receipt_url": "https://r/2"},
    )
    assert resp.status_code == 409


def test_paid_webhook_after_manual_paid_status(client: TestClient) -> None:
    created = _create(client, [{"product_id": 1, "quantity": 1}])["order"]
    resp = client.patch(f"/v1/orders/{created['id']}/status", json={"status": "PAID"})
    assert resp.status_code == 200
    assert resp.json()["paid"] is False

    resp = client.post(
        "/v1/orders/paid",
        json={"order_id": created["id"], "external_charge_id": "ch_1", "receipt_url": "https://r/1"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "PAID"
    assert body["paid"] is True
    assert body["receipt"]["receipt_url"] == "https://r/1"


def test_paid_webhook_reusing_charge_of_other_order_is_409(client: TestClient) -> None:
    first = _create(client, [{"product_id": 1, "quantity": 1}])["order"]
    second = _create(client, [{"product_id": 2, "quantity": 1}])["order"]
    client.post(
        "/v1/orders/paid",
        json={"order_id": first["id"], "external_charge_id": "ch_1", "receipt_url": "https://r/1"},
    )

    event = {"order_id": second["id"], "external_charge_id": "ch_1", "receipt_url": "https://r/1"}
    assert client.post("/v1/orders/paid", json=event).status_code == 409
    assert client.post("/v1/orders/paid", json=event).status_code == 409

    assert client.get(f"/v1/orders/{second['id']}").json()["paid"] is False


def test_paid_webhook_unknown_order_is_404(client: TestClient) -> None:
    resp = client.post(
        "/v1/orders/paid",
        json={"order_id": "missing", "external_charge_id": "ch_1", "receipt_url": "https://r/1"},
    )
    assert resp.status_code == 404


def test_payment_session_can_be_requested_again_while_pending(client: TestClient) -> None:
    created = _create(client, [{"product_id": 4, "quantity": 2}])["order"]

    resp = client.post(f"/v1/orders/{created['id']}/payment-session")
    assert resp.status_code == 200
    assert resp.json()["url"].startswith("https://")


def test_payment_session_for_paid_order_is_409(client: TestClient) -> None:
    created = _create(client, [{"product_id": 4, "quantity": 2}])["order"]
    client.post(
        "/v1/orders/paid",
        json={"order_id": created["id"], "external_charge_id": "ch_9", "receipt_url": "https://r/9"},
    )

    resp = client.post(f"/v1/orders/{created['id']}/payment-session")
    assert resp.status_code == 409
