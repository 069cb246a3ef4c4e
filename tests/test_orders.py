import pytest
from sqlalchemy import func, select

from retailpos.core.errors import ValidationError
from retailpos.models.sales import Sale
from retailpos.services.order_service import ensure_transition_allowed


def _login(client, username: str = "admin", password: str = "admin") -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_product(client, token: str, **overrides) -> str:
    payload = {"name": "Desk Lamp", "quantity": 10, "price": 100.0, "purchase_price": 60.0}
    payload.update(overrides)
    res = client.post("/products", json=payload, headers=_auth_headers(token))
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _order_payload(product_id: str, **overrides) -> dict:
    payload = {
        "customer_name": "Ada Buyer",
        "contact_number": "0803 555 0101",
        "email": "ada@example.com",
        "delivery_address": "12 Market Road",
        "items": [{"product_id": product_id, "quantity": 2, "price": 100}],
        "payment_method": "cash",
        "discount": 20,
        "advance_payment": 50,
    }
    payload.update(overrides)
    return payload


def _create_order(client, token: str, product_id: str, **overrides) -> dict:
    res = client.post("/orders", json=_order_payload(product_id, **overrides), headers=_auth_headers(token))
    assert res.status_code == 201, res.text
    return res.json()


def _sale_count(session_local) -> int:
    db = session_local()
    try:
        return db.execute(select(func.count(Sale.id))).scalar_one()
    finally:
        db.close()


@pytest.mark.parametrize(
    "current,target",
    [
        ("pending", "processing"),
        ("pending", "completed"),
        ("pending", "cancelled"),
        ("processing", "completed"),
        ("processing", "cancelled"),
        ("completed", "completed"),
    ],
)
def test_allowed_transitions(current, target):
    ensure_transition_allowed(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("processing", "pending"),
        ("completed", "pending"),
        ("completed", "cancelled"),
        ("cancelled", "processing"),
    ],
)
def test_rejected_transitions(current, target):
    with pytest.raises(ValidationError):
        ensure_transition_allowed(current, target)


def test_create_order_prices_items(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)

    order = _create_order(client, token, product_id)
    assert order["status"] == "pending"
    assert order["subtotal"] == 200.0
    assert order["discount"] == 20.0
    assert order["final_amount"] == 180.0
    assert order["advance_payment"] == 50.0
    assert order["balance_due"] == 130.0
    assert order["created_by"] == "admin"
    assert order["sale_id"] is None
    assert order["items"][0]["product_name"] == "Desk Lamp"

    product = client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()
    assert product["quantity"] == 10


def test_complete_order_is_idempotent(test_context):
    client, session_local = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    order = _create_order(client, token, product_id)

    first = client.post(f"/orders/{order['id']}/complete", headers=_auth_headers(token))
    assert first.status_code == 200, first.text
    assert first.json()["status"] == "completed"
    sale_id = first.json()["sale_id"]
    assert sale_id

    second = client.post(f"/orders/{order['id']}/complete", headers=_auth_headers(token))
    assert second.status_code == 200, second.text
    assert second.json()["sale_id"] == sale_id

    assert _sale_count(session_local) == 1
    product = client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()
    assert product["quantity"] == 8
    history = client.get(f"/products/{product_id}/history", headers=_auth_headers(token)).json()["items"]
    assert len(history) == 2
    assert history[-1]["reason"] == "Order completed"
    assert history[-1]["reference_id"] == sale_id

    sale = client.get(f"/sales/{sale_id}", headers=_auth_headers(token)).json()
    assert sale["order_id"] == order["id"]
    assert sale["total"] == 180.0
    assert sale["payment_received"] == 180.0
    assert sale["change"] == 0.0


def test_status_patch_to_completed_goes_through_completion(test_context):
    client, session_local = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    order = _create_order(client, token, product_id)

    processing = client.patch(
        f"/orders/{order['id']}", json={"status": "processing"}, headers=_auth_headers(token)
    )
    assert processing.status_code == 200, processing.text
    assert processing.json()["status"] == "processing"

    completed = client.patch(
        f"/orders/{order['id']}", json={"status": "completed"}, headers=_auth_headers(token)
    )
    assert completed.status_code == 200, completed.text
    assert completed.json()["sale_id"]

    again = client.patch(
        f"/orders/{order['id']}", json={"status": "completed"}, headers=_auth_headers(token)
    )
    assert again.status_code == 200, again.text
    assert again.json()["sale_id"] == completed.json()["sale_id"]

    assert _sale_count(session_local) == 1
    assert client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()["quantity"] == 8


def test_order_created_completed_becomes_sale(test_context):
    client, session_local = test_context
    token = _login(client)
    product_id = _create_product(client, token)

    order = _create_order(client, token, product_id, status="completed", advance_payment=500)
    assert order["status"] == "completed"
    assert order["sale_id"]
    assert order["balance_due"] == 0.0

    sale = client.get(f"/sales/{order['sale_id']}", headers=_auth_headers(token)).json()
    assert sale["payment_received"] == 500.0
    assert sale["change"] == 320.0
    assert _sale_count(session_local) == 1


def test_terminal_order_only_accepts_notes(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    order = _create_order(client, token, product_id)

    cancelled = client.patch(
        f"/orders/{order['id']}", json={"status": "cancelled"}, headers=_auth_headers(token)
    )
    assert cancelled.status_code == 200, cancelled.text

    reopen = client.patch(
        f"/orders/{order['id']}", json={"status": "processing"}, headers=_auth_headers(token)
    )
    assert reopen.status_code == 400

    edit = client.patch(
        f"/orders/{order['id']}", json={"customer_name": "Someone Else"}, headers=_auth_headers(token)
    )
    assert edit.status_code == 400

    notes = client.patch(
        f"/orders/{order['id']}", json={"notes": "Customer changed mind"}, headers=_auth_headers(token)
    )
    assert notes.status_code == 200, notes.text
    assert notes.json()["notes"] == "Customer changed mind"

    complete = client.post(f"/orders/{order['id']}/complete", headers=_auth_headers(token))
    assert complete.status_code == 400


def test_completion_without_stock_leaves_order_pending(test_context):
    client, session_local = test_context
    token = _login(client)
    product_id = _create_product(client, token, quantity=1)
    order = _create_order(client, token, product_id)

    res = client.post(f"/orders/{order['id']}/complete", headers=_auth_headers(token))
    assert res.status_code == 400
    assert "Insufficient stock" in res.json()["error"]["message"]

    reloaded = client.get(f"/orders/{order['id']}", headers=_auth_headers(token)).json()
    assert reloaded["status"] == "pending"
    assert reloaded["sale_id"] is None
    assert _sale_count(session_local) == 0


def test_update_items_recomputes_totals(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    order = _create_order(client, token, product_id)

    res = client.patch(
        f"/orders/{order['id']}",
        json={"items": [{"product_id": product_id, "quantity": 3, "price": 90}], "discount": 0},
        headers=_auth_headers(token),
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["subtotal"] == 270.0
    assert body["final_amount"] == 270.0
    assert body["balance_due"] == 220.0
    assert [item["quantity"] for item in body["items"]] == [3]


def test_order_validation(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)

    short_contact = client.post(
        "/orders", json=_order_payload(product_id, contact_number="123"), headers=_auth_headers(token)
    )
    assert short_contact.status_code == 422

    no_items = client.post("/orders", json=_order_payload(product_id, items=[]), headers=_auth_headers(token))
    assert no_items.status_code == 422

    unknown_product = client.post(
        "/orders",
        json=_order_payload(product_id, items=[{"product_id": "ghost", "quantity": 1, "price": 5}]),
        headers=_auth_headers(token),
    )
    assert unknown_product.status_code == 400

    blank_email = client.post("/orders", json=_order_payload(product_id, email=""), headers=_auth_headers(token))
    assert blank_email.status_code == 201, blank_email.text
    assert blank_email.json()["email"] is None


def test_open_order_blocks_product_delete(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    order = _create_order(client, token, product_id)

    blocked = client.delete(f"/products/{product_id}", headers=_auth_headers(token))
    assert blocked.status_code == 409
    assert blocked.json()["error"]["code"] == "conflict"

    client.patch(f"/orders/{order['id']}", json={"status": "cancelled"}, headers=_auth_headers(token))
    allowed = client.delete(f"/products/{product_id}", headers=_auth_headers(token))
    assert allowed.status_code == 200, allowed.text


def test_list_and_delete_orders(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    first = _create_order(client, token, product_id)
    _create_order(client, token, product_id, customer_name="Bola Client", email="bola@example.com", status="processing")

    processing = client.get("/orders", params={"status": "processing"}, headers=_auth_headers(token))
    assert processing.status_code == 200, processing.text
    assert [row["customer_name"] for row in processing.json()["items"]] == ["Bola Client"]

    search = client.get("/orders", params={"search": "ada"}, headers=_auth_headers(token))
    assert search.json()["pagination"]["total"] == 1

    deleted = client.delete(f"/orders/{first['id']}", headers=_auth_headers(token))
    assert deleted.status_code == 200, deleted.text
    missing = client.get(f"/orders/{first['id']}", headers=_auth_headers(token))
    assert missing.status_code == 404
