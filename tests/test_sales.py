from decimal import Decimal

import pytest
from sqlalchemy import func, select

from retailpos.core.errors import ValidationError
from retailpos.models.sales import Sale
from retailpos.services import sales_service
from retailpos.services.sales_service import SaleLine


def _login(client, username: str = "admin", password: str = "admin") -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_product(client, token: str, **overrides) -> str:
    payload = {"name": "Product P", "quantity": 10, "price": 100.0, "purchase_price": 60.0}
    payload.update(overrides)
    res = client.post("/products", json=payload, headers=_auth_headers(token))
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _sell(client, token: str, product_id: str, *, quantity: int = 1, discount: float = 0, payment: float = 1000):
    return client.post(
        "/sales",
        json={
            "items": [{"product_id": product_id, "quantity": quantity}],
            "discount": discount,
            "payment_received": payment,
        },
        headers=_auth_headers(token),
    )


def test_compute_totals():
    lines = [
        SaleLine(product_id="a", quantity=3, price=Decimal("100")),
        SaleLine(product_id="b", quantity=1, price=Decimal("19.99")),
    ]
    subtotal, discount, total, change = sales_service.compute_totals(lines, Decimal("9.99"), Decimal("400"))

    assert subtotal == Decimal("319.99")
    assert discount == Decimal("9.99")
    assert total == Decimal("310.00")
    assert change == Decimal("90.00")


@pytest.mark.parametrize(
    "discount,payment",
    [
        (Decimal("301"), Decimal("1000")),
        (Decimal("10"), Decimal("289.99")),
    ],
)
def test_compute_totals_rejects_bad_discount_or_payment(discount, payment):
    lines = [SaleLine(product_id="a", quantity=3, price=Decimal("100"))]
    with pytest.raises(ValidationError):
        sales_service.compute_totals(lines, discount, payment)


def test_sale_rejects_short_payment_then_records_exact_payment(test_context):
    client, session_local = test_context
    token = _login(client)
    product_id = _create_product(client, token)

    rejected = client.post(
        "/sales",
        json={
            "items": [{"product_id": product_id, "quantity": 3, "price": 100}],
            "discount": 10,
            "payment_received": 280,
        },
        headers=_auth_headers(token),
    )
    assert rejected.status_code == 400, rejected.text
    assert rejected.json()["error"]["message"] == "Payment received is less than the sale total"

    unchanged = client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()
    assert unchanged["quantity"] == 10
    history = client.get(f"/products/{product_id}/history", headers=_auth_headers(token)).json()["items"]
    assert len(history) == 1

    accepted = client.post(
        "/sales",
        json={
            "items": [{"product_id": product_id, "quantity": 3, "price": 100}],
            "discount": 10,
            "payment_received": 290,
        },
        headers=_auth_headers(token),
    )
    assert accepted.status_code == 201, accepted.text
    sale = accepted.json()
    assert sale["subtotal"] == 300.0
    assert sale["discount"] == 10.0
    assert sale["total"] == 290.0
    assert sale["change"] == 0.0
    assert sale["cashier"] == "admin"
    assert sale["items"][0]["line_total"] == 300.0
    assert sale["items"][0]["purchase_price"] == 60.0

    product = client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()
    assert product["quantity"] == 7
    history = client.get(f"/products/{product_id}/history", headers=_auth_headers(token)).json()["items"]
    assert len(history) == 2
    assert history[-1]["old_quantity"] == 10
    assert history[-1]["new_quantity"] == 7
    assert history[-1]["reason"] == "Sale"
    assert history[-1]["reference_id"] == sale["id"]

    db = session_local()
    try:
        assert db.execute(select(func.count(Sale.id))).scalar_one() == 1
    finally:
        db.close()


def test_sale_price_defaults_to_product_price(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token, price=45.5)

    res = _sell(client, token, product_id, quantity=2, payment=100)
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["subtotal"] == 91.0
    assert body["change"] == 9.0
    assert body["items"][0]["product_name"] == "Product P"


def test_sale_rejects_insufficient_stock_and_unknown_product(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token, quantity=2)

    short = _sell(client, token, product_id, quantity=3)
    assert short.status_code == 400
    assert "Insufficient stock" in short.json()["error"]["message"]

    unknown = _sell(client, token, "no-such-product")
    assert unknown.status_code == 400
    assert unknown.json()["error"]["message"] == "Product not found: no-such-product"

    too_much_discount = _sell(client, token, product_id, quantity=1, discount=150)
    assert too_much_discount.status_code == 400

    product = client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()
    assert product["quantity"] == 2


def test_sale_lines_for_same_product_share_the_stock_check(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token, quantity=4)

    res = client.post(
        "/sales",
        json={
            "items": [
                {"product_id": product_id, "quantity": 3},
                {"product_id": product_id, "quantity": 2},
            ],
            "payment_received": 1000,
        },
        headers=_auth_headers(token),
    )
    assert res.status_code == 400, res.text


def test_deleted_product_renders_as_unknown(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    sale_id = _sell(client, token, product_id).json()["id"]

    delete_res = client.delete(f"/products/{product_id}", headers=_auth_headers(token))
    assert delete_res.status_code == 200, delete_res.text

    sale = client.get(f"/sales/{sale_id}", headers=_auth_headers(token))
    assert sale.status_code == 200, sale.text
    assert sale.json()["items"][0]["product_name"] == "Unknown product"

    orphaned = client.get("/pricing/orphaned-sale-items", headers=_auth_headers(token))
    assert orphaned.status_code == 200, orphaned.text
    assert [row["sale_id"] for row in orphaned.json()] == [sale_id]


def test_list_sales_filters_and_search(test_context):
    client, _ = test_context
    token = _login(client)
    cable_id = _create_product(client, token, name="Cable")
    mouse_id = _create_product(client, token, name="Mouse")
    _sell(client, token, cable_id)
    _sell(client, token, mouse_id)

    all_sales = client.get("/sales", headers=_auth_headers(token))
    assert all_sales.status_code == 200, all_sales.text
    assert all_sales.json()["pagination"]["total"] == 2

    by_product = client.get("/sales", params={"search": "mouse"}, headers=_auth_headers(token))
    assert by_product.json()["pagination"]["total"] == 1
    assert by_product.json()["items"][0]["items"][0]["product_name"] == "Mouse"

    by_cashier = client.get("/sales", params={"cashier": "nobody"}, headers=_auth_headers(token))
    assert by_cashier.json()["pagination"]["total"] == 0

    bad_range = client.get(
        "/sales",
        params={"start_date": "2026-02-10", "end_date": "2026-02-01"},
        headers=_auth_headers(token),
    )
    assert bad_range.status_code == 400


def test_receipt_pdf(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    sale_id = _sell(client, token, product_id).json()["id"]

    res = client.get(f"/sales/{sale_id}/receipt.pdf", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF-1.4")
    assert b"Receipt: " in res.content


def test_clear_sales_keeps_stock(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)
    _sell(client, token, product_id, quantity=2)

    res = client.delete("/sales", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    assert res.json()["deleted"] == 1

    assert client.get("/sales", headers=_auth_headers(token)).json()["pagination"]["total"] == 0
    assert client.get(f"/products/{product_id}", headers=_auth_headers(token)).json()["quantity"] == 8
