from decimal import Decimal

import pytest

from retailpos.core.errors import ValidationError
from retailpos.models.product import Product
from retailpos.services import pricing_service


def _login(client, username: str = "admin", password: str = "admin") -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _product_with_sale(client, token: str) -> str:
    product_id = client.post(
        "/products",
        json={"name": "Product P", "category": "Electronics", "quantity": 10, "price": 100, "purchase_price": 60},
        headers=_auth_headers(token),
    ).json()["id"]
    sale = client.post(
        "/sales",
        json={
            "items": [{"product_id": product_id, "quantity": 3, "price": 100}],
            "discount": 10,
            "payment_received": 290,
        },
        headers=_auth_headers(token),
    )
    assert sale.status_code == 201, sale.text
    return product_id


def _add_expense(client, token: str, **overrides) -> str:
    payload = {"description": "Shop rent", "category": "rent", "amount": 50, "date": "2026-03-01"}
    payload.update(overrides)
    res = client.post("/expenses", json=payload, headers=_auth_headers(token))
    assert res.status_code == 201, res.text
    return res.json()["id"]


def test_net_profit_uses_remaining_stock():
    product = Product(quantity=7, price=Decimal("100"), purchase_price=Decimal("70"))
    assert pricing_service.net_profit(product) == Decimal("210.00")


def test_final_net_profit():
    assert pricing_service.final_net_profit(Decimal("90"), Decimal("75.50")) == Decimal("14.50")


def test_invalid_basis_is_rejected(db_session):
    with pytest.raises(ValidationError):
        pricing_service.pricing_rows(db_session, basis="average")


def test_real_profit_current_and_snapshot_basis(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _product_with_sale(client, token)

    price_update = client.patch(
        f"/pricing/products/{product_id}",
        json={"purchase_price": 70},
        headers=_auth_headers(token),
    )
    assert price_update.status_code == 200, price_update.text
    assert price_update.json()["purchase_price"] == 70.0
    assert price_update.json()["price"] == 100.0

    current = client.get(f"/pricing/products/{product_id}/real-profit", headers=_auth_headers(token))
    assert current.status_code == 200, current.text
    assert current.json()["units_sold"] == 3
    assert current.json()["real_profit"] == 90.0

    snapshot = client.get(
        f"/pricing/products/{product_id}/real-profit",
        params={"basis": "snapshot"},
        headers=_auth_headers(token),
    )
    assert snapshot.json()["real_profit"] == 120.0

    table = client.get("/pricing", headers=_auth_headers(token))
    assert table.status_code == 200, table.text
    row = table.json()["items"][0]
    assert row["quantity"] == 7
    assert row["total_purchase_value"] == 490.0
    assert row["total_selling_value"] == 700.0
    assert row["net_profit"] == 210.0
    assert row["real_profit"] == 90.0


def test_profit_summary_subtracts_expenses(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _product_with_sale(client, token)
    client.patch(f"/pricing/products/{product_id}", json={"purchase_price": 70}, headers=_auth_headers(token))
    _add_expense(client, token)
    _add_expense(client, token, description="Power bill", category="utilities", amount=25)

    res = client.get("/pricing/summary", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["basis"] == "current"
    assert body["total_net_profit"] == 210.0
    assert body["total_real_profit"] == 90.0
    assert body["total_expenses"] == 75.0
    assert body["final_net_profit"] == 15.0

    snapshot = client.get("/pricing/summary", params={"basis": "snapshot"}, headers=_auth_headers(token)).json()
    assert snapshot["final_net_profit"] == 45.0


def test_price_update_requires_a_field(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _product_with_sale(client, token)

    res = client.patch(f"/pricing/products/{product_id}", json={}, headers=_auth_headers(token))
    assert res.status_code == 422


def test_expense_crud_and_filters(test_context):
    client, _ = test_context
    token = _login(client)
    rent_id = _add_expense(client, token)
    _add_expense(client, token, description="Cables restock", category="stock", amount=120.5, date="2026-03-10")
    _add_expense(client, token, description="Old bill", category="utilities", amount=10, date="2026-01-05")

    march = client.get(
        "/expenses",
        params={"start_date": "2026-03-01", "end_date": "2026-03-31"},
        headers=_auth_headers(token),
    )
    assert march.status_code == 200, march.text
    assert march.json()["pagination"]["total"] == 2
    assert march.json()["total_amount"] == 170.5
    assert [row["description"] for row in march.json()["items"]] == ["Cables restock", "Shop rent"]

    rent_only = client.get("/expenses", params={"category": "rent"}, headers=_auth_headers(token))
    assert [row["id"] for row in rent_only.json()["items"]] == [rent_id]

    updated = client.patch(
        f"/expenses/{rent_id}",
        json={"amount": 55, "supplier": "Landlord"},
        headers=_auth_headers(token),
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["amount"] == 55.0
    assert updated.json()["supplier"] == "Landlord"

    summary = client.get("/expenses/summary", headers=_auth_headers(token))
    assert summary.status_code == 200, summary.text
    assert summary.json()["total"] == 185.5
    assert summary.json()["by_category"] == [
        {"category": "rent", "total": 55.0},
        {"category": "stock", "total": 120.5},
        {"category": "utilities", "total": 10.0},
    ]

    deleted = client.delete(f"/expenses/{rent_id}", headers=_auth_headers(token))
    assert deleted.status_code == 200, deleted.text
    missing = client.patch(f"/expenses/{rent_id}", json={"amount": 1}, headers=_auth_headers(token))
    assert missing.status_code == 404


def test_expense_validation(test_context):
    client, _ = test_context
    token = _login(client)

    negative = client.post(
        "/expenses",
        json={"description": "Refund", "category": "rent", "amount": -5},
        headers=_auth_headers(token),
    )
    assert negative.status_code == 422

    bad_range = client.get(
        "/expenses",
        params={"start_date": "2026-03-10", "end_date": "2026-03-01"},
        headers=_auth_headers(token),
    )
    assert bad_range.status_code == 400
    assert bad_range.json()["error"]["message"] == "end_date cannot be before start_date"
