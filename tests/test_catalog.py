from decimal import Decimal

import pytest
from sqlalchemy import select

from retailpos.core.errors import NotFoundError, ValidationError
from retailpos.models.activity import UserActivity
from retailpos.models.product import Category, Product
from retailpos.schemas.product import ProductCreate, ProductUpdate
from retailpos.services import catalog_service


def _login(client, username: str = "admin", password: str = "admin") -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _create_product(client, token: str, **overrides) -> str:
    payload = {
        "name": "USB-C Cable",
        "category": "Accessories",
        "supplier": "Cable Co",
        "quantity": 10,
        "price": 100.0,
        "purchase_price": 60.0,
    }
    payload.update(overrides)
    res = client.post("/products", json=payload, headers=_auth_headers(token))
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _add(db, **overrides) -> Product:
    payload = {"name": "Widget", "quantity": 10, "price": Decimal("100"), "purchase_price": Decimal("60")}
    payload.update(overrides)
    product = catalog_service.add_product(db, ProductCreate(**payload))
    db.flush()
    return product


def test_add_product_records_initial_stock(db_session):
    product = _add(db_session, quantity=10)

    history = catalog_service.get_quantity_history(db_session, product.id)
    assert len(history) == 1
    assert history[0].sequence == 1
    assert history[0].old_quantity == 0
    assert history[0].new_quantity == 10
    assert history[0].reason == "Initial stock"


def test_quantity_only_update_appends_one_history_entry(db_session):
    product = _add(db_session, name="Keyboard", supplier="Keys Ltd", quantity=10)

    catalog_service.update_product(db_session, product.id, ProductUpdate(quantity=25))
    db_session.flush()

    history = catalog_service.get_quantity_history(db_session, product.id)
    assert [(row.old_quantity, row.new_quantity) for row in history] == [(0, 10), (10, 25)]
    assert history[-1].reason == "Manual update"

    refreshed = catalog_service.get_product(db_session, product.id)
    assert refreshed.quantity == 25
    assert refreshed.name == "Keyboard"
    assert refreshed.supplier == "Keys Ltd"
    assert refreshed.price == Decimal("100.00")
    assert refreshed.purchase_price == Decimal("60.00")


def test_update_without_quantity_change_leaves_history_alone(db_session):
    product = _add(db_session, quantity=4)

    catalog_service.update_product(db_session, product.id, ProductUpdate(quantity=4, description="same stock"))
    catalog_service.update_product(db_session, product.id, ProductUpdate(name="Widget Pro"))
    db_session.flush()

    assert len(catalog_service.get_quantity_history(db_session, product.id)) == 1
    assert catalog_service.get_product(db_session, product.id).name == "Widget Pro"


def test_adjust_quantity_clamps_at_zero(db_session):
    product = _add(db_session, quantity=5)

    entry = catalog_service.adjust_quantity(db_session, product.id, 12, reason="Damaged")
    db_session.flush()

    assert entry.old_quantity == 5
    assert entry.new_quantity == 0
    assert catalog_service.get_product(db_session, product.id).quantity == 0
    assert len(catalog_service.get_quantity_history(db_session, product.id)) == 2


def test_adjust_quantity_rejects_negative_and_unknown(db_session):
    product = _add(db_session)

    with pytest.raises(ValidationError):
        catalog_service.adjust_quantity(db_session, product.id, -1, reason="Oops")
    with pytest.raises(NotFoundError):
        catalog_service.adjust_quantity(db_session, "missing", 1, reason="Oops")


def test_restock_adds_stock_and_rejects_zero(db_session):
    product = _add(db_session, quantity=3)

    entry = catalog_service.restock(db_session, product.id, 7)
    db_session.flush()
    assert (entry.old_quantity, entry.new_quantity, entry.reason) == (3, 10, "Restock")

    with pytest.raises(ValidationError):
        catalog_service.restock(db_session, product.id, 0)


def test_product_category_is_registered_once(db_session):
    _add(db_session, name="A", category="Cables")
    _add(db_session, name="B", category="cables")

    names = db_session.execute(select(Category.name)).scalars().all()
    assert names == ["Cables"]


def test_add_category_is_idempotent(db_session):
    first, created = catalog_service.add_category(db_session, "Gadgets")
    again, created_again = catalog_service.add_category(db_session, " gadgets ")

    assert created is True
    assert created_again is False
    assert again.id == first.id

    with pytest.raises(ValidationError):
        catalog_service.add_category(db_session, "   ")


def test_product_activity_defaults_to_system_actor(db_session):
    product = _add(db_session)

    row = db_session.execute(
        select(UserActivity).where(UserActivity.target_id == product.id)
    ).scalar_one()
    assert row.user_id == "system"
    assert row.action == "product.create"


def test_product_api_crud_and_history(test_context):
    client, _ = test_context
    token = _login(client)
    product_id = _create_product(client, token)

    get_res = client.get(f"/products/{product_id}", headers=_auth_headers(token))
    assert get_res.status_code == 200, get_res.text
    assert get_res.json()["quantity"] == 10
    assert get_res.json()["price"] == 100.0

    patch_res = client.patch(
        f"/products/{product_id}",
        json={"quantity": 15},
        headers=_auth_headers(token),
    )
    assert patch_res.status_code == 200, patch_res.text
    assert patch_res.json()["quantity"] == 15

    adjust_res = client.post(
        f"/products/{product_id}/adjust",
        json={"quantity": 20, "reason": "Stock take"},
        headers=_auth_headers(token),
    )
    assert adjust_res.status_code == 200, adjust_res.text
    assert adjust_res.json()["new_quantity"] == 0

    restock_res = client.post(
        f"/products/{product_id}/restock",
        json={"quantity": 5},
        headers=_auth_headers(token),
    )
    assert restock_res.status_code == 200, restock_res.text
    assert restock_res.json()["new_quantity"] == 5

    history_res = client.get(f"/products/{product_id}/history", headers=_auth_headers(token))
    assert history_res.status_code == 200, history_res.text
    history = history_res.json()["items"]
    assert [row["sequence"] for row in history] == [1, 2, 3, 4]
    assert [row["reason"] for row in history] == ["Initial stock", "Manual update", "Stock take", "Restock"]
    assert [(row["old_quantity"], row["new_quantity"]) for row in history] == [(0, 10), (10, 15), (15, 0), (0, 5)]


def test_product_list_search_and_low_stock(test_context):
    client, _ = test_context
    token = _login(client)
    _create_product(client, token, name="HDMI Cable", quantity=2, supplier="AV House")
    _create_product(client, token, name="Mouse", category="Peripherals", quantity=30)

    search_res = client.get("/products", params={"search": "hdmi"}, headers=_auth_headers(token))
    assert search_res.status_code == 200, search_res.text
    assert [row["name"] for row in search_res.json()["items"]] == ["HDMI Cable"]

    category_res = client.get("/products", params={"category": "peripherals"}, headers=_auth_headers(token))
    assert [row["name"] for row in category_res.json()["items"]] == ["Mouse"]

    low_res = client.get("/products/low-stock", params={"threshold": 5}, headers=_auth_headers(token))
    assert low_res.status_code == 200, low_res.text
    assert low_res.json()["threshold"] == 5
    assert [row["name"] for row in low_res.json()["items"]] == ["HDMI Cable"]


def test_categories_seeded_on_bootstrap(test_context):
    client, _ = test_context
    token = _login(client)

    res = client.get("/categories", headers=_auth_headers(token))
    assert res.status_code == 200, res.text
    names = {row["name"] for row in res.json()}
    assert {"Electronics", "Accessories", "Components", "Other"} <= names

    add_res = client.post("/categories", json={"name": "Cables"}, headers=_auth_headers(token))
    assert add_res.status_code == 200, add_res.text
    again = client.post("/categories", json={"name": "cables"}, headers=_auth_headers(token))
    assert again.json()["id"] == add_res.json()["id"]


def test_product_validation_and_missing(test_context):
    client, _ = test_context
    token = _login(client)

    bad = client.post(
        "/products",
        json={"name": "Broken", "quantity": -1, "price": 10},
        headers=_auth_headers(token),
    )
    assert bad.status_code == 422
    assert bad.json()["error"]["code"] == "validation_error"

    missing = client.get("/products/does-not-exist", headers=_auth_headers(token))
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Product not found"
