import pytest

from retailpos.core.permissions import PERMISSION_KEYS, has_permission, permission_snapshot

USER_DENIED = {"users.manage", "inventory.manage", "prices.manage", "settings.manage"}


def _login(client, username: str, password: str) -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _cashier_and_admin(client) -> tuple[str, str]:
    admin_token = _login(client, "admin", "admin")
    res = client.post(
        "/users",
        json={
            "username": "cashier1",
            "password": "password123",
            "full_name": "Front Counter",
            "email": "cashier1@example.com",
        },
        headers=_auth_headers(admin_token),
    )
    assert res.status_code == 201, res.text
    return _login(client, "cashier1", "password123"), admin_token


@pytest.mark.parametrize("key", PERMISSION_KEYS)
def test_admin_is_allowed_every_key(key):
    assert has_permission(role="admin", permission=key)


@pytest.mark.parametrize("key", PERMISSION_KEYS)
def test_user_follows_role_table(key):
    assert has_permission(role="user", permission=key) is (key not in USER_DENIED)


def test_unknown_role_and_key_are_denied():
    assert not has_permission(role="guest", permission="reports.view")
    assert not has_permission(role="user", permission="unknown.key")
    assert has_permission(role="ADMIN", permission="unknown.key")


def test_permission_snapshot_covers_every_key():
    snapshot = permission_snapshot("user")
    assert set(snapshot) == set(PERMISSION_KEYS)
    assert {key for key, allowed in snapshot.items() if not allowed} == USER_DENIED


def test_user_role_is_refused_admin_routes(test_context):
    client, _ = test_context
    cashier_token, admin_token = _cashier_and_admin(client)
    product = client.post(
        "/products",
        json={"name": "Guarded", "quantity": 5, "price": 10},
        headers=_auth_headers(admin_token),
    ).json()

    denied_calls = [
        ("get", "/users", None),
        ("get", "/activities", None),
        ("post", "/products", {"name": "Nope", "price": 1}),
        ("patch", f"/products/{product['id']}", {"quantity": 1}),
        ("post", f"/products/{product['id']}/restock", {"quantity": 1}),
        ("delete", f"/products/{product['id']}", None),
        ("post", "/categories", {"name": "Nope"}),
        ("get", "/pricing", None),
        ("post", "/expenses", {"description": "Rent", "category": "rent", "amount": 1}),
        ("delete", "/sales", None),
        ("get", "/store/backup", None),
        ("get", "/reports/pricing/export.csv", None),
    ]
    for method, path, body in denied_calls:
        kwargs = {"headers": _auth_headers(cashier_token)}
        if body is not None:
            kwargs["json"] = body
        res = getattr(client, method)(path, **kwargs)
        assert res.status_code == 403, f"{method} {path}: {res.status_code} {res.text}"
        assert res.json()["error"]["code"] == "forbidden"


def test_user_role_can_sell_and_read_reports(test_context):
    client, _ = test_context
    cashier_token, admin_token = _cashier_and_admin(client)
    product_id = client.post(
        "/products",
        json={"name": "Open Item", "quantity": 5, "price": 10},
        headers=_auth_headers(admin_token),
    ).json()["id"]

    sale = client.post(
        "/sales",
        json={"items": [{"product_id": product_id, "quantity": 1}], "payment_received": 10},
        headers=_auth_headers(cashier_token),
    )
    assert sale.status_code == 201, sale.text
    assert sale.json()["cashier"] == "cashier1"

    assert client.get("/products", headers=_auth_headers(cashier_token)).status_code == 200
    assert client.get("/sales", headers=_auth_headers(cashier_token)).status_code == 200
    assert client.get("/reports/sales", headers=_auth_headers(cashier_token)).status_code == 200
    assert client.get("/expenses", headers=_auth_headers(cashier_token)).status_code == 200


def test_user_role_cannot_override_selling_price(test_context):
    client, _ = test_context
    cashier_token, admin_token = _cashier_and_admin(client)
    product_id = client.post(
        "/products",
        json={"name": "Priced Item", "quantity": 5, "price": 10},
        headers=_auth_headers(admin_token),
    ).json()["id"]

    refused = client.post(
        "/sales",
        json={"items": [{"product_id": product_id, "quantity": 2, "price": 0.01}], "payment_received": 1},
        headers=_auth_headers(cashier_token),
    )
    assert refused.status_code == 403, refused.text
    assert refused.json()["error"]["code"] == "forbidden"
    product = client.get(f"/products/{product_id}", headers=_auth_headers(admin_token)).json()
    assert product["quantity"] == 5

    catalog_price = client.post(
        "/sales",
        json={"items": [{"product_id": product_id, "quantity": 1, "price": 10}], "payment_received": 10},
        headers=_auth_headers(cashier_token),
    )
    assert catalog_price.status_code == 201, catalog_price.text

    order = client.post(
        "/orders",
        json={
            "customer_name": "Ada Buyer",
            "contact_number": "0803 555 0101",
            "delivery_address": "12 Market Road",
            "payment_method": "cash",
            "items": [{"product_id": product_id, "quantity": 1, "price": 1}],
            "status": "completed",
        },
        headers=_auth_headers(cashier_token),
    )
    assert order.status_code == 403, order.text

    override = client.post(
        "/sales",
        json={"items": [{"product_id": product_id, "quantity": 1, "price": 8}], "payment_received": 8},
        headers=_auth_headers(admin_token),
    )
    assert override.status_code == 201, override.text
    assert override.json()["items"][0]["price"] == 8.0


def test_user_role_sees_sales_from_every_cashier(test_context):
    client, _ = test_context
    cashier_token, admin_token = _cashier_and_admin(client)
    product_id = client.post(
        "/products",
        json={"name": "Shared Item", "quantity": 5, "price": 10},
        headers=_auth_headers(admin_token),
    ).json()["id"]
    sale = client.post(
        "/sales",
        json={"items": [{"product_id": product_id, "quantity": 1}], "payment_received": 10},
        headers=_auth_headers(admin_token),
    ).json()

    listing = client.get("/sales", headers=_auth_headers(cashier_token))
    assert listing.status_code == 200, listing.text
    assert [row["cashier"] for row in listing.json()["items"]] == ["admin"]

    detail = client.get(f"/sales/{sale['id']}", headers=_auth_headers(cashier_token))
    assert detail.status_code == 200, detail.text

    report = client.get("/reports/sales", params={"cashier": "admin"}, headers=_auth_headers(cashier_token))
    assert report.status_code == 200, report.text


def test_user_management_guards(test_context):
    client, session_local = test_context
    admin_token = _login(client, "admin", "admin")
    me = client.get("/auth/me", headers=_auth_headers(admin_token)).json()

    duplicate = client.post(
        "/users",
        json={"username": "ADMIN", "password": "password123", "full_name": "Copy"},
        headers=_auth_headers(admin_token),
    )
    assert duplicate.status_code == 409

    short_password = client.post(
        "/users",
        json={"username": "shorty", "password": "short", "full_name": "Shorty"},
        headers=_auth_headers(admin_token),
    )
    assert short_password.status_code == 422

    demote_self = client.patch(
        f"/users/{me['id']}", json={"role": "user"}, headers=_auth_headers(admin_token)
    )
    assert demote_self.status_code == 400

    delete_self = client.delete(f"/users/{me['id']}", headers=_auth_headers(admin_token))
    assert delete_self.status_code == 400


def test_role_change_refreshes_permission_snapshot(test_context):
    client, _ = test_context
    admin_token = _login(client, "admin", "admin")
    created = client.post(
        "/users",
        json={"username": "promoted", "password": "password123", "full_name": "Soon Admin"},
        headers=_auth_headers(admin_token),
    ).json()
    assert created["permissions"]["users.manage"] is False

    promoted = client.patch(
        f"/users/{created['id']}", json={"role": "admin"}, headers=_auth_headers(admin_token)
    )
    assert promoted.status_code == 200, promoted.text
    assert promoted.json()["permissions"]["users.manage"] is True

    listing = client.get("/users", headers=_auth_headers(admin_token))
    assert listing.status_code == 200, listing.text
    assert {row["username"] for row in listing.json()["items"]} == {"admin", "promoted"}

    deleted = client.delete(f"/users/{created['id']}", headers=_auth_headers(admin_token))
    assert deleted.status_code == 200, deleted.text
    assert client.get(f"/users/{created['id']}", headers=_auth_headers(admin_token)).status_code == 404


def test_activity_trail_lists_actions(test_context):
    client, _ = test_context
    admin_token = _login(client, "admin", "admin")
    client.post(
        "/products",
        json={"name": "Tracked", "quantity": 1, "price": 5},
        headers=_auth_headers(admin_token),
    )

    res = client.get("/activities", params={"action": "product.create"}, headers=_auth_headers(admin_token))
    assert res.status_code == 200, res.text
    items = res.json()["items"]
    assert len(items) == 1
    assert items[0]["username"] == "admin"
    assert items[0]["details"] == "Added product Tracked"

    logins = client.get("/activities", params={"action": "auth.login"}, headers=_auth_headers(admin_token))
    assert logins.json()["pagination"]["total"] >= 1
