from datetime import date, datetime, timedelta, timezone

import pytest

from retailpos.core.dates import utcnow
from retailpos.core.errors import ValidationError
from retailpos.schemas.product import ProductCreate
from retailpos.schemas.sales import SaleItemIn
from retailpos.services import catalog_service, dashboard_service, sales_service


def _login(client, username: str = "admin", password: str = "admin") -> str:
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["access_token"]


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _sale_on(db, product_id: str, sold_at: datetime, *, quantity: int = 1):
    sale = sales_service.record_sale(
        db,
        items=[SaleItemIn(product_id=product_id, quantity=quantity)],
        discount=0,
        payment_received=1000,
        cashier="admin",
    )
    sale.date = sold_at
    db.flush()
    return sale


def test_daily_sales_fills_days_without_sales(db_session):
    product = catalog_service.add_product(db_session, ProductCreate(name="Mug", quantity=20, price=12.5))
    db_session.flush()
    _sale_on(db_session, product.id, datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc), quantity=2)
    _sale_on(db_session, product.id, datetime(2026, 3, 3, 11, 0, tzinfo=timezone.utc))
    _sale_on(db_session, product.id, datetime(2026, 3, 3, 16, 30, tzinfo=timezone.utc))
    _sale_on(db_session, product.id, datetime(2026, 3, 9, 10, 0, tzinfo=timezone.utc))

    rows = dashboard_service.daily_sales(db_session, date(2026, 3, 1), date(2026, 3, 5))

    assert rows == [
        {"date": date(2026, 3, 1), "revenue": 25.0, "sale_count": 1},
        {"date": date(2026, 3, 2), "revenue": 0.0, "sale_count": 0},
        {"date": date(2026, 3, 3), "revenue": 25.0, "sale_count": 2},
        {"date": date(2026, 3, 4), "revenue": 0.0, "sale_count": 0},
        {"date": date(2026, 3, 5), "revenue": 0.0, "sale_count": 0},
    ]


def test_daily_sales_with_no_sales_is_all_zero(db_session):
    rows = dashboard_service.daily_sales(db_session, date(2026, 2, 27), date(2026, 3, 1))

    assert [row["date"] for row in rows] == [date(2026, 2, 27), date(2026, 2, 28), date(2026, 3, 1)]
    assert {row["sale_count"] for row in rows} == {0}
    assert {row["revenue"] for row in rows} == {0.0}


@pytest.mark.parametrize(
    "start_date,end_date",
    [
        (date(2026, 3, 5), date(2026, 3, 1)),
        (date(2025, 1, 1), date(2026, 3, 1)),
    ],
)
def test_daily_sales_rejects_bad_ranges(db_session, start_date, end_date):
    with pytest.raises(ValidationError):
        dashboard_service.daily_sales(db_session, start_date, end_date)


def test_last_days_ends_on_today():
    assert dashboard_service.last_days(7, today=date(2026, 3, 10)) == (date(2026, 3, 4), date(2026, 3, 10))
    assert dashboard_service.last_days(1, today=date(2026, 3, 10)) == (date(2026, 3, 10), date(2026, 3, 10))


def test_summary_counts_sales_stock_and_expenses(test_context):
    client, _ = test_context
    token = _login(client)
    headers = _auth_headers(token)
    stocked = client.post(
        "/products",
        json={"name": "Cable", "quantity": 10, "price": 25, "purchase_price": 10},
        headers=headers,
    ).json()["id"]
    client.post("/products", json={"name": "Adapter", "quantity": 2, "price": 40}, headers=headers)
    sale = client.post(
        "/sales",
        json={"items": [{"product_id": stocked, "quantity": 2}], "payment_received": 50},
        headers=headers,
    )
    assert sale.status_code == 201, sale.text
    expense = client.post(
        "/expenses",
        json={"description": "Shop rent", "category": "rent", "amount": 15},
        headers=headers,
    )
    assert expense.status_code == 201, expense.text

    res = client.get("/dashboard/summary", headers=headers)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["sales_total"] == 50.0
    assert body["sales_count"] == 1
    assert body["average_sale_value"] == 50.0
    assert body["items_sold"] == 2
    assert body["expense_total"] == 15.0
    assert body["profit_simple"] == 35.0
    assert body["product_count"] == 2
    assert body["units_in_stock"] == 10
    assert body["low_stock_count"] == 1
    assert body["today_sales_total"] == 50.0
    assert body["today_sales_count"] == 1
    assert 0 < len(body["recent_activity"]) <= dashboard_service.RECENT_ACTIVITY_LIMIT
    assert body["recent_activity"][0]["username"] == "admin"

    past = client.get(
        "/dashboard/summary",
        params={"start_date": "2001-01-01", "end_date": "2001-01-31"},
        headers=headers,
    ).json()
    assert past["sales_count"] == 0
    assert past["average_sale_value"] == 0.0
    assert past["product_count"] == 2


def test_daily_sales_endpoint_defaults_to_last_week(test_context):
    client, _ = test_context
    token = _login(client)
    headers = _auth_headers(token)
    product_id = client.post("/products", json={"name": "Pen", "quantity": 5, "price": 3}, headers=headers).json()["id"]
    client.post(
        "/sales",
        json={"items": [{"product_id": product_id, "quantity": 1}], "payment_received": 3},
        headers=headers,
    )

    res = client.get("/dashboard/daily-sales", headers=headers)
    assert res.status_code == 200, res.text
    body = res.json()
    today = utcnow().date()
    assert body["end_date"] == today.isoformat()
    assert body["start_date"] == (today - timedelta(days=6)).isoformat()
    assert len(body["items"]) == 7
    assert body["items"][-1] == {"date": today.isoformat(), "revenue": 3.0, "sale_count": 1}
    assert sum(row["sale_count"] for row in body["items"]) == 1

    explicit = client.get(
        "/dashboard/daily-sales",
        params={"start_date": "2001-01-01", "days": 3},
        headers=headers,
    )
    assert [row["date"] for row in explicit.json()["items"]] == ["2001-01-01", "2001-01-02", "2001-01-03"]

    backwards = client.get(
        "/dashboard/daily-sales",
        params={"start_date": "2001-01-05", "end_date": "2001-01-01"},
        headers=headers,
    )
    assert backwards.status_code == 400
    assert backwards.json()["error"]["code"] == "bad_request"


def test_dashboard_requires_login(test_context):
    client, _ = test_context
    assert client.get("/dashboard/summary").status_code == 401
    assert client.get("/dashboard/daily-sales").status_code == 401
