from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailpos.core.dates import apply_date_range, utcnow, validate_date_range
from retailpos.core.errors import ValidationError
from retailpos.core.money import ZERO_MONEY, to_money
from retailpos.models.expense import Expense
from retailpos.models.product import Product
from retailpos.models.sales import Sale, SaleItem
from retailpos.models.user import User
from retailpos.services.activity_service import list_activities

MAX_DAILY_RANGE_DAYS = 366
RECENT_ACTIVITY_LIMIT = 5


def _as_date(value) -> date:
    # SQLite returns DATE(...) as text.
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def last_days(days: int, *, today: date | None = None) -> tuple[date, date]:
    end_date = today or utcnow().date()
    return end_date - timedelta(days=days - 1), end_date


def daily_sales(db: Session, start_date: date, end_date: date) -> list[dict]:
    """Revenue and sale count per day, with empty days filled in as zeros."""
    validate_date_range(start_date, end_date)
    span = (end_date - start_date).days + 1
    if span > MAX_DAILY_RANGE_DAYS:
        raise ValidationError(f"Daily sales cover at most {MAX_DAILY_RANGE_DAYS} days")

    day = func.date(Sale.date)
    stmt = apply_date_range(
        select(day, func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)),
        Sale.date,
        start_date,
        end_date,
    ).group_by(day)
    totals: dict[date, tuple[int, Decimal]] = {
        _as_date(sale_day): (int(count), to_money(revenue))
        for sale_day, count, revenue in db.execute(stmt).all()
    }

    rows = []
    for offset in range(span):
        current = start_date + timedelta(days=offset)
        count, revenue = totals.get(current, (0, ZERO_MONEY))
        rows.append({"date": current, "revenue": float(revenue), "sale_count": count})
    return rows


def _recent_activity(db: Session) -> list[dict]:
    _, rows = list_activities(db, limit=RECENT_ACTIVITY_LIMIT)
    user_ids = {row.user_id for row in rows}
    usernames = dict(
        db.execute(select(User.id, User.username).where(User.id.in_(user_ids))).all()
    ) if user_ids else {}
    return [
        {
            "action": row.action,
            "details": row.details,
            "username": usernames.get(row.user_id),
            "timestamp": row.timestamp,
        }
        for row in rows
    ]


def get_summary(
    db: Session,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    low_stock_threshold: int,
) -> dict:
    validate_date_range(start_date, end_date)

    sales_stmt = apply_date_range(
        select(func.coalesce(func.sum(Sale.total), 0), func.count(Sale.id)),
        Sale.date,
        start_date,
        end_date,
    )
    items_sold_stmt = apply_date_range(
        select(func.coalesce(func.sum(SaleItem.quantity), 0)).join(Sale, Sale.id == SaleItem.sale_id),
        Sale.date,
        start_date,
        end_date,
    )
    expense_stmt = apply_date_range(
        select(func.coalesce(func.sum(Expense.amount), 0)),
        Expense.date,
        start_date,
        end_date,
    )
    today = utcnow().date()
    today_stmt = apply_date_range(
        select(func.coalesce(func.sum(Sale.total), 0), func.count(Sale.id)),
        Sale.date,
        today,
        today,
    )
    product_stmt = select(
        func.count(Product.id),
        func.coalesce(func.sum(Product.quantity), 0),
    )
    low_stock_stmt = select(func.count(Product.id)).where(Product.quantity <= low_stock_threshold)

    sales_total, sales_count = db.execute(sales_stmt).one()
    items_sold = db.execute(items_sold_stmt).scalar_one()
    expense_total = db.execute(expense_stmt).scalar_one()
    today_total, today_count = db.execute(today_stmt).one()
    product_count, units_in_stock = db.execute(product_stmt).one()
    low_stock_count = db.execute(low_stock_stmt).scalar_one()

    sales_total_money = to_money(sales_total or ZERO_MONEY)
    expense_total_money = to_money(expense_total or ZERO_MONEY)
    sales_count_i = int(sales_count)
    average_sale_value = (
        to_money(sales_total_money / sales_count_i) if sales_count_i else ZERO_MONEY
    )

    return {
        "sales_total": float(sales_total_money),
        "sales_count": sales_count_i,
        "average_sale_value": float(average_sale_value),
        "items_sold": int(items_sold),
        "expense_total": float(expense_total_money),
        "profit_simple": float(to_money(sales_total_money - expense_total_money)),
        "product_count": int(product_count),
        "units_in_stock": int(units_in_stock),
        "low_stock_count": int(low_stock_count),
        "today_sales_total": float(to_money(today_total or ZERO_MONEY)),
        "today_sales_count": int(today_count),
        "recent_activity": _recent_activity(db),
        "start_date": start_date,
        "end_date": end_date,
    }
