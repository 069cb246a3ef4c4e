"""Collection-level read access used for backups.

Each collection maps to one table. Writes always go through the owning
service; this module only loads.
"""
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from retailpos.core.errors import NotFoundError
from retailpos.models.activity import UserActivity
from retailpos.models.expense import Expense
from retailpos.models.order import Order, OrderItem
from retailpos.models.product import Category, Product, ProductQuantityHistory
from retailpos.models.sales import Sale, SaleItem
from retailpos.models.user import User

COLLECTIONS: dict[str, type] = {
    "products": Product,
    "product_quantity_history": ProductQuantityHistory,
    "categories": Category,
    "sales": Sale,
    "sale_items": SaleItem,
    "orders": Order,
    "order_items": OrderItem,
    "expenses": Expense,
    "users": User,
    "user_activities": UserActivity,
}
# Never leaves the server, not even in a backup.
REDACTED_COLUMNS = {"hashed_password"}


def _record(row) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for column in row.__table__.columns:
        if column.key in REDACTED_COLUMNS:
            continue
        value = getattr(row, column.key)
        if isinstance(value, Decimal):
            value = float(value)
        record[column.key] = value
    return record


def load_collection(db: Session, name: str) -> list[dict[str, Any]]:
    model = COLLECTIONS.get(name)
    if model is None:
        raise NotFoundError(f"Unknown collection: {name}")
    primary_key = model.__table__.primary_key.columns.values()[0]
    rows = db.execute(select(model).order_by(primary_key)).scalars().all()
    return [_record(row) for row in rows]


def backup(db: Session) -> dict[str, list[dict[str, Any]]]:
    return {name: load_collection(db, name) for name in COLLECTIONS}
