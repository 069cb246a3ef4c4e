from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from retailpos.core.dates import apply_date_range, utcnow, validate_date_range
from retailpos.core.errors import NotFoundError, ValidationError
from retailpos.core.id_utils import generate_record_id
from retailpos.core.money import money_out, to_money
from retailpos.models.expense import Expense
from retailpos.schemas.expense import ExpenseCreate, ExpenseUpdate
from retailpos.services.activity_service import log_activity


def get_expense(db: Session, expense_id: str) -> Expense:
    expense = db.execute(select(Expense).where(Expense.id == expense_id)).scalar_one_or_none()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def create_expense(db: Session, payload: ExpenseCreate, *, actor_id: str | None) -> Expense:
    expense = Expense(
        id=generate_record_id(),
        description=payload.description,
        category=payload.category,
        amount=to_money(payload.amount),
        date=payload.date or utcnow().date(),
        supplier=payload.supplier,
        attachment_url=payload.attachment_url,
        product_id=payload.product_id,
    )
    db.add(expense)
    log_activity(
        db,
        user_id=actor_id,
        action="expense.create",
        details=f"Added expense {expense.description}",
        target_type="expense",
        target_id=expense.id,
        metadata_json={"category": expense.category, "amount": money_out(expense.amount)},
    )
    db.flush()
    return expense


def update_expense(db: Session, expense_id: str, payload: ExpenseUpdate, *, actor_id: str | None) -> Expense:
    expense = get_expense(db, expense_id)

    changes: dict[str, object] = {}
    for field in ("description", "category", "date"):
        value = getattr(payload, field)
        if value is not None:
            setattr(expense, field, value)
            changes[field] = str(value)
    if payload.amount is not None:
        expense.amount = to_money(payload.amount)
        changes["amount"] = money_out(expense.amount)
    # Explicit nulls clear these.
    for field in ("supplier", "attachment_url", "product_id"):
        if field in payload.model_fields_set:
            setattr(expense, field, getattr(payload, field))
            changes[field] = getattr(payload, field)

    if not changes:
        raise ValidationError("No update fields provided")

    log_activity(
        db,
        user_id=actor_id,
        action="expense.update",
        details=f"Updated expense {expense.description}",
        target_type="expense",
        target_id=expense.id,
        metadata_json=changes,
    )
    db.flush()
    return expense


def delete_expense(db: Session, expense_id: str, *, actor_id: str | None) -> None:
    expense = get_expense(db, expense_id)
    log_activity(
        db,
        user_id=actor_id,
        action="expense.delete",
        details=f"Deleted expense {expense.description}",
        target_type="expense",
        target_id=expense.id,
        metadata_json={"amount": money_out(expense.amount)},
    )
    db.delete(expense)
    db.flush()


def _filtered(stmt, category: str | None, start_date: date | None, end_date: date | None):
    if category:
        stmt = stmt.where(Expense.category == category)
    return apply_date_range(stmt, Expense.date, start_date, end_date)


def list_expenses(
    db: Session,
    *,
    category: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, Decimal, list[Expense]]:
    """Return ``(total_count, total_amount, page)``; the amount covers every matching row."""
    validate_date_range(start_date, end_date)
    total_count = int(
        db.execute(_filtered(select(func.count(Expense.id)), category, start_date, end_date)).scalar_one()
    )
    total_amount = db.execute(
        _filtered(select(func.coalesce(func.sum(Expense.amount), 0)), category, start_date, end_date)
    ).scalar_one()
    rows = db.execute(
        _filtered(select(Expense), category, start_date, end_date)
        .order_by(Expense.date.desc(), Expense.created_at.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return total_count, to_money(total_amount), list(rows)


def total_expenses(db: Session, start_date: date | None = None, end_date: date | None = None) -> Decimal:
    validate_date_range(start_date, end_date)
    stmt = _filtered(select(func.coalesce(func.sum(Expense.amount), 0)), None, start_date, end_date)
    return to_money(db.execute(stmt).scalar_one())


def expenses_by_category(
    db: Session,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[tuple[str, Decimal]]:
    validate_date_range(start_date, end_date)
    stmt = _filtered(select(Expense.category, func.coalesce(func.sum(Expense.amount), 0)), None, start_date, end_date)
    rows = db.execute(stmt.group_by(Expense.category).order_by(Expense.category)).all()
    return [(category, to_money(amount)) for category, amount in rows]
