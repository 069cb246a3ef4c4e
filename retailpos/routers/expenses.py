from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.money import money_out
from retailpos.core.permissions import require_permission
from retailpos.models.expense import Expense
from retailpos.models.user import User
from retailpos.schemas.common import DeletedOut, PaginationMeta
from retailpos.schemas.expense import (
    ExpenseCategoryTotalOut,
    ExpenseCreate,
    ExpenseCreateOut,
    ExpenseListOut,
    ExpenseOut,
    ExpenseSummaryOut,
    ExpenseUpdate,
)
from retailpos.services import expense_service

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _expense_out(expense: Expense) -> ExpenseOut:
    return ExpenseOut(
        id=expense.id,
        description=expense.description,
        category=expense.category,
        amount=money_out(expense.amount),
        date=expense.date,
        supplier=expense.supplier,
        attachment_url=expense.attachment_url,
        product_id=expense.product_id,
        created_at=expense.created_at,
    )


@router.post(
    "",
    response_model=ExpenseCreateOut,
    status_code=201,
    summary="Create expense",
    responses=error_responses(400, 401, 403, 422, 500, path="/expenses"),
)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("prices.manage")),
):
    expense = expense_service.create_expense(db, payload, actor_id=actor.id)
    db.commit()
    return ExpenseCreateOut(id=expense.id)


@router.get(
    "",
    response_model=ExpenseListOut,
    summary="List expenses",
    responses=error_responses(400, 401, 403, 422, 500, path="/expenses"),
)
def list_expenses(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD), inclusive"),
    category: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    normalized_category = category.strip() if category and category.strip() else None
    total_count, total_amount, rows = expense_service.list_expenses(
        db,
        category=normalized_category,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    items = [_expense_out(row) for row in rows]
    count = len(items)
    return ExpenseListOut(
        pagination=PaginationMeta(
            total=total_count,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total_count,
        ),
        start_date=start_date,
        end_date=end_date,
        category=normalized_category,
        total_amount=money_out(total_amount),
        items=items,
    )


@router.get(
    "/summary",
    response_model=ExpenseSummaryOut,
    summary="Expense totals by category",
    responses=error_responses(400, 401, 403, 422, 500, path="/expenses/summary"),
)
def expense_summary(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    by_category = expense_service.expenses_by_category(db, start_date, end_date)
    return ExpenseSummaryOut(
        start_date=start_date,
        end_date=end_date,
        total=money_out(expense_service.total_expenses(db, start_date, end_date)),
        by_category=[
            ExpenseCategoryTotalOut(category=category, total=money_out(amount))
            for category, amount in by_category
        ],
    )


@router.patch(
    "/{expense_id}",
    response_model=ExpenseOut,
    summary="Update expense",
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/expenses/{expense_id}"),
)
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("prices.manage")),
):
    expense = expense_service.update_expense(db, expense_id, payload, actor_id=actor.id)
    db.commit()
    db.refresh(expense)
    return _expense_out(expense)


@router.delete(
    "/{expense_id}",
    response_model=DeletedOut,
    summary="Delete expense",
    responses=error_responses(401, 403, 404, 500, path="/expenses/{expense_id}"),
)
def delete_expense(
    expense_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("prices.manage")),
):
    expense_service.delete_expense(db, expense_id, actor_id=actor.id)
    db.commit()
    return DeletedOut(id=expense_id)
