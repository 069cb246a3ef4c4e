from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.permissions import has_permission, require_permission
from retailpos.models.user import User
from retailpos.schemas.common import DeletedOut, PaginationMeta
from retailpos.schemas.order import OrderCreate, OrderListOut, OrderOut, OrderStatus, OrderUpdate
from retailpos.services import order_service

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_out(db: Session, order) -> OrderOut:
    return order_service.orders_out(db, [order])[0]


@router.post(
    "",
    response_model=OrderOut,
    status_code=201,
    summary="Create order",
    description=(
        "An order created as `completed` is converted into a sale immediately. Item prices "
        "other than the catalog price need the `prices.manage` permission."
    ),
    responses=error_responses(400, 401, 403, 422, 500, path="/orders"),
)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("sales.process")),
):
    order = order_service.create_order(
        db,
        payload,
        created_by=actor.username,
        actor_id=actor.id,
        allow_price_override=has_permission(role=actor.role, permission="prices.manage"),
    )
    db.commit()
    return _order_out(db, order)


@router.get(
    "",
    response_model=OrderListOut,
    summary="List orders",
    responses=error_responses(400, 401, 403, 422, 500, path="/orders"),
)
def list_orders(
    status: OrderStatus | None = Query(default=None),
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD), inclusive"),
    search: str | None = Query(default=None, description="Matches order id, customer name, contact or email"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("sales.process")),
):
    normalized_search = search.strip() if search and search.strip() else None
    total, rows = order_service.list_orders(
        db,
        status=status,
        start_date=start_date,
        end_date=end_date,
        search=normalized_search,
        limit=limit,
        offset=offset,
    )
    items = order_service.orders_out(db, rows)
    count = len(items)
    return OrderListOut(
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
        start_date=start_date,
        end_date=end_date,
        status=status,
        search=normalized_search,
        items=items,
    )


@router.get(
    "/{order_id}",
    response_model=OrderOut,
    summary="Get order",
    responses=error_responses(401, 403, 404, 500, path="/orders/{order_id}"),
)
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("sales.process")),
):
    return _order_out(db, order_service.get_order(db, order_id))


@router.patch(
    "/{order_id}",
    response_model=OrderOut,
    summary="Update order",
    description=(
        "Status moves pending -> processing/completed/cancelled and processing -> "
        "completed/cancelled. Completed and cancelled orders only accept `notes`."
    ),
    responses=error_responses(400, 401, 403, 404, 422, 500, path="/orders/{order_id}"),
)
def update_order(
    order_id: str,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("sales.process")),
):
    order = order_service.update_order(
        db,
        order_id,
        payload,
        cashier=actor.username,
        actor_id=actor.id,
        allow_price_override=has_permission(role=actor.role, permission="prices.manage"),
    )
    db.commit()
    return _order_out(db, order)


@router.post(
    "/{order_id}/complete",
    response_model=OrderOut,
    summary="Complete order",
    description="Records one sale and decrements stock. Repeating the call has no further effect.",
    responses=error_responses(400, 401, 403, 404, 500, path="/orders/{order_id}/complete"),
)
def complete_order(
    order_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("sales.process")),
):
    order = order_service.complete_order(db, order_id, cashier=actor.username, actor_id=actor.id)
    db.commit()
    return _order_out(db, order)


@router.delete(
    "/{order_id}",
    response_model=DeletedOut,
    summary="Delete order",
    responses=error_responses(401, 403, 404, 500, path="/orders/{order_id}"),
)
def delete_order(
    order_id: str,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("sales.process")),
):
    order_service.delete_order(db, order_id, actor_id=actor.id)
    db.commit()
    return DeletedOut(id=order_id)
