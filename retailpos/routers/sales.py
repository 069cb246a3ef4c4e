from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.permissions import has_permission, require_permission
from retailpos.models.user import User
from retailpos.schemas.common import BulkDeleteOut, PaginationMeta
from retailpos.schemas.sales import SaleCreate, SaleListOut, SaleOut
from retailpos.services import report_service, sales_service
from retailpos.services.pdf_export_service import build_text_pdf

router = APIRouter(prefix="/sales", tags=["sales"])


def _sale_out(db: Session, sale_id: str) -> SaleOut:
    return sales_service.sales_out(db, [sales_service.get_sale(db, sale_id)])[0]


@router.post(
    "",
    response_model=SaleOut,
    status_code=201,
    summary="Record sale",
    description=(
        "Checks stock, computes totals and decrements stock in one transaction. "
        "Item `price` defaults to the product's current price. Any other price needs "
        "the `prices.manage` permission."
    ),
    responses=error_responses(400, 401, 403, 422, 500, path="/sales"),
)
def create_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("sales.process")),
):
    sale = sales_service.record_sale(
        db,
        items=payload.items,
        discount=payload.discount,
        payment_received=payload.payment_received,
        cashier=actor.username,
        actor_id=actor.id,
        allow_price_override=has_permission(role=actor.role, permission="prices.manage"),
    )
    db.commit()
    return sales_service.sales_out(db, [sale])[0]


@router.get(
    "",
    response_model=SaleListOut,
    summary="List sales",
    responses=error_responses(400, 401, 403, 422, 500, path="/sales"),
)
def list_sales(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD), inclusive"),
    cashier: str | None = Query(default=None),
    search: str | None = Query(default=None, description="Matches sale id, cashier or product name"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("sales.process")),
):
    normalized_cashier = cashier.strip() if cashier and cashier.strip() else None
    normalized_search = search.strip() if search and search.strip() else None
    total, rows = sales_service.list_sales(
        db,
        start_date=start_date,
        end_date=end_date,
        cashier=normalized_cashier,
        search=normalized_search,
        limit=limit,
        offset=offset,
    )
    items = sales_service.sales_out(db, rows)
    count = len(items)
    return SaleListOut(
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
        start_date=start_date,
        end_date=end_date,
        cashier=normalized_cashier,
        search=normalized_search,
        items=items,
    )


@router.delete(
    "",
    response_model=BulkDeleteOut,
    summary="Clear all sales",
    description="Deletes every sale. Stock is not restored.",
    responses=error_responses(401, 403, 500, path="/sales"),
)
def clear_sales(
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission("settings.manage")),
):
    deleted = sales_service.clear_sales(db, actor_id=actor.id)
    db.commit()
    return BulkDeleteOut(deleted=deleted)


@router.get(
    "/{sale_id}",
    response_model=SaleOut,
    summary="Get sale",
    responses=error_responses(401, 403, 404, 500, path="/sales/{sale_id}"),
)
def get_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("sales.process")),
):
    return _sale_out(db, sale_id)


@router.get(
    "/{sale_id}/receipt.pdf",
    summary="Printable receipt",
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}}, "description": "Receipt PDF"},
        **error_responses(401, 403, 404, 500, path="/sales/{sale_id}/receipt.pdf"),
    },
)
def sale_receipt(
    sale_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("sales.process")),
):
    sale = _sale_out(db, sale_id)
    pdf_bytes = build_text_pdf(title="Sales Receipt", lines=report_service.receipt_lines(sale))
    filename = f"receipt-{sale.id[:8]}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
