from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.deps import get_db
from retailpos.core.permissions import require_permission
from retailpos.models.user import User
from retailpos.schemas.order import OrderStatus
from retailpos.schemas.pricing import ProfitBasis
from retailpos.schemas.report import OrdersReportOut, SalesReportOut
from retailpos.services import pricing_service, report_service
from retailpos.services.pdf_export_service import build_text_pdf

router = APIRouter(prefix="/reports", tags=["reports"])

CSV_RESPONSE = {200: {"content": {"text/csv": {}}, "description": "CSV export"}}
PDF_RESPONSE = {200: {"content": {"application/pdf": {}}, "description": "PDF export"}}


def _clean(value: str | None) -> str | None:
    return value.strip() if value and value.strip() else None


def _attachment(content: bytes | str, *, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/sales",
    response_model=SalesReportOut,
    summary="Sales report",
    responses=error_responses(400, 401, 403, 422, 500, path="/reports/sales"),
)
def sales_report(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None, description="Inclusive"),
    search: str | None = Query(default=None),
    cashier: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    return report_service.sales_report(
        db,
        start_date=start_date,
        end_date=end_date,
        search=_clean(search),
        cashier=_clean(cashier),
    )


@router.get(
    "/sales/export.csv",
    summary="Export sales report as CSV",
    response_class=Response,
    responses={**CSV_RESPONSE, **error_responses(400, 401, 403, 422, 500, path="/reports/sales/export.csv")},
)
def export_sales_csv(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    search: str | None = Query(default=None),
    cashier: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    report = report_service.sales_report(
        db,
        start_date=start_date,
        end_date=end_date,
        search=_clean(search),
        cashier=_clean(cashier),
    )
    _, content = report_service.sales_csv(report.items)
    return _attachment(content, media_type="text/csv", filename=f"sales_report_{date.today().isoformat()}.csv")


@router.get(
    "/sales/export.pdf",
    summary="Export sales report as PDF",
    response_class=Response,
    responses={**PDF_RESPONSE, **error_responses(400, 401, 403, 422, 500, path="/reports/sales/export.pdf")},
)
def export_sales_pdf(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    search: str | None = Query(default=None),
    cashier: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    report = report_service.sales_report(
        db,
        start_date=start_date,
        end_date=end_date,
        search=_clean(search),
        cashier=_clean(cashier),
    )
    pdf_bytes = build_text_pdf(title="Sales Report", lines=report_service.sales_report_lines(report))
    return _attachment(
        pdf_bytes, media_type="application/pdf", filename=f"sales_report_{date.today().isoformat()}.pdf"
    )


@router.get(
    "/orders",
    response_model=OrdersReportOut,
    summary="Orders report",
    responses=error_responses(400, 401, 403, 422, 500, path="/reports/orders"),
)
def orders_report(
    status: OrderStatus | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    return report_service.orders_report(
        db, status=status, start_date=start_date, end_date=end_date, search=_clean(search)
    )


@router.get(
    "/orders/export.csv",
    summary="Export orders report as CSV",
    response_class=Response,
    responses={**CSV_RESPONSE, **error_responses(400, 401, 403, 422, 500, path="/reports/orders/export.csv")},
)
def export_orders_csv(
    status: OrderStatus | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    report = report_service.orders_report(
        db, status=status, start_date=start_date, end_date=end_date, search=_clean(search)
    )
    _, content = report_service.orders_csv(report.items)
    return _attachment(content, media_type="text/csv", filename=f"order_history_{date.today().isoformat()}.csv")


@router.get(
    "/pricing/export.csv",
    summary="Export pricing table as CSV",
    response_class=Response,
    responses={**CSV_RESPONSE, **error_responses(400, 401, 403, 422, 500, path="/reports/pricing/export.csv")},
)
def export_pricing_csv(
    basis: ProfitBasis = Query(default="current"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("prices.manage")),
):
    rows = pricing_service.pricing_rows(db, basis=basis)
    _, content = report_service.pricing_csv(rows)
    return _attachment(
        content, media_type="text/csv", filename=f"price_management_report_{date.today().isoformat()}.csv"
    )
