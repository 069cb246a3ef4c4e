from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from retailpos.core.api_docs import error_responses
from retailpos.core.config import settings
from retailpos.core.deps import get_db
from retailpos.core.permissions import require_permission
from retailpos.models.user import User
from retailpos.schemas.dashboard import DailySalesOut, DashboardSummaryOut
from retailpos.services import dashboard_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/summary",
    response_model=DashboardSummaryOut,
    summary="Get KPI summary",
    responses={
        200: {
            "description": "Dashboard summary",
            "content": {
                "application/json": {
                    "example": {
                        "sales_total": 1200.0,
                        "sales_count": 10,
                        "average_sale_value": 120.0,
                        "items_sold": 34,
                        "expense_total": 350.0,
                        "profit_simple": 850.0,
                        "product_count": 42,
                        "units_in_stock": 610,
                        "low_stock_count": 3,
                        "today_sales_total": 240.0,
                        "today_sales_count": 2,
                        "recent_activity": [
                            {
                                "action": "sale.create",
                                "details": "Recorded sale of 120.00",
                                "username": "admin",
                                "timestamp": "2026-03-01T10:00:00Z",
                            }
                        ],
                        "start_date": None,
                        "end_date": None,
                    }
                }
            },
        },
        **error_responses(400, 401, 403, 422, 500, path="/dashboard/summary"),
    },
)
def summary(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD), inclusive"),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    return dashboard_service.get_summary(
        db,
        start_date=start_date,
        end_date=end_date,
        low_stock_threshold=settings.low_stock_default_threshold,
    )


@router.get(
    "/daily-sales",
    response_model=DailySalesOut,
    summary="Daily sales series",
    description=(
        "One row per day, including days without sales. Without dates the series "
        "covers the last `days` days ending today."
    ),
    responses=error_responses(400, 401, 403, 422, 500, path="/dashboard/daily-sales"),
)
def daily_sales(
    start_date: date | None = Query(default=None, description="First day (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Last day (YYYY-MM-DD), inclusive"),
    days: int = Query(default=7, ge=1, le=dashboard_service.MAX_DAILY_RANGE_DAYS),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("reports.view")),
):
    if start_date is None:
        start_date, end_date = dashboard_service.last_days(days, today=end_date)
    elif end_date is None:
        end_date = start_date + timedelta(days=days - 1)
    return DailySalesOut(
        start_date=start_date,
        end_date=end_date,
        items=dashboard_service.daily_sales(db, start_date, end_date),
    )
