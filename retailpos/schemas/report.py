from datetime import date

from pydantic import BaseModel

from retailpos.schemas.order import OrderOut
from retailpos.schemas.sales import SaleOut


class SalesReportTotalsOut(BaseModel):
    sale_count: int
    items_sold: int
    revenue: float
    discount: float
    average_ticket: float


class SalesReportOut(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None
    cashier: str | None = None
    totals: SalesReportTotalsOut
    items: list[SaleOut]


class OrdersReportTotalsOut(BaseModel):
    order_count: int
    by_status: dict[str, int]
    total_amount: float
    advance_collected: float
    balance_due: float


class OrdersReportOut(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    status: str | None = None
    search: str | None = None
    totals: OrdersReportTotalsOut
    items: list[OrderOut]
