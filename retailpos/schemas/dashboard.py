from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class DashboardActivityOut(BaseModel):
    action: str
    details: str
    username: Optional[str] = None
    timestamp: datetime


class DashboardSummaryOut(BaseModel):
    sales_total: float
    sales_count: int
    average_sale_value: float
    items_sold: int
    expense_total: float
    profit_simple: float
    product_count: int
    units_in_stock: int
    low_stock_count: int
    today_sales_total: float
    today_sales_count: int
    recent_activity: list[DashboardActivityOut]
    start_date: date | None = None
    end_date: date | None = None


class DailySalesPointOut(BaseModel):
    date: date
    revenue: float
    sale_count: int


class DailySalesOut(BaseModel):
    start_date: date
    end_date: date
    items: list[DailySalesPointOut]
