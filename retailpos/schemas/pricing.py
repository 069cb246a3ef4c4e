from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel

ProfitBasis = Literal["current", "snapshot"]


class PricingRowOut(BaseModel):
    product_id: str
    name: str
    category: Optional[str] = None
    quantity: int
    purchase_price: float
    price: float
    total_purchase_value: float
    total_selling_value: float
    net_profit: float
    real_profit: float


class PricingTableOut(BaseModel):
    basis: ProfitBasis
    items: list[PricingRowOut]


class ProfitSummaryOut(BaseModel):
    basis: ProfitBasis
    start_date: date | None = None
    end_date: date | None = None
    total_net_profit: float
    total_real_profit: float
    total_expenses: float
    final_net_profit: float


class RealProfitOut(BaseModel):
    product_id: str
    basis: ProfitBasis
    units_sold: int
    real_profit: float


class OrphanedSaleItemOut(BaseModel):
    sale_id: str
    product_id: str
    quantity: int
    price: float
    line_total: float
