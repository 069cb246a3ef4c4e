from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from retailpos.schemas.common import PaginationMeta


class SaleItemIn(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    # Falls back to the product's current price.
    price: Decimal | None = Field(default=None, ge=0)


class SaleCreate(BaseModel):
    items: List[SaleItemIn]
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_received: Decimal = Field(ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "items": [
                    {
                        "product_id": "product-id-here",
                        "quantity": 3,
                        "price": 100.0,
                    }
                ],
                "discount": 10.0,
                "payment_received": 290.0,
            }
        }
    )


class SaleItemOut(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    price: float
    purchase_price: Optional[float] = None
    line_total: float


class SaleOut(BaseModel):
    id: str
    subtotal: float
    discount: float
    total: float
    payment_received: float
    change: float
    cashier: str
    store_location: str
    order_id: Optional[str] = None
    date: datetime
    items: list[SaleItemOut]


class SaleListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    cashier: str | None = None
    search: str | None = None
    items: list[SaleOut]
