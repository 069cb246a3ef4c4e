from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from retailpos.schemas.common import PaginationMeta


class ProductCreate(BaseModel):
    name: str
    description: str = ""
    category: Optional[str] = None
    supplier: Optional[str] = None
    quantity: int = Field(default=0, ge=0)
    price: Decimal = Field(ge=0)
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: str) -> str:
        return value.strip()

    @field_validator("category", "supplier")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "USB-C Cable 1m",
                "description": "Braided, 60W",
                "category": "Accessories",
                "supplier": "Cable Co",
                "quantity": 10,
                "price": 100.0,
                "purchase_price": 60.0,
            }
        }
    )


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    supplier: Optional[str] = None
    quantity: int | None = Field(default=None, ge=0)
    price: Decimal | None = Field(default=None, ge=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name cannot be empty")
        return cleaned

    @field_validator("description", "category", "supplier")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip()

    @model_validator(mode="after")
    def validate_has_update(self) -> "ProductUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    @property
    def touches_prices(self) -> bool:
        return bool({"price", "purchase_price"} & self.model_fields_set)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "quantity": 25,
                "supplier": "Cable Co Wholesale",
            }
        }
    )


class PriceUpdateIn(BaseModel):
    price: Decimal | None = Field(default=None, ge=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_has_update(self) -> "PriceUpdateIn":
        if self.price is None and self.purchase_price is None:
            raise ValueError("price or purchase_price is required")
        return self

    model_config = ConfigDict(
        json_schema_extra={"example": {"price": 120.0, "purchase_price": 65.0}}
    )


class QuantityAdjustIn(BaseModel):
    quantity: int = Field(ge=0, description="Units to remove. Stock never goes below zero.")
    reason: str = "Adjustment"

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("reason cannot be empty")
        return cleaned[:100]

    model_config = ConfigDict(
        json_schema_extra={"example": {"quantity": 2, "reason": "Damaged"}}
    )


class RestockIn(BaseModel):
    quantity: int = Field(gt=0)
    reason: str = "Restock"

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("reason cannot be empty")
        return cleaned[:100]

    model_config = ConfigDict(
        json_schema_extra={"example": {"quantity": 20, "reason": "Supplier delivery"}}
    )


class ProductCreateOut(BaseModel):
    id: str


class ProductOut(BaseModel):
    id: str
    name: str
    description: str
    category: Optional[str] = None
    supplier: Optional[str] = None
    quantity: int
    price: float
    purchase_price: float
    last_updated: datetime


class ProductListOut(BaseModel):
    pagination: PaginationMeta
    search: str | None = None
    category: str | None = None
    items: list[ProductOut]


class QuantityHistoryOut(BaseModel):
    sequence: int
    timestamp: datetime
    old_quantity: int
    new_quantity: int
    reason: str
    reference_id: Optional[str] = None


class QuantityHistoryListOut(BaseModel):
    product_id: str
    items: list[QuantityHistoryOut]


class LowStockOut(BaseModel):
    threshold: int
    items: list[ProductOut]


class CategoryCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    model_config = ConfigDict(json_schema_extra={"example": {"name": "Chargers"}})


class CategoryOut(BaseModel):
    id: str
    name: str
