import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from retailpos.schemas.common import PaginationMeta


class ExpenseCreate(BaseModel):
    description: str
    category: str
    amount: Decimal = Field(ge=0)
    date: Optional[dt.date] = None
    supplier: Optional[str] = None
    attachment_url: Optional[str] = None
    product_id: Optional[str] = None

    @field_validator("description", "category")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("supplier", "attachment_url", "product_id")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Monthly shop rent",
                "category": "rent",
                "amount": 500.0,
                "date": "2026-03-01",
                "supplier": "Landlord",
            }
        }
    )


class ExpenseUpdate(BaseModel):
    description: Optional[str] = None
    category: Optional[str] = None
    amount: Decimal | None = Field(default=None, ge=0)
    date: Optional[dt.date] = None
    supplier: Optional[str] = None
    attachment_url: Optional[str] = None
    product_id: Optional[str] = None

    @field_validator("description", "category")
    @classmethod
    def validate_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value cannot be empty")
        return cleaned

    @field_validator("supplier", "attachment_url", "product_id")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @model_validator(mode="after")
    def validate_has_update(self) -> "ExpenseUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "category": "utilities",
                "amount": 45.0,
            }
        }
    )


class ExpenseCreateOut(BaseModel):
    id: str


class ExpenseOut(BaseModel):
    id: str
    description: str
    category: str
    amount: float
    date: dt.date
    supplier: Optional[str] = None
    attachment_url: Optional[str] = None
    product_id: Optional[str] = None
    created_at: dt.datetime


class ExpenseListOut(BaseModel):
    pagination: PaginationMeta
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    category: str | None = None
    total_amount: float
    items: list[ExpenseOut]


class ExpenseCategoryTotalOut(BaseModel):
    category: str
    total: float


class ExpenseSummaryOut(BaseModel):
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    total: float
    by_category: list[ExpenseCategoryTotalOut]
