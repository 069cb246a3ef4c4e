from datetime import datetime, date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from retailpos.schemas.common import PaginationMeta


OrderStatus = Literal["pending", "processing", "completed", "cancelled"]
PaymentMethod = Literal["cash", "card", "mobile", "bank_transfer"]


def _strip_min_length(value: str, *, minimum: int, message: str) -> str:
    cleaned = value.strip()
    if len(cleaned) < minimum:
        raise ValueError(message)
    return cleaned


class OrderItemIn(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)


class OrderCreate(BaseModel):
    customer_name: str
    contact_number: str
    email: Optional[EmailStr] = None
    delivery_address: str
    items: list[OrderItemIn] = Field(min_length=1)
    status: OrderStatus = "pending"
    payment_method: PaymentMethod
    notes: Optional[str] = None
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    advance_payment: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, value: str) -> str:
        return _strip_min_length(value, minimum=2, message="Customer name is required")

    @field_validator("contact_number")
    @classmethod
    def validate_contact_number(cls, value: str) -> str:
        return _strip_min_length(value, minimum=8, message="Valid contact number is required")

    @field_validator("delivery_address")
    @classmethod
    def validate_delivery_address(cls, value: str) -> str:
        return _strip_min_length(value, minimum=5, message="Delivery address is required")

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "customer_name": "Ada Buyer",
                "contact_number": "0803 555 0101",
                "email": "ada@example.com",
                "delivery_address": "12 Market Road",
                "items": [{"product_id": "product-id-here", "quantity": 2, "price": 100.0}],
                "status": "pending",
                "payment_method": "cash",
                "notes": "Call before delivery",
                "discount": 10.0,
                "advance_payment": 50.0,
            }
        }
    )


class OrderUpdate(BaseModel):
    customer_name: Optional[str] = None
    contact_number: Optional[str] = None
    email: Optional[EmailStr] = None
    delivery_address: Optional[str] = None
    items: list[OrderItemIn] | None = Field(default=None, min_length=1)
    status: OrderStatus | None = None
    payment_method: PaymentMethod | None = None
    notes: Optional[str] = None
    discount: Decimal | None = Field(default=None, ge=0)
    advance_payment: Decimal | None = Field(default=None, ge=0)

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _strip_min_length(value, minimum=2, message="Customer name is required")

    @field_validator("contact_number")
    @classmethod
    def validate_contact_number(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _strip_min_length(value, minimum=8, message="Valid contact number is required")

    @field_validator("delivery_address")
    @classmethod
    def validate_delivery_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _strip_min_length(value, minimum=5, message="Delivery address is required")

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def validate_has_update(self) -> "OrderUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "processing",
                "notes": "Packed, waiting for rider",
            }
        }
    )


class OrderItemOut(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    price: float
    line_total: float


class OrderOut(BaseModel):
    id: str
    customer_name: str
    contact_number: str
    email: Optional[str] = None
    delivery_address: str
    status: OrderStatus
    payment_method: PaymentMethod
    notes: Optional[str] = None
    subtotal: float
    discount: float
    advance_payment: float
    final_amount: float
    balance_due: float
    created_by: str
    sale_id: Optional[str] = None
    order_date: datetime
    updated_at: datetime
    items: list[OrderItemOut]


class OrderListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    status: OrderStatus | None = None
    search: str | None = None
    items: list[OrderOut]
