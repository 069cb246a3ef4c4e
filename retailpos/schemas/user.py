from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator

from retailpos.schemas.common import PaginationMeta

Role = Literal["admin", "user"]


class UserCreate(BaseModel):
    username: str
    password: str
    full_name: str
    email: Optional[EmailStr] = None
    role: Role = "user"
    active: bool = True

    @field_validator("username", "full_name")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value is required")
        return cleaned

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("password must be at least 8 characters")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "cashier1",
                "password": "password123",
                "full_name": "Front Counter",
                "email": "cashier1@example.com",
                "role": "user",
            }
        }
    )


class UserUpdate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Role | None = None
    active: bool | None = None

    @field_validator("username", "full_name")
    @classmethod
    def validate_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value cannot be empty")
        return cleaned

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: Optional[str]) -> Optional[str]:
        # Blank means "keep the current password".
        if not value:
            return None
        if len(value) < 8:
            raise ValueError("password must be at least 8 characters")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def validate_has_update(self) -> "UserUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "full_name": "Senior Cashier",
                "role": "user",
                "active": True,
            }
        }
    )


class UserOut(BaseModel):
    id: str
    username: str
    full_name: str
    email: Optional[str] = None
    role: Role
    active: bool
    permissions: dict[str, bool]
    last_login: Optional[datetime] = None
    created_at: datetime


class UserListOut(BaseModel):
    pagination: PaginationMeta
    items: list[UserOut]
