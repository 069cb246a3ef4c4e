from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class LoginIn(BaseModel):
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("username is required")
        return cleaned

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise ValueError("password is required")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "cashier1",
                "password": "password123",
            }
        }
    )


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshIn(BaseModel):
    refresh_token: str

    @field_validator("refresh_token")
    @classmethod
    def validate_refresh_token(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("refresh_token is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"refresh_token": "paste-refresh-token-here"}
        }
    )


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str

    @field_validator("current_password")
    @classmethod
    def validate_current_password(cls, value: str) -> str:
        if not value:
            raise ValueError("current_password is required")
        return value

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("new_password must be at least 8 characters")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "current_password": "admin",
                "new_password": "new-password-456",
            }
        }
    )


class MeOut(BaseModel):
    id: str
    username: str
    full_name: str
    email: Optional[str] = None
    role: str
    active: bool
    permissions: dict[str, bool]
    last_login: Optional[datetime] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "abc123",
                "username": "admin",
                "full_name": "System Administrator",
                "email": "admin@system.com",
                "role": "admin",
                "active": True,
                "permissions": {"users.manage": True, "sales.process": True},
                "last_login": "2026-03-01T09:00:00Z",
            }
        }
    )
