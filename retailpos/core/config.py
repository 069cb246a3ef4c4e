import json
from typing import Any, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEAK_SECRETS = {"", "change_me", "change_me_please_to_a_long_random_string"}


def _split_list(value: Any) -> List[str]:
    """Accept a JSON array or a comma separated string from the environment."""
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            value = json.loads(text)
            if not isinstance(value, list):
                raise ValueError("List settings given as JSON must be a list")
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Expected a list, got {value!r}")
    return [str(item).strip() for item in value if str(item).strip()]


class Settings(BaseSettings):
    app_name: str = "RetailPOS Backend"
    env: str = "dev"
    secret_key: str
    access_token_expire_minutes: int = Field(default=60, ge=1)
    refresh_token_expire_days: int = Field(default=14, ge=1)

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # LOGIN THROTTLE
    auth_rate_limit_max_attempts: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)
    auth_rate_limit_lock_seconds: int = Field(default=900, ge=1)

    # FIRST RUN
    bootstrap_admin_on_startup: bool = True
    bootstrap_admin_username: str = "admin"
    bootstrap_admin_password: str = "admin"
    bootstrap_admin_full_name: str = "System Administrator"
    bootstrap_admin_email: str | None = "admin@system.com"
    default_categories: List[str] = Field(
        default_factory=lambda: ["Electronics", "Accessories", "Components", "Other"]
    )

    # STORE
    store_location: str = "Main Store"
    low_stock_default_threshold: int = Field(default=5, ge=0)
    api_timeout_hint_ms: int = Field(default=300000, ge=1000, le=1_800_000)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", "default_categories", mode="before")
    @classmethod
    def parse_lists(cls, value: Any) -> List[str]:
        return _split_list(value)

    @field_validator("bootstrap_admin_email", "cors_origin_regex", mode="before")
    @classmethod
    def blank_as_none(cls, value: Any) -> str | None:
        cleaned = str(value).strip() if value is not None else ""
        return cleaned or None

    @property
    def is_production(self) -> bool:
        return self.env.strip().lower() in {"prod", "production"}

    @model_validator(mode="after")
    def refuse_unsafe_production(self) -> "Settings":
        if not self.is_production:
            return self

        secret = self.secret_key.strip()
        problems = []
        if secret in WEAK_SECRETS or len(secret) < 32:
            problems.append("SECRET_KEY must be a strong random value")
        if "*" in self.cors_origins:
            problems.append("CORS_ORIGINS cannot contain '*'")
        if self.cors_origin_regex:
            problems.append("CORS_ORIGIN_REGEX cannot be set")
        if self.bootstrap_admin_on_startup and len(self.bootstrap_admin_password) < 8:
            problems.append("BOOTSTRAP_ADMIN_PASSWORD must be changed from the default")
        if problems:
            raise ValueError("Unsafe production settings: " + "; ".join(problems))
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
