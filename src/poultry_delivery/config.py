"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_str_tuple(value: Any) -> tuple[str, ...]:
    """Parse a string tuple from an environment value (comma-separated or JSON array)."""
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(str(item) for item in value)
    if isinstance(value, str):
        # Try JSON first
        try:
            parsed = json.loads(value)
            if isinstance(parsed, list):
                return tuple(str(item) for item in parsed)
        except (json.JSONDecodeError, TypeError):
            pass
        if "," in value:
            return tuple(item.strip() for item in value.split(",") if item.strip())
        if value.strip():
            return (value.strip(),)
    return tuple()


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="POULTRY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Poultry Marketplace Delivery API"
    api_prefix: str = "/api"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    orders_table: str = Field(default="orders", description="Table holding marketplace orders.")

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: Any) -> tuple[str, ...]:
        return _parse_str_tuple(value)


class LalamoveSettings(BaseSettings):
    """Credentials and tuning for the Lalamove delivery integration."""

    model_config = SettingsConfigDict(
        env_prefix="LALAMOVE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: Optional[str] = Field(default=None, description="Lalamove API key (public part of the HMAC pair).")
    api_secret: Optional[str] = Field(default=None, description="Lalamove API secret used for request signing.")
    sandbox_url: str = Field(
        default="https://rest.sandbox.lalamove.com",
        description="Base URL of the Lalamove REST API (sandbox or production).",
    )
    market: str = Field(default="PH", description="Market code sent in the Market header.")
    api_user: Optional[str] = Field(
        default=None,
        description="Default sender phone used when a seller has no phone on file.",
    )
    webhook_secret: Optional[str] = Field(
        default=None,
        description="Secret for inbound webhook signatures. Falls back to api_secret.",
    )
    language: str = Field(default="en_PH")
    currency: str = Field(default="PHP")
    service_type: str = Field(default="MOTORCYCLE")
    timeout_seconds: float = Field(default=15.0, gt=0.0)
    redispatch_delay_seconds: float = Field(default=60.0, ge=0.0)
    rate_limit_per_minute: int = Field(default=50, ge=1)
    log_bodies: bool = Field(default=False, description="Log redacted request/response bodies at DEBUG.")

    @field_validator("market", "service_type", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("sandbox_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @property
    def effective_webhook_secret(self) -> Optional[str]:
        return self.webhook_secret or self.api_secret


settings = Settings()
lalamove_settings = LalamoveSettings()
