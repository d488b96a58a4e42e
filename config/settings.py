"""
Centralized configuration for the WhatsApp Concierge bot.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

SUPPORTED_LANGUAGES = ("en", "es")


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # WhatsApp Cloud API
    whatsapp_access_token: Optional[str] = Field(default=None)
    whatsapp_phone_number_id: Optional[str] = Field(default=None)
    whatsapp_verify_token: str = Field(default="")
    whatsapp_api_version: str = Field(default="v20.0")
    whatsapp_send_timeout: float = Field(default=10.0, gt=0)

    # Conversation
    require_language_selection: bool = Field(default=True)
    default_language: str = Field(default="en")
    session_ttl_seconds: int = Field(default=6 * 60 * 60, gt=0)
    dedupe_window_seconds: int = Field(default=10 * 60, gt=0)
    sweep_interval_seconds: int = Field(default=2 * 60, ge=0)

    # Tenants (JSON file overriding the built-in catalog)
    tenants_file: Optional[str] = Field(default=None)

    # Records forwarding
    records_webhook_url: Optional[str] = Field(default=None)
    records_webhook_api_key: Optional[str] = Field(default=None)

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_title: str = Field(default="WhatsApp Concierge Bot API")
    api_version: str = Field(default="1.0.0")
    admin_api_key: Optional[str] = Field(default=None)
    cors_origins: str = Field(default="*")

    # Logging
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    @field_validator("default_language")
    @classmethod
    def _check_language(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(
                f"DEFAULT_LANGUAGE must be one of {SUPPORTED_LANGUAGES}, got {value!r}"
            )
        return value

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.whatsapp_access_token and self.whatsapp_phone_number_id)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
