# /shopgenie/config/settings.py

import sys
import re
from typing import Annotated, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    # MongoDB
    mongo_atlas_uri: str
    max_pool_size: int = 10
    min_pool_size: int = 1
    mongo_ssl: bool = False

    # WhatsApp Cloud API
    whatsapp_access_token: str
    whatsapp_phone_id: str
    whatsapp_verify_token: str
    whatsapp_webhook_secret: str
    whatsapp_api_version: str = "v18.0"

    # Intent classification
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    classifier_timeout_seconds: float = 15.0
    classifier_min_confidence: float = 0.5

    # Geocoding
    google_maps_api_key: str | None = None

    # Conversation
    session_lock_timeout_seconds: int = 30
    otp_length: int = 6
    # Comma-separated list of numbers allowed to receive replies (beta gate). Empty means everyone.
    allowed_recipients: Annotated[List[str], NoDecode] = Field(default_factory=list)

    # Deployment
    workers: int = 4
    environment: str = "production"
    log_level: str = "INFO"

    # Redis
    redis_url: str = "redis://localhost:6379"

    cors_allowed_origins: Annotated[List[str], NoDecode] = Field(default=["http://localhost:3000"])

    # App Metadata & Limits
    api_version: str = "v1"
    rate_limit_per_minute: int = 100
    webhook_rate_limit_per_minute: int = 300

    # ---------------- Validators ---------------- #

    @field_validator("cors_allowed_origins", "allowed_recipients", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Accepts either a comma-separated string or a list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("openai_api_key", "google_maps_api_key", mode="before")
    @classmethod
    def empty_key_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("mongo_atlas_uri")
    @classmethod
    def mongo_uri_scheme(cls, v):
        if not re.match(r"^mongodb(\+srv)?://", v):
            raise ValueError("MONGO_ATLAS_URI must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("whatsapp_phone_id")
    @classmethod
    def phone_id_must_be_digits(cls, v):
        if not re.match(r"^\d+$", v):
            raise ValueError("WHATSAPP_PHONE_ID must contain only digits")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def validate_environment(settings_obj: Settings):
    try:
        if not settings_obj.whatsapp_verify_token:
            raise ValueError("WHATSAPP_VERIFY_TOKEN is required")

        if settings_obj.environment == "production":
            for var in ["whatsapp_access_token", "whatsapp_webhook_secret"]:
                if not getattr(settings_obj, var):
                    raise ValueError(f"{var.upper()} is required in production")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
