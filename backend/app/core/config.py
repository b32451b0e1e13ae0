"""
Application Configuration
"""
from functools import lru_cache
from typing import Dict, List, Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


DEFAULT_TOW_PROVIDERS = [
    {"name": "QuickTow Services", "notification_address": "+27698053809"},
    {"name": "Speedy Tow", "notification_address": "+27698053809"},
    {"name": "Rapid Tow Co", "notification_address": "+27698053809"},
    {"name": "Eugene Towing", "notification_address": "+27740881414"},
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "TowDesk"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False  # Secure default
    SECRET_KEY: str = "change-me-in-production"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:3001"]

    # Redis (rate limiting outside development)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Database
    DATABASE_URL: str = "sqlite:///./towdesk.db"
    DATABASE_ECHO: bool = False

    # JWT (operator dashboard)
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24
    OPERATOR_ROLES: List[str] = ["operator", "admin"]

    # Accident links
    PUBLIC_FORM_URL: str = "http://localhost:3000/accident-form"
    LINK_EXPIRATION_HOURS: int = 48
    CONSUME_LINK_ON_SUBMIT: bool = False

    # Messaging deep links
    WHATSAPP_BASE_URL: str = "https://wa.me"
    PHONE_VALIDATION_ENABLED: bool = True
    PHONE_NUMBER_PATTERN: str = r"^(?:\+27|0|(?:\s?\+27)\s?)(?:\d{2}[-.\s]?\d{3}[-.\s]?\d{4})$"
    DEFAULT_COUNTRY_CODE: str = ""

    # Geocoding
    GOOGLE_MAPS_API_KEY: str = ""
    GEOCODING_URL: str = "https://maps.googleapis.com/maps/api/geocode/json"
    GEOCODING_TIMEOUT_SECONDS: float = 5.0

    # Device geolocation options handed to the accident form
    LOCATION_HIGH_ACCURACY: bool = True
    LOCATION_TIMEOUT_MS: int = 10000
    LOCATION_MAX_CACHE_AGE_MS: int = 0

    # File Storage
    UPLOAD_DIR: str = "./uploads"
    MAX_UPLOAD_SIZE_MB: int = 10
    MAX_SCENE_IMAGES: int = 4

    # Tow provider reference data
    TOW_PROVIDERS: List[Dict[str, str]] = DEFAULT_TOW_PROVIDERS

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate critical settings for non-development environments."""
        if self.APP_ENV != "development":
            # Reject default SECRET_KEY in production/staging
            if self.SECRET_KEY == "change-me-in-production":
                raise ValueError(
                    "SECRET_KEY must be changed from default value in production/staging environments. "
                    "Set a secure, random SECRET_KEY in your .env file or environment variables."
                )

            # Warn about DEBUG mode in production
            if self.DEBUG:
                import warnings
                warnings.warn(
                    "DEBUG mode is enabled in a non-development environment. "
                    "This is not recommended for production.",
                    UserWarning,
                )

        if self.LOCATION_TIMEOUT_MS <= 0:
            raise ValueError("LOCATION_TIMEOUT_MS must be a positive number of milliseconds.")

        if self.MAX_SCENE_IMAGES < 0:
            raise ValueError("MAX_SCENE_IMAGES cannot be negative.")

        for provider in self.TOW_PROVIDERS:
            if not provider.get("name") or not provider.get("notification_address"):
                raise ValueError(
                    "Every TOW_PROVIDERS entry needs a 'name' and a 'notification_address'."
                )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
