from pydantic_settings import BaseSettings
from pydantic import field_validator
from decimal import Decimal
from functools import lru_cache
import json
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings (tokens are issued by the admin auth service)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # App Settings
    APP_NAME: str = "Storefront Invoicing"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Business profile copied into every invoice snapshot
    BUSINESS_NAME: str = "AffordIndia"
    BUSINESS_ADDRESS: str = "123, Business Street, Commercial Complex"
    BUSINESS_CITY: str = "Mumbai"
    BUSINESS_STATE: str = "Maharashtra"
    BUSINESS_PINCODE: str = "400001"
    BUSINESS_COUNTRY: str = "India"
    BUSINESS_GSTIN: str = "27ABCDE1234F1Z5"
    BUSINESS_PAN: str = "ABCDE1234F"
    BUSINESS_PHONE: str = "+91-9876543210"
    BUSINESS_EMAIL: str = "contact@affordindia.com"
    BUSINESS_WEBSITE: str = "www.affordindia.com"
    # Calendar year of invoice numbering follows this zone
    BUSINESS_TIMEZONE: str = "Asia/Kolkata"

    # Bank details printed on the invoice
    BANK_ACCOUNT_NAME: str = "AffordIndia Private Limited"
    BANK_ACCOUNT_NUMBER: str = "123456789012"
    BANK_IFSC: str = "ICIC0001234"
    BANK_NAME: str = "ICICI Bank"
    BANK_BRANCH: str = "Andheri West Branch"

    # GST / Invoice
    DEFAULT_GST_RATE: Decimal = Decimal("18")
    INVOICE_PREFIX: str = "INV"
    INVOICE_TERMS: list[str] = [
        "Payment is due within 30 days of invoice date",
        "Goods once sold cannot be returned without prior approval",
    ]

    # Caller-side retry policy for retryable failures
    SEQUENCE_RETRY_ATTEMPTS: int = 2
    RENDER_RETRY_ATTEMPTS: int = 2
    RETRY_BACKOFF_SECONDS: float = 0.2

    @field_validator('CORS_ORIGINS', 'INVOICE_TERMS', mode='before')
    @classmethod
    def parse_string_list(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(',') if item.strip()]
        return v

    @field_validator('INVOICE_PREFIX')
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v.isalnum() or not v.isupper():
            raise ValueError("INVOICE_PREFIX must be upper-case alphanumeric")
        return v

    @field_validator('BUSINESS_TIMEZONE')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown BUSINESS_TIMEZONE: {v}")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return self.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
