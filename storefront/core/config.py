# storefront/core/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment (or a local .env in development).
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # The environment mode: 'local', 'test' or 'prod'
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./storefront.db"

    # Buyer identity comes from bearer tokens signed by the identity provider
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    APP_URL: str = "http://localhost:3000"

    # --- Checkout ---
    DEFAULT_CURRENCY: str = "INR"
    DEFAULT_PAYMENT_PROVIDER: Optional[str] = None
    VELOCITY_LIMIT: int = 5
    VELOCITY_WINDOW_MINUTES: int = 60
    DOWNLOAD_TOKEN_TTL_DAYS: int = 7
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # --- Razorpay ---
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_WEBHOOK_SECRET: Optional[str] = None
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"

    # --- Cashfree ---
    CASHFREE_APP_ID: Optional[str] = None
    CASHFREE_SECRET_KEY: Optional[str] = None
    CASHFREE_MODE: str = "SANDBOX"
    CASHFREE_API_VERSION: str = "2022-09-01"

    # --- Stripe ---
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_PUBLISHABLE_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # --- Email (Resend) ---
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM_ADDRESS: str = "orders@example.com"
    EMAIL_FROM_NAME: str = "Template Store"

    @property
    def CASHFREE_API_BASE(self) -> str:
        if self.CASHFREE_MODE.upper() == "PRODUCTION":
            return "https://api.cashfree.com/pg"
        return "https://sandbox.cashfree.com/pg"

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.RAZORPAY_KEY_ID and self.RAZORPAY_KEY_SECRET)

    @property
    def cashfree_configured(self) -> bool:
        return bool(self.CASHFREE_APP_ID and self.CASHFREE_SECRET_KEY)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)


@lru_cache
def get_settings() -> Settings:
    return Settings()
