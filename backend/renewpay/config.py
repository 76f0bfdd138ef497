"""
RenewPay Configuration Module

Loads environment variables for backend configuration. PayU merchant secrets
are read here and nowhere else; they are never sent to the browser.
"""
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Payment Notes:
    - Merchant key and salt default to empty; request building and callback
      verification refuse to run until both are set
    - Test mode targets the PayU sandbox endpoint
    - Pending expiry of 0 disables the orphaned-pending sweep
    """

    # PayU Merchant Configuration
    payu_merchant_key: str = ""
    payu_merchant_salt: str = ""
    payu_test_mode: bool = True

    # Public URL the gateway redirects back to (success/failure callbacks)
    public_base_url: str = "http://localhost:8000"

    # Renewal Plan
    renewal_amount: Decimal = Decimal("3000.00")
    renewal_months: int = 12
    product_info: str = "Inventory Subscription Renewal - Annual Plan"
    support_email: str = "retailmarketingpro1.0@gmail.com"

    # Database
    database_url: str = "sqlite+aiosqlite:///./renewpay.db"

    # Expiry sweeps
    pending_expiry_minutes: int = 1440
    expiry_sweep_interval_minutes: int = 15

    # Sessions
    session_cookie_name: str = "renewpay_session"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the active settings (overridden in tests)."""
    return settings
