# services/config.py
from __future__ import annotations
import os
from decimal import Decimal

from services.billing import BillingRates, DEFAULT_SUBSCRIPTION_RATES

# ------------------------------------------------------------------------------
# Helper: get env var with fallback
# ------------------------------------------------------------------------------
def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return v if v is not None and v != "" else default

# ------------------------------------------------------------------------------
# Database
# ------------------------------------------------------------------------------
DB_URL: str = _env("DB_URL", "sqlite://./db.sqlite3")

# Browser clients allowed by CORS (comma-separated env -> list)
CORS_ORIGINS: list[str] = [o.strip() for o in _env("CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]

# Seed sample countries / tariff rates on an empty database
SEED_ON_STARTUP: bool = _env("SEED_ON_STARTUP", "1") not in {"0", "false", "no"}

# ------------------------------------------------------------------------------
# Payment unit rates
# ------------------------------------------------------------------------------
PAYMENT_API_CALL_RATE: str = _env("PAYMENT_API_CALL_RATE", "0.0001")
PAYMENT_IOT_INSTALLATION_RATE: str = _env("PAYMENT_IOT_INSTALLATION_RATE", "0.5")
PAYMENT_STORAGE_RATE_PER_GB: str = _env("PAYMENT_STORAGE_RATE_PER_GB", "0.1")
PAYMENT_FREE_STORAGE_LIMIT_GB: int = int(_env("PAYMENT_FREE_STORAGE_LIMIT_GB", "20"))

# Outstanding payments are re-derived on this interval; 0 disables the job.
PAYMENT_REFRESH_SECONDS: int = int(_env("PAYMENT_REFRESH_SECONDS", "3600"))


def billing_rates() -> BillingRates:
    return BillingRates(
        api_call_rate=Decimal(PAYMENT_API_CALL_RATE),
        iot_installation_rate=Decimal(PAYMENT_IOT_INSTALLATION_RATE),
        storage_rate_per_gb=Decimal(PAYMENT_STORAGE_RATE_PER_GB),
        free_storage_limit_gb=PAYMENT_FREE_STORAGE_LIMIT_GB,
        subscription_rates=dict(DEFAULT_SUBSCRIPTION_RATES),
    )


def get_billing_rates() -> BillingRates:
    """FastAPI dependency; tests override it through app.dependency_overrides."""
    return billing_rates()
