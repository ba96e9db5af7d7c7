# backend/apparel_pos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/apparel_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///apparel_pos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seller block printed on every invoice
    BUSINESS_NAME = os.environ.get("BUSINESS_NAME", "Kamdon Fashion")
    BUSINESS_GSTIN = os.environ.get("BUSINESS_GSTIN", "GSTIN_PLACEHOLDER")
    BUSINESS_ADDRESS = os.environ.get("BUSINESS_ADDRESS", "Store Address Line 1, City, State")
    BUSINESS_STATE_CODE = os.environ.get("BUSINESS_STATE_CODE", "27")  # Maharashtra
    BUSINESS_PHONE = os.environ.get("BUSINESS_PHONE", "+91-XXXXXXXXXX")
    BUSINESS_EMAIL = os.environ.get("BUSINESS_EMAIL", "contact@kamdonfashion.com")

    # Overdue pre-booking sweep
    PREBOOKING_SWEEP_ENABLED = _env_bool("PREBOOKING_SWEEP_ENABLED", False)
    PREBOOKING_SWEEP_INTERVAL_SECONDS = float(os.environ.get("PREBOOKING_SWEEP_INTERVAL_SECONDS", "60"))

    # Optimistic transaction retries
    STORE_RETRY_ATTEMPTS = int(os.environ.get("STORE_RETRY_ATTEMPTS", "3"))
    STORE_RETRY_BACKOFF_SECONDS = float(os.environ.get("STORE_RETRY_BACKOFF_SECONDS", "0.1"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    PREBOOKING_SWEEP_ENABLED = False
    STORE_RETRY_BACKOFF_SECONDS = 0.01
