# backend/boutique/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/boutique.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///boutique.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Invoicing
    DEFAULT_TAX_RATE_PERCENT = float(os.environ.get("DEFAULT_TAX_RATE_PERCENT", "18"))
    # When False, a sale that would drive an item's quantity below zero is rejected
    ALLOW_NEGATIVE_STOCK = _env_bool("ALLOW_NEGATIVE_STOCK", True)

    # Stock level buckets: low < LOW_STOCK_THRESHOLD <= medium < HIGH_STOCK_THRESHOLD <= high
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
    HIGH_STOCK_THRESHOLD = int(os.environ.get("HIGH_STOCK_THRESHOLD", "50"))

    # Prefixed to customer phone numbers in share links when missing
    DEFAULT_COUNTRY_CODE = os.environ.get("DEFAULT_COUNTRY_CODE", "91")

    # Bootstrap admin account (used by `flask system init` only)
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@aleen.com")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin123")

    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))
