# backend/stockpro/config.py
from __future__ import annotations
import os


def _engine_options(database_uri: str, timeout_seconds: int) -> dict:
    """Bound every store call: busy timeout on SQLite, pool wait elsewhere."""
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    return {"pool_timeout": timeout_seconds, "pool_pre_ping": True}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockpro.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockpro.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    STOCKPRO_DB_TIMEOUT_SECONDS = int(os.environ.get("STOCKPRO_DB_TIMEOUT_SECONDS", "15"))
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI, STOCKPRO_DB_TIMEOUT_SECONDS)

    # 750 basis points = 7.5% VAT
    STOCKPRO_TAX_RATE_BP = int(os.environ.get("STOCKPRO_TAX_RATE_BP", "750"))
    STOCKPRO_LOW_STOCK_THRESHOLD = int(os.environ.get("STOCKPRO_LOW_STOCK_THRESHOLD", "5"))
    STOCKPRO_CURRENCY_SYMBOL = os.environ.get("STOCKPRO_CURRENCY_SYMBOL", "₦")

    # bcrypt cost factor; tests lower it
    STOCKPRO_BCRYPT_ROUNDS = int(os.environ.get("STOCKPRO_BCRYPT_ROUNDS", "12"))

    STOCKPRO_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "STOCKPRO_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]
