# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key (also signs flash messages)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Stock transfer read-modify-write retries (optimistic version conflicts)
    TRANSFER_RETRY_ATTEMPTS = int(os.environ.get("TRANSFER_RETRY_ATTEMPTS", "3"))
    TRANSFER_RETRY_BACKOFF = float(os.environ.get("TRANSFER_RETRY_BACKOFF", "0.1"))

    STOCK_TRANSFER_DEFAULT_LIMIT = 50
    STOCK_TRANSFER_MAX_LIMIT = 200

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
