# backend/gudang/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/gudang.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///gudang.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Ledger writes: retry budget for lock/version conflicts
    TX_RETRY_ATTEMPTS = int(os.environ.get("TX_RETRY_ATTEMPTS", "3"))
    TX_RETRY_BACKOFF = float(os.environ.get("TX_RETRY_BACKOFF", "0.1"))

    DASHBOARD_DEFAULT_LIMIT = int(os.environ.get("DASHBOARD_DEFAULT_LIMIT", "5"))
    ACTIVITY_DEFAULT_LIMIT = int(os.environ.get("ACTIVITY_DEFAULT_LIMIT", "10"))

    CENTRAL_LABEL = os.environ.get("CENTRAL_LABEL", "Central")
    UNKNOWN_OUTLET_LABEL = os.environ.get("UNKNOWN_OUTLET_LABEL", "Unknown outlet")

    # Callable(request) -> AccessScope. None means full access.
    ACCESS_SCOPE_RESOLVER = None
