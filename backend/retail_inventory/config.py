# backend/retail_inventory/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> float | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retail_inventory.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retail_inventory.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Sales tax in basis points (1000 = 10%)
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "1000"))
    RECEIPT_PREFIX = os.environ.get("RECEIPT_PREFIX", "NAR")

    # Restock never closes open low-stock alerts unless this is enabled
    ALERT_AUTO_RESOLVE_ON_RESTOCK = _env_bool("ALERT_AUTO_RESOLVE_ON_RESTOCK", False)

    # Max seconds to wait for a product lock before the commit is refused
    COMMIT_TIMEOUT_SECONDS = _env_float("COMMIT_TIMEOUT_SECONDS")

    # Actor used by CLI commands (no request context there)
    DEFAULT_ACTOR_ID = int(os.environ.get("DEFAULT_ACTOR_ID", "1"))
    DEFAULT_ACTOR_NAME = os.environ.get("DEFAULT_ACTOR_NAME", "system")
