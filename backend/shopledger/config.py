# backend/shopledger/config.py
from __future__ import annotations
import os


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def engine_options_for(database_uri: str, timeout_seconds: float) -> dict:
    """
    Engine options derived from the database URI.

    SQLite gets a busy timeout equal to the ledger transaction timeout so a
    writer waiting on another writer gives up at the same bound.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    return {"pool_pre_ping": True}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for every mutating ledger transaction (seconds)
    LEDGER_TRANSACTION_TIMEOUT_SECONDS = _float_env("LEDGER_TRANSACTION_TIMEOUT_SECONDS", 20.0)

    SQLALCHEMY_ENGINE_OPTIONS = engine_options_for(
        SQLALCHEMY_DATABASE_URI, LEDGER_TRANSACTION_TIMEOUT_SECONDS
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Header carrying the opaque id of the authenticated actor
    ACTOR_HEADER = os.environ.get("ACTOR_HEADER", "X-Actor-Id")
