# backend/emilocker/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/emilocker.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///emilocker.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "production" hides exception detail from error envelopes
    APP_ENV = os.environ.get("APP_ENV", "development")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 2)

    # bcrypt cost factor; tests lower it to keep fixtures fast
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # Upper bound on any single store call (connect / pool checkout)
    STORE_TIMEOUT_SECONDS = _env_int("STORE_TIMEOUT_SECONDS", 10)

    PAGINATION_DEFAULT_LIMIT = _env_int("PAGINATION_DEFAULT_LIMIT", 20)
    PAGINATION_MAX_LIMIT = _env_int("PAGINATION_MAX_LIMIT", 100)

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }
