# backend/elibrary/config.py
from __future__ import annotations
import os


def _csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/elibrary.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///elibrary.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Payee details encoded into UPI collection URIs
    UPI_VPA = os.environ.get("UPI_VPA", "library@upi")
    UPI_PAYEE_NAME = os.environ.get("UPI_PAYEE_NAME", "E-Library")
    UPI_CURRENCY = os.environ.get("UPI_CURRENCY", "INR")

    # Print shop
    DEFAULT_COST_PER_PAGE = int(os.environ.get("DEFAULT_COST_PER_PAGE", "2"))
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    MAX_CONTENT_LENGTH = 15 * 1024 * 1024

    # Auth
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "168"))

    # Google sign-in is disabled (501) while this is unset
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")

    CORS_ORIGINS = _csv(os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"))
