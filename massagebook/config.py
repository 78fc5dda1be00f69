"""Configuration objects for the reservation service.

Values come from the environment. ``config/config.env`` (or a ``.env`` file in
the project root) is loaded first so local development does not need exported
variables.
"""
from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

load_dotenv(dotenv_path=PROJECT_ROOT / "config" / "config.env")
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class Config:
    APP_ENV = os.getenv("APP_ENV", "development")

    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        warnings.warn(
            "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
            RuntimeWarning,
            stacklevel=2,
        )
        SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///massagebook.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens and the cookie that carries them
    TOKEN_EXPIRE_DAYS = int(os.getenv("TOKEN_EXPIRE_DAYS", "30"))
    COOKIE_EXPIRE_DAYS = int(os.getenv("COOKIE_EXPIRE_DAYS", "30"))

    # Booking rules
    BOOKING_CAP = int(os.getenv("BOOKING_CAP", "3"))
    # "admin" or "authenticated"
    SHOP_CREATION_POLICY = os.getenv("SHOP_CREATION_POLICY", "admin")
    REGISTRATION_ROLES = _env_list("REGISTRATION_ROLES", "user,staff")

    # Password reset
    RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "10"))

    # Outgoing mail (SMTP)
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "Massage Reservation <noreply@massagebook.local>")
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)

    CORS_ORIGINS = _env_list("CORS_ORIGINS", "*")


class TestConfig(Config):
    TESTING = True
    APP_ENV = "test"
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    MAIL_SUPPRESS_SEND = True
