"""Application configuration module."""

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration for the Flask application."""

    # Core
    APP_ENV = os.getenv("APP_ENV", "development")
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///natours.db")
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 10 * 1024  # 10 KB request bodies

    # Session tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.getenv("JWT_EXPIRES_IN_DAYS", "90")))
    JWT_COOKIE_EXPIRES_IN = timedelta(
        days=int(os.getenv("JWT_COOKIE_EXPIRES_IN_DAYS", "90"))
    )
    JWT_TOKEN_LOCATION = ["headers", "cookies"]
    JWT_ACCESS_COOKIE_NAME = "jwt"
    JWT_COOKIE_SAMESITE = "Lax"
    JWT_COOKIE_SECURE = APP_ENV == "production"
    JWT_COOKIE_CSRF_PROTECT = False

    # Passwords
    BCRYPT_LOG_ROUNDS = int(os.getenv("BCRYPT_LOG_ROUNDS", "12"))
    PASSWORD_RESET_EXPIRES_MINUTES = 10

    # CORS
    _raw_origins = os.getenv("ORIGINS", "*")
    if _raw_origins.strip() == "*":
        CORS_ORIGINS = "*"
    else:
        CORS_ORIGINS = [o.strip() for o in _raw_origins.split(",") if o.strip()]

    # Rate limiting (API routes only)
    RATE_LIMIT = os.getenv("RATE_LIMIT", "100 per hour")
    RATELIMIT_ENABLED = True
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_KEY_PREFIX = os.getenv("RATELIMIT_KEY_PREFIX", "")

    # Transactional email
    MAIL_API_URL = os.getenv("MAIL_API_URL", "https://api.brevo.com/v3/smtp/email")
    MAIL_API_KEY = os.getenv("MAIL_API_KEY")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Natours")
    MAIL_FROM_EMAIL = os.getenv("MAIL_FROM_EMAIL", "hello@natours.example")
    MAIL_SUPPRESS_SEND = os.getenv("MAIL_SUPPRESS_SEND", "false").lower() == "true"
