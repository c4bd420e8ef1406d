# listing_backend/config.py
# Environment-aware configuration for the listing marketplace backend

import logging
import os
from typing import Literal

logger = logging.getLogger(__name__)

# Environment detection
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# JWT configuration
DEFAULT_SECRET_KEY = "dev-only-secret-change-me"
SECRET_KEY = os.environ.get("SECRET_KEY", DEFAULT_SECRET_KEY)
ALGORITHM = "HS256"

# Token lifetime (the web client keeps a single long-lived access token)
ACCESS_TOKEN_DAYS = int(os.environ.get("ACCESS_TOKEN_DAYS", "30"))

# Database configuration
# DATABASE_URL may point at PostgreSQL; local development falls back to SQLite
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip() or "sqlite:///listing_marketplace.db"
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "json" if IS_PROD else "text").lower()

# Search pagination
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 12
MAX_LIMIT = 100

# Optional bootstrap admin (admins cannot self-register)
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "").strip().lower()
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")

# CORS origins (expand for staging/prod)
CORS_ORIGINS = [
    "http://localhost:3000",  # React dev server
    "http://127.0.0.1:3000",
    "http://localhost:5173",  # Vite
]

if IS_STAGING or IS_PROD:
    extra_origins = os.environ.get("CORS_ORIGINS", "")
    if extra_origins:
        CORS_ORIGINS.extend(origin.strip() for origin in extra_origins.split(",") if origin.strip())


def validate_settings() -> None:
    """Fail fast on settings that must never reach production."""
    if IS_PROD and SECRET_KEY == DEFAULT_SECRET_KEY:
        raise RuntimeError("SECRET_KEY must be set in production")


def log_settings() -> None:
    logger.info("[CONFIG] Environment: %s", ENV)
    logger.info("[CONFIG] Database: %s", "PostgreSQL" if IS_POSTGRES else "SQLite (local dev)")
    logger.info("[CONFIG] Access token: %s days", ACCESS_TOKEN_DAYS)
