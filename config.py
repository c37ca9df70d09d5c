"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
logging level and list paging. It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'tradedocs.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for mutating API calls (X-CSRFToken header)
    WTF_CSRF_ENABLED = _env_flag("WTF_CSRF_ENABLED", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Paginated master lists (items, clients, sales managers)
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    # Document list/search endpoints
    DOCUMENT_LIST_LIMIT = 100

    APP_NAME = "Quotation & Purchase Order Manager"


class TestingConfig(Config):
    """Isolated in-memory database, no CSRF."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"
