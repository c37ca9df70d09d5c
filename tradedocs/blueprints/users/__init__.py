"""User administration blueprint package (admin only)."""

from .routes import users_bp  # noqa: F401
