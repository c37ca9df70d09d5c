"""Quotations blueprint package."""

from .routes import quotations_bp  # noqa: F401
