"""
Master data blueprint package: companies, clients, sales managers, items.

IMPORTANT:
- Must expose masters_bp for app factory registration.
"""

from .routes import masters_bp  # noqa: F401
