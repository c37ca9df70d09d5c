"""
tradedocs/security.py

Access control helpers for the JSON API.

Key rules:
- Authentication is Flask-Login session based.
- Admin (role "admin"): full access, bypasses permission flags.
- Quotation endpoints require User.can_create_quotation,
  purchase order endpoints require User.can_create_purchase_order.
- The capability check happens here, at the HTTP boundary. The document
  assembler (tradedocs/documents.py) never checks permissions itself.

Failures raise typed errors; the app's JSON error handlers turn them into 401/403.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask_login import current_user

from .errors import AuthenticationRequired, PermissionDenied

QUOTATION_PERMISSION = "can_create_quotation"
PURCHASE_ORDER_PERMISSION = "can_create_purchase_order"


def is_admin() -> bool:
    """Return True if current user is authenticated and admin."""
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def api_login_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: any authenticated, active user."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            raise AuthenticationRequired()
        return view_func(*args, **kwargs)

    return wrapper


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            raise AuthenticationRequired()
        if not is_admin():
            raise PermissionDenied("Only admin can perform this action")
        return view_func(*args, **kwargs)

    return wrapper


def permission_required(flag: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: require a permission flag on the current user.

    Usage:
        @permission_required(QUOTATION_PERMISSION)
        def create_quotation(): ...
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not current_user.is_authenticated:
                raise AuthenticationRequired()
            if not current_user.has_permission(flag):
                raise PermissionDenied()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator
