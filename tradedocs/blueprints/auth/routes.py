"""
Authentication Routes

Provides:
- POST /api/auth/register   (first user bootstraps the system)
- POST /api/auth/login
- POST /api/auth/logout
- GET  /api/auth/me
- GET  /api/auth/csrf-token

Rules:
- The FIRST registered user may be admin (defaults to admin) for setup.
- Every later public registration is a plain "user".
- Admins get both document permissions; any other self-registered user gets
  none (permission flags in the request are ignored, an admin grants them).
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...errors import AuthenticationRequired, ConflictError, ValidationError
from ...extensions import db
from ...models import User
from ...resolvers import normalize_email
from ...security import api_login_required
from ...utils import clean_str, json_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# ============================================================
# REGISTER
# ============================================================

@auth_bp.route("/register", methods=["POST"])
def register():
    """Create a user account. Only the very first account can be admin."""
    data = json_payload()
    name = clean_str(data.get("name"))
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    if not name or not email or not password:
        raise ValidationError("Name, email and password are required")

    if User.query.filter_by(email=email).first():
        raise ConflictError("User already exists")

    if User.query.count() == 0:
        requested = clean_str(data.get("role")) or User.ROLE_ADMIN
        role = User.ROLE_ADMIN if requested == User.ROLE_ADMIN else User.ROLE_USER
    else:
        role = User.ROLE_USER

    is_admin = role == User.ROLE_ADMIN
    user = User(
        name=name,
        email=email,
        role=role,
        can_create_quotation=is_admin,
        can_create_purchase_order=is_admin,
        is_active=True,
    )
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    login_user(user)
    return jsonify(user.to_dict()), 201


# ============================================================
# LOGIN / LOGOUT
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate an active user with email + password."""
    data = json_payload()
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        raise AuthenticationRequired("Invalid email or password")

    if not user.is_active:
        raise AuthenticationRequired("Account is inactive")

    login_user(user)
    return jsonify(user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
@api_login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"message": "Logged out"})


@auth_bp.route("/me")
@api_login_required
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route("/csrf-token")
def csrf_token():
    """Token to send back as the X-CSRFToken header on mutating requests."""
    return jsonify({"csrf_token": generate_csrf()})
