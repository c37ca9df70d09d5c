"""
User Management (Admin Only).

- GET    /api/users         list users
- PUT    /api/users/<id>    role, permission flags, active flag, name, password
- DELETE /api/users/<id>

Rules:
- An admin cannot demote, deactivate or delete their own account
  (the system must keep at least one reachable admin).

Audit:
- UPDATE / DELETE logged
"""

from flask import Blueprint, jsonify
from flask_login import current_user

from ...audit import log_action, serialize_model
from ...errors import NotFoundError, ValidationError
from ...extensions import db
from ...models import User
from ...security import admin_required
from ...utils import clean_str, json_payload


users_bp = Blueprint("users", __name__, url_prefix="/api/users")

SECRET_COLUMNS = {"password_hash"}
PERMISSION_FLAGS = ("can_create_quotation", "can_create_purchase_order", "is_active")


def _load_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", id=user_id)
    return user


@users_bp.route("/")
@admin_required
def list_users():
    """Admin view: list all users."""
    users = User.query.order_by(User.name.asc()).all()
    return jsonify([u.to_dict() for u in users])


@users_bp.route("/<int:user_id>", methods=["PUT"])
@admin_required
def update_user(user_id: int):
    user = _load_user(user_id)
    data = json_payload()
    before_snapshot = serialize_model(user, exclude=SECRET_COLUMNS)

    role = clean_str(data.get("role"))
    if role is not None:
        if role not in (User.ROLE_ADMIN, User.ROLE_USER):
            raise ValidationError("Invalid role", field="role")
        if user.id == current_user.id and role != User.ROLE_ADMIN:
            raise ValidationError("You cannot remove your own admin role")
        user.role = role

    for flag in PERMISSION_FLAGS:
        if flag in data:
            setattr(user, flag, bool(data.get(flag)))
    if user.id == current_user.id and not user.is_active:
        raise ValidationError("You cannot deactivate your own account")

    name = clean_str(data.get("name"))
    if name:
        user.name = name

    new_password = data.get("password") or ""
    if new_password:
        user.set_password(new_password)

    db.session.flush()
    log_action(user, "UPDATE", before=before_snapshot, after=serialize_model(user, exclude=SECRET_COLUMNS))
    db.session.commit()

    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: int):
    user = _load_user(user_id)
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")

    before_snapshot = serialize_model(user, exclude=SECRET_COLUMNS)
    log_action(user, "DELETE", before=before_snapshot, after=None)
    db.session.delete(user)
    db.session.commit()

    return jsonify({"message": "User deleted"})
