"""
Purchase order routes (require User.can_create_purchase_order).

- GET    /api/purchase-orders?search=&company_code=
- POST   /api/purchase-orders        number allocated unless purchase_number is given
- GET    /api/purchase-orders/<id>
- PUT    /api/purchase-orders/<id>   purchase_number may change (409 if taken)
- DELETE /api/purchase-orders/<id>

Every write commits here, after the audit entry.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from ...audit import log_action, snapshot_document
from ...documents import (
    PURCHASE_ORDER,
    create_document,
    delete_document,
    get_document,
    list_documents,
    present_document,
    update_document,
)
from ...extensions import db
from ...security import PURCHASE_ORDER_PERMISSION, permission_required
from ...utils import json_payload

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.route("", methods=["GET"])
@permission_required(PURCHASE_ORDER_PERMISSION)
def list_purchase_orders():
    orders = list_documents(
        PURCHASE_ORDER,
        search=request.args.get("search"),
        company_code=request.args.get("company_code"),
        limit=current_app.config["DOCUMENT_LIST_LIMIT"],
    )
    return jsonify([po.to_dict() for po in orders])


@purchase_orders_bp.route("", methods=["POST"])
@permission_required(PURCHASE_ORDER_PERMISSION)
def create_purchase_order():
    order = create_document(PURCHASE_ORDER, json_payload(), created_by=current_user._get_current_object())
    log_action(order, "CREATE", before=None, after=snapshot_document(order))
    db.session.commit()

    return jsonify(present_document(PURCHASE_ORDER, order)), 201


@purchase_orders_bp.route("/<int:order_id>", methods=["GET"])
@permission_required(PURCHASE_ORDER_PERMISSION)
def get_purchase_order(order_id: int):
    return jsonify(present_document(PURCHASE_ORDER, get_document(PURCHASE_ORDER, order_id)))


@purchase_orders_bp.route("/<int:order_id>", methods=["PUT"])
@permission_required(PURCHASE_ORDER_PERMISSION)
def update_purchase_order(order_id: int):
    before_snapshot = snapshot_document(get_document(PURCHASE_ORDER, order_id))
    order = update_document(PURCHASE_ORDER, order_id, json_payload())
    log_action(order, "UPDATE", before=before_snapshot, after=snapshot_document(order))
    db.session.commit()

    return jsonify(present_document(PURCHASE_ORDER, order))


@purchase_orders_bp.route("/<int:order_id>", methods=["DELETE"])
@permission_required(PURCHASE_ORDER_PERMISSION)
def delete_purchase_order(order_id: int):
    before_snapshot = snapshot_document(get_document(PURCHASE_ORDER, order_id))
    order = delete_document(PURCHASE_ORDER, order_id)
    log_action(order, "DELETE", before=before_snapshot, after=None)
    db.session.commit()

    return jsonify({"message": "Purchase order deleted"})
