"""
tradedocs/blueprints/quotations/routes.py

Quotation routes.

- GET    /api/quotations?search=&company_code=   newest first, capped list
- POST   /api/quotations                         create (number allocated)
- GET    /api/quotations/<id>                    detail/print payload
- PUT    /api/quotations/<id>                    re-assemble, number unchanged
- DELETE /api/quotations/<id>

SECURITY:
- All endpoints require User.can_create_quotation (admins bypass).

Transaction boundary:
- tradedocs.documents only flushes. The commit happens here, after the audit
  entry is added; any raised error is rolled back by the app error handler.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from ...audit import log_action, snapshot_document
from ...documents import (
    QUOTATION,
    create_document,
    delete_document,
    get_document,
    list_documents,
    present_document,
    update_document,
)
from ...extensions import db
from ...security import QUOTATION_PERMISSION, permission_required
from ...utils import json_payload

quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


@quotations_bp.route("", methods=["GET"])
@permission_required(QUOTATION_PERMISSION)
def list_quotations():
    quotations = list_documents(
        QUOTATION,
        search=request.args.get("search"),
        company_code=request.args.get("company_code"),
        limit=current_app.config["DOCUMENT_LIST_LIMIT"],
    )
    return jsonify([q.to_dict() for q in quotations])


@quotations_bp.route("", methods=["POST"])
@permission_required(QUOTATION_PERMISSION)
def create_quotation():
    quotation = create_document(QUOTATION, json_payload(), created_by=current_user._get_current_object())
    log_action(quotation, "CREATE", before=None, after=snapshot_document(quotation))
    db.session.commit()

    return jsonify(present_document(QUOTATION, quotation)), 201


@quotations_bp.route("/<int:quotation_id>", methods=["GET"])
@permission_required(QUOTATION_PERMISSION)
def get_quotation(quotation_id: int):
    return jsonify(present_document(QUOTATION, get_document(QUOTATION, quotation_id)))


@quotations_bp.route("/<int:quotation_id>", methods=["PUT"])
@permission_required(QUOTATION_PERMISSION)
def update_quotation(quotation_id: int):
    before_snapshot = snapshot_document(get_document(QUOTATION, quotation_id))
    quotation = update_document(QUOTATION, quotation_id, json_payload())
    log_action(quotation, "UPDATE", before=before_snapshot, after=snapshot_document(quotation))
    db.session.commit()

    return jsonify(present_document(QUOTATION, quotation))


@quotations_bp.route("/<int:quotation_id>", methods=["DELETE"])
@permission_required(QUOTATION_PERMISSION)
def delete_quotation(quotation_id: int):
    before_snapshot = snapshot_document(get_document(QUOTATION, quotation_id))
    quotation = delete_document(QUOTATION, quotation_id)
    log_action(quotation, "DELETE", before=before_snapshot, after=None)
    db.session.commit()

    return jsonify({"message": "Quotation deleted"})
