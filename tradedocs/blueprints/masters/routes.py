"""
tradedocs/blueprints/masters/routes.py

Master data routes.

Scope:
- Companies CRUD (code normalized to upper case, unique)
- Clients / Sales managers: POST upserts by email (existing record updated),
  GET ?email= fetches one, GET ?search=&page=&per_page= paginates by name
- Items CRUD with paginated search on description/model

SECURITY:
- Any logged-in user may manage master data (as in the document screens,
  where masters are created on the fly).

AUDIT:
- CREATE/UPDATE/DELETE for master data is audited via tradedocs/audit.py.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from sqlalchemy import or_

from ...amounts import parse_amount, parse_percent
from ...audit import log_action, serialize_model
from ...errors import ConflictError, NotFoundError, ValidationError
from ...extensions import db
from ...models import Client, Company, Item, PurchaseOrder, Quotation, SalesManager
from ...resolvers import normalize_company_code, normalize_email
from ...security import api_login_required
from ...utils import clean_str, json_payload, paginate_query

masters_bp = Blueprint("masters", __name__, url_prefix="/api")

COMPANY_FIELDS = ("name", "address", "contact", "email", "gstin", "logo_url", "header_html", "footer_html")
COUNTERPARTY_FIELDS = ("name", "address", "contact", "gstin")
ITEM_TEXT_FIELDS = ("description", "model", "hsn", "unit")


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _get_or_404(model, entity_id: int, label: str):
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise NotFoundError(f"{label} not found", id=entity_id)
    return entity


def _apply_text_fields(entity, data, fields) -> None:
    """Set fields present in the payload (None keeps the stored value)."""
    for field in fields:
        if field in data and data.get(field) is not None:
            setattr(entity, field, clean_str(data.get(field)) or "")


def _delete_with_audit(entity) -> None:
    log_action(entity, "DELETE", before=serialize_model(entity), after=None)
    db.session.delete(entity)
    db.session.commit()


# ----------------------------------------------------------------------
# COMPANIES
# ----------------------------------------------------------------------
@masters_bp.route("/companies", methods=["GET"])
@api_login_required
def list_companies():
    companies = Company.query.order_by(Company.name.asc()).all()
    return jsonify([c.to_dict() for c in companies])


@masters_bp.route("/companies", methods=["POST"])
@api_login_required
def create_company():
    data = json_payload()
    code = normalize_company_code(data.get("company_code"))
    if not code:
        raise ValidationError("Invalid company_code", field="company_code")
    if Company.query.filter_by(company_code=code).first():
        raise ConflictError(f"Company {code} already exists", company_code=code)

    company = Company(company_code=code, name=clean_str(data.get("name")) or code)
    _apply_text_fields(company, data, COMPANY_FIELDS[1:])

    db.session.add(company)
    db.session.flush()
    log_action(company, "CREATE", before=None, after=serialize_model(company))
    db.session.commit()

    return jsonify(company.to_dict()), 201


@masters_bp.route("/companies/<int:company_id>", methods=["GET"])
@api_login_required
def get_company(company_id: int):
    return jsonify(_get_or_404(Company, company_id, "Company").to_dict())


@masters_bp.route("/companies/<int:company_id>", methods=["PUT"])
@api_login_required
def update_company(company_id: int):
    company = _get_or_404(Company, company_id, "Company")
    data = json_payload()
    before_snapshot = serialize_model(company)

    if data.get("company_code") is not None:
        code = normalize_company_code(data.get("company_code"))
        if not code:
            raise ValidationError("Invalid company_code", field="company_code")
        clash = Company.query.filter(Company.company_code == code, Company.id != company.id).first()
        if clash:
            raise ConflictError(f"Company {code} already exists", company_code=code)
        company.company_code = code

    _apply_text_fields(company, data, COMPANY_FIELDS)
    if not company.name:
        company.name = company.company_code

    db.session.flush()
    log_action(company, "UPDATE", before=before_snapshot, after=serialize_model(company))
    db.session.commit()

    return jsonify(company.to_dict())


@masters_bp.route("/companies/<int:company_id>", methods=["DELETE"])
@api_login_required
def delete_company(company_id: int):
    company = _get_or_404(Company, company_id, "Company")

    in_use = (
        Quotation.query.filter_by(company_id=company.id).first()
        or PurchaseOrder.query.filter_by(company_id=company.id).first()
    )
    if in_use:
        raise ConflictError("Company is used by existing documents")

    _delete_with_audit(company)
    return jsonify({"message": "Company deleted"})


# ----------------------------------------------------------------------
# CLIENTS / SALES MANAGERS (shared logic, email is the natural key)
# ----------------------------------------------------------------------
def _list_counterparties(model, label: str):
    email = normalize_email(request.args.get("email"))
    if email:
        entity = model.query.filter_by(email=email).first()
        if entity is None:
            raise NotFoundError(f"{label} not found", email=email)
        return jsonify(entity.to_dict())

    q = model.query
    search = clean_str(request.args.get("search"))
    if search:
        q = q.filter(model.name.ilike(f"%{search}%"))
    return jsonify(paginate_query(q.order_by(model.name.asc(), model.id.asc())))


def _upsert_counterparty(model):
    """Update the record with the same email, or create a new one."""
    data = json_payload()
    email = normalize_email(data.get("email")) or None

    existing = model.query.filter_by(email=email).first() if email else None
    if existing:
        before_snapshot = serialize_model(existing)
        _apply_text_fields(existing, data, COUNTERPARTY_FIELDS)
        if not existing.name:
            raise ValidationError("Name is required", field="name")
        db.session.flush()
        log_action(existing, "UPDATE", before=before_snapshot, after=serialize_model(existing))
        db.session.commit()
        return jsonify(existing.to_dict()), 200

    name = clean_str(data.get("name"))
    if not name:
        raise ValidationError("Name is required", field="name")

    entity = model(name=name, email=email)
    _apply_text_fields(entity, data, COUNTERPARTY_FIELDS[1:])
    db.session.add(entity)
    db.session.flush()
    log_action(entity, "CREATE", before=None, after=serialize_model(entity))
    db.session.commit()
    return jsonify(entity.to_dict()), 201


def _update_counterparty(model, entity_id: int, label: str):
    entity = _get_or_404(model, entity_id, label)
    data = json_payload()
    before_snapshot = serialize_model(entity)

    if "email" in data:
        email = normalize_email(data.get("email")) or None
        if email:
            clash = model.query.filter(model.email == email, model.id != entity.id).first()
            if clash:
                raise ConflictError(f"{label} with this email already exists", email=email)
        entity.email = email

    _apply_text_fields(entity, data, COUNTERPARTY_FIELDS)
    if not entity.name:
        raise ValidationError("Name is required", field="name")

    db.session.flush()
    log_action(entity, "UPDATE", before=before_snapshot, after=serialize_model(entity))
    db.session.commit()
    return jsonify(entity.to_dict())


@masters_bp.route("/clients", methods=["GET"])
@api_login_required
def list_clients():
    return _list_counterparties(Client, "Client")


@masters_bp.route("/clients", methods=["POST"])
@api_login_required
def upsert_client():
    return _upsert_counterparty(Client)


@masters_bp.route("/clients/<int:client_id>", methods=["GET"])
@api_login_required
def get_client(client_id: int):
    return jsonify(_get_or_404(Client, client_id, "Client").to_dict())


@masters_bp.route("/clients/<int:client_id>", methods=["PUT"])
@api_login_required
def update_client(client_id: int):
    return _update_counterparty(Client, client_id, "Client")


@masters_bp.route("/clients/<int:client_id>", methods=["DELETE"])
@api_login_required
def delete_client(client_id: int):
    _delete_with_audit(_get_or_404(Client, client_id, "Client"))
    return jsonify({"message": "Client deleted"})


@masters_bp.route("/sales-managers", methods=["GET"])
@api_login_required
def list_sales_managers():
    return _list_counterparties(SalesManager, "Sales manager")


@masters_bp.route("/sales-managers", methods=["POST"])
@api_login_required
def upsert_sales_manager():
    return _upsert_counterparty(SalesManager)


@masters_bp.route("/sales-managers/<int:manager_id>", methods=["GET"])
@api_login_required
def get_sales_manager(manager_id: int):
    return jsonify(_get_or_404(SalesManager, manager_id, "Sales manager").to_dict())


@masters_bp.route("/sales-managers/<int:manager_id>", methods=["PUT"])
@api_login_required
def update_sales_manager(manager_id: int):
    return _update_counterparty(SalesManager, manager_id, "Sales manager")


@masters_bp.route("/sales-managers/<int:manager_id>", methods=["DELETE"])
@api_login_required
def delete_sales_manager(manager_id: int):
    _delete_with_audit(_get_or_404(SalesManager, manager_id, "Sales manager"))
    return jsonify({"message": "Sales manager deleted"})


# ----------------------------------------------------------------------
# ITEMS
# ----------------------------------------------------------------------
def _apply_item_fields(item: Item, data) -> None:
    _apply_text_fields(item, data, ITEM_TEXT_FIELDS)
    if data.get("unit_price", data.get("price")) is not None:
        item.unit_price = parse_amount(data.get("unit_price", data.get("price")))
    if data.get("tax_percent", data.get("gst")) is not None:
        item.tax_percent = parse_percent(data.get("tax_percent", data.get("gst")))
    if not item.unit:
        item.unit = "PCS"


@masters_bp.route("/items", methods=["GET"])
@api_login_required
def list_items():
    q = Item.query
    search = clean_str(request.args.get("search"))
    if search:
        q = q.filter(or_(Item.description.ilike(f"%{search}%"), Item.model.ilike(f"%{search}%")))
    return jsonify(paginate_query(q.order_by(Item.description.asc(), Item.id.asc())))


@masters_bp.route("/items", methods=["POST"])
@api_login_required
def create_item():
    data = json_payload()
    if not clean_str(data.get("description")):
        raise ValidationError("Description is required", field="description")

    item = Item()
    _apply_item_fields(item, data)

    db.session.add(item)
    db.session.flush()
    log_action(item, "CREATE", before=None, after=serialize_model(item))
    db.session.commit()

    return jsonify(item.to_dict()), 201


@masters_bp.route("/items/<int:item_id>", methods=["GET"])
@api_login_required
def get_item(item_id: int):
    return jsonify(_get_or_404(Item, item_id, "Item").to_dict())


@masters_bp.route("/items/<int:item_id>", methods=["PUT"])
@api_login_required
def update_item(item_id: int):
    item = _get_or_404(Item, item_id, "Item")
    data = json_payload()
    before_snapshot = serialize_model(item)

    _apply_item_fields(item, data)
    if not item.description:
        raise ValidationError("Description is required", field="description")

    db.session.flush()
    log_action(item, "UPDATE", before=before_snapshot, after=serialize_model(item))
    db.session.commit()

    return jsonify(item.to_dict())


@masters_bp.route("/items/<int:item_id>", methods=["DELETE"])
@api_login_required
def delete_item(item_id: int):
    _delete_with_audit(_get_or_404(Item, item_id, "Item"))
    return jsonify({"message": "Item deleted"})
