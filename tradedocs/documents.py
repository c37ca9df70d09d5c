"""
tradedocs/documents.py

Create / update / delete of quotations and purchase orders.

Create flow (one transaction; flushed here, committed by the route):
1. Validate required display fields and dates.
2. Resolve the company from company_code (empty/invalid -> ValidationError).
3. Resolve the counterparty from its email (no email -> no link, snapshot only).
4. Drop unusable item rows, compute the rest.
5. Totals: computed from the lines, or a manual override (quotations only).
6. Number: allocated from the kind's sequence. Purchase orders may carry
   their own purchase_number instead (mirrors an external reference).
7. Add + flush the aggregate.

Update re-resolves identities and recomputes lines/totals from the submitted
items, but never allocates a new number. A quotation ignores any submitted
number; a purchase order accepts purchase_number.

IMPORTANT:
- No permission checks here; the HTTP layer decides who may call this.
- Nothing is retried. Any failure aborts the whole save and the route rolls back.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from . import numbering
from .amounts import compute_line, compute_totals, parse_amount, totals_from_override
from .errors import ConflictError, NotFoundError, ValidationError
from .extensions import db
from .models import (
    Client,
    DeliveryRow,
    PurchaseOrder,
    PurchaseOrderLine,
    Quotation,
    QuotationLine,
    SalesManager,
)
from .resolvers import normalize_company_code, resolve_company, resolve_counterparty
from .utils import clean_str, parse_date, parse_optional_int
from .words import amount_in_words

logger = logging.getLogger(__name__)

COUNTERPARTY_FIELDS = ("name", "address", "contact", "email", "gstin")
COMPANY_FIELDS = ("name", "address", "contact", "email", "gstin")
DELIVERY_FIELDS = ("date", "transport", "vehicle_details", "driver_details", "remarks")


# ---------------------------------------------------------------------
# Per-kind policy
# ---------------------------------------------------------------------
class DocumentKind:
    """
    What differs between quotations and purchase orders.

    number_override_field: payload key a caller may use to choose the number
        (None: always allocated, submitted numbers are ignored).
    allows_totals_override: whether payload["totals"] may replace the computed totals.
    """

    def __init__(
        self,
        *,
        name: str,
        label: str,
        model,
        line_model,
        counterparty_model,
        counterparty_prefix: str,
        counterparty_relation: str,
        sequence_type: str,
        required_fields: tuple,
        text_fields: tuple,
        date_fields: tuple,
        search_fields: tuple,
        number_override_field: Optional[str] = None,
        allows_totals_override: bool = False,
        has_delivery_schedule: bool = False,
    ):
        self.name = name
        self.label = label
        self.model = model
        self.line_model = line_model
        self.counterparty_model = counterparty_model
        self.counterparty_prefix = counterparty_prefix
        self.counterparty_relation = counterparty_relation
        self.sequence_type = sequence_type
        self.required_fields = required_fields
        self.text_fields = text_fields
        self.date_fields = date_fields
        self.search_fields = search_fields
        self.number_override_field = number_override_field
        self.allows_totals_override = allows_totals_override
        self.has_delivery_schedule = has_delivery_schedule

    def counterparty_column(self, field: str) -> str:
        return f"{self.counterparty_prefix}_{field}"

    def __repr__(self):
        return f"<DocumentKind {self.name}>"


QUOTATION = DocumentKind(
    name="quotation",
    label="Quotation",
    model=Quotation,
    line_model=QuotationLine,
    counterparty_model=Client,
    counterparty_prefix="client",
    counterparty_relation="client",
    sequence_type=numbering.QUOTATION,
    required_fields=("subject", "client_name"),
    text_fields=("subject", "terms"),
    date_fields=("date", "valid_until"),
    search_fields=("client_name", "subject"),
    number_override_field=None,
    allows_totals_override=True,
)

PURCHASE_ORDER = DocumentKind(
    name="purchase_order",
    label="Purchase order",
    model=PurchaseOrder,
    line_model=PurchaseOrderLine,
    counterparty_model=SalesManager,
    counterparty_prefix="manager",
    counterparty_relation="sales_manager",
    sequence_type=numbering.PURCHASE_ORDER,
    required_fields=("order_against", "manager_name"),
    text_fields=("order_against", "delivery_period", "place_installation", "terms"),
    date_fields=("date",),
    search_fields=("manager_name", "order_against"),
    number_override_field="purchase_number",
    allows_totals_override=False,
    has_delivery_schedule=True,
)


# ---------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------
def _first_present(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def _unit_price(item: Mapping[str, Any]) -> Any:
    return _first_present(item, "unit_price", "price")


def _tax_percent(item: Mapping[str, Any]) -> Any:
    return _first_present(item, "tax_percent", "gst_percent", "gst")


def is_countable(item: Any) -> bool:
    """A row counts only with a description, quantity > 0 and unit price > 0."""
    if not isinstance(item, Mapping):
        return False
    if not clean_str(item.get("description")):
        return False
    return parse_amount(item.get("quantity")) > 0 and parse_amount(_unit_price(item)) > 0


def compute_line_items(raw_items: Optional[Iterable[Any]]) -> list[dict]:
    """
    Filter raw rows and compute the survivors, keeping their order.

    Rows failing is_countable() are dropped silently (half-filled form rows).
    """
    lines = []
    for item in raw_items or []:
        if not is_countable(item):
            continue
        amounts = compute_line(item.get("quantity"), _unit_price(item), _tax_percent(item))
        lines.append(
            {
                "description": clean_str(item.get("description")),
                "model": clean_str(_first_present(item, "model_no", "model")) or "",
                "hsn": clean_str(item.get("hsn")) or "",
                "unit": clean_str(item.get("unit")) or "PCS",
                "has_feature": bool(item.get("has_feature")),
                "feature": item.get("feature") or "",
                **amounts,
            }
        )
    return lines


def _line_rows(kind: DocumentKind, lines: list[dict]) -> list:
    return [kind.line_model(position=position, **line) for position, line in enumerate(lines, start=1)]


def _delivery_rows(raw_rows: Any) -> list[DeliveryRow]:
    rows = []
    for position, raw in enumerate(raw_rows or [], start=1):
        if not isinstance(raw, Mapping):
            continue
        rows.append(DeliveryRow(position=position, **{f: clean_str(raw.get(f)) for f in DELIVERY_FIELDS}))
    return rows


# ---------------------------------------------------------------------
# Flow steps
# ---------------------------------------------------------------------
def _validate_required(kind: DocumentKind, payload: Mapping[str, Any], partial: bool) -> None:
    missing = []
    for field in kind.required_fields:
        if partial and payload.get(field) is None:
            continue
        if not clean_str(payload.get(field)):
            missing.append(field)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)


def _resolve_company(payload: Mapping[str, Any]):
    attributes = {field: payload.get(f"company_{field}") for field in COMPANY_FIELDS}
    company = resolve_company(payload.get("company_code"), attributes)
    if company is None:
        raise ValidationError("Invalid company_code", field="company_code")
    return company


def _resolve_counterparty(kind: DocumentKind, payload: Mapping[str, Any]):
    attributes = {field: payload.get(kind.counterparty_column(field)) for field in COUNTERPARTY_FIELDS}
    return resolve_counterparty(kind.counterparty_model, attributes["email"], attributes)


def _totals(kind: DocumentKind, lines: list[dict], payload: Mapping[str, Any]) -> tuple[dict, bool]:
    override = payload.get("totals")
    if kind.allows_totals_override and isinstance(override, Mapping) and override:
        return totals_from_override(override), True
    return compute_totals(lines), False


def _requested_number(kind: DocumentKind, payload: Mapping[str, Any]) -> int | None:
    """Caller-chosen number (purchase orders only); None means allocate."""
    if not kind.number_override_field:
        return None
    raw = payload.get(kind.number_override_field)
    if raw is None or raw == "" or raw == 0:
        return None
    number = parse_optional_int(raw)
    if number is None or number <= 0:
        raise ValidationError(
            f"Invalid {kind.number_override_field}",
            field=kind.number_override_field,
        )
    return number


def _ensure_number_free(kind: DocumentKind, number: int, document_id: int | None = None) -> None:
    q = kind.model.query.filter(kind.model.document_number == number)
    if document_id is not None:
        q = q.filter(kind.model.id != document_id)
    if q.first() is not None:
        raise ConflictError(f"{kind.label} number {number} is already in use", document_number=number)


def _apply_totals(document, totals: dict) -> None:
    document.sub_total = totals["sub_total"]
    document.tax_total = totals["tax_total"]
    document.grand_total = totals["grand_total"]


def _is_number_collision(exc: IntegrityError) -> bool:
    """True only for a unique violation on document_number (SQLite and PostgreSQL wording)."""
    message = str(exc.orig).lower()
    return "document_number" in message and ("unique" in message or "duplicate" in message)


def _flush(kind: DocumentKind, document) -> None:
    try:
        db.session.flush()
    except IntegrityError as exc:
        if not _is_number_collision(exc):
            raise
        raise ConflictError(
            f"{kind.label} number {document.document_number} is already in use",
            document_number=document.document_number,
        ) from exc


# ---------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------
def create_document(kind: DocumentKind, payload: Optional[Mapping[str, Any]], created_by=None):
    """Assemble and persist (flush) a new document of `kind`."""
    payload = payload or {}
    _validate_required(kind, payload, partial=False)

    dates = {field: parse_date(payload.get(field), field) for field in kind.date_fields}
    requested_number = _requested_number(kind, payload)

    company = _resolve_company(payload)
    counterparty = _resolve_counterparty(kind, payload)

    lines = compute_line_items(payload.get("items"))
    totals, overridden = _totals(kind, lines, payload)

    if requested_number is not None:
        _ensure_number_free(kind, requested_number)
        numbering.advance_to(kind.sequence_type, requested_number)
        number = requested_number
    else:
        number = numbering.next_number(kind.sequence_type)

    document = kind.model(
        company=company,
        company_code=company.company_code,
        document_number=number,
        created_by=created_by,
    )
    for field, value in dates.items():
        setattr(document, field, value)
    if document.date is None:
        document.date = date.today()

    for field in kind.text_fields:
        setattr(document, field, clean_str(payload.get(field)))
    for field in COUNTERPARTY_FIELDS:
        column = kind.counterparty_column(field)
        setattr(document, column, clean_str(payload.get(column)))
    setattr(document, kind.counterparty_relation, counterparty)

    document.lines = _line_rows(kind, lines)
    _apply_totals(document, totals)
    if kind.allows_totals_override:
        document.totals_overridden = overridden
    if kind.has_delivery_schedule:
        document.delivery_rows = _delivery_rows(payload.get("delivery_schedule"))

    db.session.add(document)
    _flush(kind, document)

    logger.info(
        "document_created",
        extra={
            "kind": kind.name,
            "document_id": document.id,
            "document_number": document.document_number,
            "lines": len(lines),
        },
    )
    return document


def update_document(kind: DocumentKind, document_id: int, payload: Optional[Mapping[str, Any]]):
    """
    Re-assemble an existing document.

    Absent header/counterparty fields keep their stored value; lines and
    totals always come from the submitted items.
    """
    document = get_document(kind, document_id)
    payload = payload or {}
    _validate_required(kind, payload, partial=True)

    dates = {
        field: parse_date(payload.get(field), field)
        for field in kind.date_fields
        if payload.get(field) not in (None, "")
    }
    requested_number = _requested_number(kind, payload)

    if payload.get("company_code"):
        company = _resolve_company(payload)
        document.company = company
        document.company_code = company.company_code

    counterparty = _resolve_counterparty(kind, payload)
    if counterparty is not None:
        setattr(document, kind.counterparty_relation, counterparty)

    lines = compute_line_items(payload.get("items"))
    totals, overridden = _totals(kind, lines, payload)

    if requested_number is not None and requested_number != document.document_number:
        _ensure_number_free(kind, requested_number, document_id=document.id)
        numbering.advance_to(kind.sequence_type, requested_number)
        document.document_number = requested_number

    for field, value in dates.items():
        setattr(document, field, value)
    for field in kind.text_fields:
        if payload.get(field) is not None:
            setattr(document, field, clean_str(payload.get(field)))
    for field in COUNTERPARTY_FIELDS:
        column = kind.counterparty_column(field)
        if payload.get(column) is not None:
            setattr(document, column, clean_str(payload.get(column)))

    document.lines = _line_rows(kind, lines)
    _apply_totals(document, totals)
    if kind.allows_totals_override:
        document.totals_overridden = overridden
    if kind.has_delivery_schedule:
        document.delivery_rows = _delivery_rows(payload.get("delivery_schedule"))

    _flush(kind, document)

    logger.info(
        "document_updated",
        extra={"kind": kind.name, "document_id": document.id, "document_number": document.document_number},
    )
    return document


def get_document(kind: DocumentKind, document_id: int):
    document = db.session.get(kind.model, document_id)
    if document is None:
        raise NotFoundError(f"{kind.label} not found", id=document_id)
    return document


def delete_document(kind: DocumentKind, document_id: int):
    """Remove a document (its lines go with it; master records stay)."""
    document = get_document(kind, document_id)
    db.session.delete(document)
    db.session.flush()
    logger.info(
        "document_deleted",
        extra={"kind": kind.name, "document_id": document_id, "document_number": document.document_number},
    )
    return document


def list_documents(
    kind: DocumentKind,
    search: Optional[str] = None,
    company_code: Optional[str] = None,
    limit: int = 100,
):
    """Newest first; search matches the number exactly or display fields by substring."""
    model = kind.model
    q = model.query

    code = normalize_company_code(company_code)
    if code:
        q = q.filter(model.company_code == code)

    term = clean_str(search)
    if term:
        conditions = [getattr(model, field).ilike(f"%{term}%") for field in kind.search_fields]
        number = parse_optional_int(term)
        if number is not None:
            conditions.append(model.document_number == number)
        q = q.filter(or_(*conditions))

    return q.order_by(model.created_at.desc(), model.id.desc()).limit(limit).all()


def present_document(kind: DocumentKind, document) -> dict:
    """Full payload for the detail/print view."""
    data = document.to_dict()
    data["kind"] = kind.name
    data["display_number"] = numbering.format_number(kind.sequence_type, document.document_number)
    data["amount_in_words"] = amount_in_words(document.grand_total)
    data["company"] = document.company.to_dict() if document.company else None
    return data
