"""
Quotation & Purchase Order Manager – Domain Models

Master data:
- Company (natural key: company_code, upper-cased)
- Client, SalesManager (natural key: email, lower-cased, when present)
- Item (catalogue used to fill document lines)

Documents:
- Quotation / PurchaseOrder with ordered line rows and a totals snapshot
- Counterparty display fields are copied onto the document at save time,
  so a printed document does not change when the master record does.

Numbering:
- SequenceCounter: one row per document type, incremented atomically
  (see tradedocs/numbering.py).

IMPORTANT:
- Natural keys are unique at the database level. Resolution relies on it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db


def _iso(value):
    return value.isoformat() if value else None


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user with per-document-kind permission flags."""

    __tablename__ = "users"

    ROLE_ADMIN = "admin"
    ROLE_USER = "user"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=ROLE_USER, index=True)
    can_create_quotation = db.Column(db.Boolean, default=False, nullable=False)
    can_create_purchase_order = db.Column(db.Boolean, default=False, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def has_permission(self, flag: str) -> bool:
        """Admins bypass permission flags."""
        if self.is_admin:
            return True
        return bool(getattr(self, flag, False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "can_create_quotation": self.can_create_quotation,
            "can_create_purchase_order": self.can_create_purchase_order,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.email}>"


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
class Company(db.Model):
    """Issuing company (letterhead). Identified by company_code."""

    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)

    company_code = db.Column(db.String(50), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    address = db.Column(db.String(500), default="")
    contact = db.Column(db.String(100), default="")
    email = db.Column(db.String(255), default="")
    gstin = db.Column(db.String(20), default="")

    # Print letterhead
    logo_url = db.Column(db.String(500))
    header_html = db.Column(db.Text)
    footer_html = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_code": self.company_code,
            "name": self.name,
            "address": self.address,
            "contact": self.contact,
            "email": self.email,
            "gstin": self.gstin,
            "logo_url": self.logo_url,
            "header_html": self.header_html,
            "footer_html": self.footer_html,
        }

    def __repr__(self):
        return f"<Company {self.company_code} - {self.name}>"


class CounterpartyMixin:
    """Shared columns of Client and SalesManager (email is the natural key)."""

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(500))
    contact = db.Column(db.String(100))
    # Unique when present; rows without an email are never deduplicated.
    email = db.Column(db.String(255), nullable=True, unique=True, index=True)
    gstin = db.Column(db.String(20))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "contact": self.contact,
            "email": self.email,
            "gstin": self.gstin,
        }


class Client(CounterpartyMixin, db.Model):
    """Quotation counterparty."""

    __tablename__ = "clients"

    def __repr__(self):
        return f"<Client {self.email or self.name}>"


class SalesManager(CounterpartyMixin, db.Model):
    """Purchase order counterparty (supplier's sales manager)."""

    __tablename__ = "sales_managers"

    def __repr__(self):
        return f"<SalesManager {self.email or self.name}>"


class Item(db.Model):
    """Catalogue item. Only the description is mandatory."""

    __tablename__ = "items"

    id = db.Column(db.Integer, primary_key=True)

    description = db.Column(db.Text, nullable=False)
    model = db.Column(db.String(120))
    hsn = db.Column(db.String(20))
    unit = db.Column(db.String(20), default="PCS")

    unit_price = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))
    tax_percent = db.Column(db.Numeric(7, 3), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "model": self.model,
            "hsn": self.hsn,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "tax_percent": self.tax_percent,
        }


# ---------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------
class SequenceCounter(db.Model):
    """
    Named monotonic counter, one row per document type.

    last_number is only ever changed by a single atomic UPDATE ... RETURNING.
    prefix/pad_length shape the display form of a number.
    """

    __tablename__ = "sequence_counters"

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(50), nullable=False, unique=True, index=True)
    last_number = db.Column(db.BigInteger, nullable=False, default=0)

    prefix = db.Column(db.String(20), nullable=False, default="")
    pad_length = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def format(self, number: int) -> str:
        return f"{self.prefix or ''}{str(number).zfill(self.pad_length or 0)}"

    def __repr__(self):
        return f"<SequenceCounter {self.type}={self.last_number}>"


# ---------------------------------------------------------------------
# Document lines
# ---------------------------------------------------------------------
class LineItemMixin:
    """Computed line columns shared by quotation and purchase order lines."""

    id = db.Column(db.Integer, primary_key=True)

    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.Text, nullable=False)
    model = db.Column(db.String(120), default="")
    hsn = db.Column(db.String(20), default="")
    unit = db.Column(db.String(20), default="PCS")

    quantity = db.Column(db.Numeric(14, 4), nullable=False)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)
    tax_percent = db.Column(db.Numeric(7, 3), nullable=False, default=Decimal("0"))

    base_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    line_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    has_feature = db.Column(db.Boolean, default=False, nullable=False)
    feature = db.Column(db.Text, default="")

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "description": self.description,
            "model": self.model,
            "hsn": self.hsn,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "tax_percent": self.tax_percent,
            "base_amount": self.base_amount,
            "tax_amount": self.tax_amount,
            "line_total": self.line_total,
            "has_feature": self.has_feature,
            "feature": self.feature,
        }


class QuotationLine(LineItemMixin, db.Model):
    __tablename__ = "quotation_lines"

    quotation_id = db.Column(
        db.Integer,
        db.ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quotation = db.relationship("Quotation", back_populates="lines")


class PurchaseOrderLine(LineItemMixin, db.Model):
    __tablename__ = "purchase_order_lines"

    purchase_order_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    purchase_order = db.relationship("PurchaseOrder", back_populates="lines")


class DeliveryRow(db.Model):
    """Delivery schedule row of a purchase order (free text, printed as-is)."""

    __tablename__ = "delivery_rows"

    id = db.Column(db.Integer, primary_key=True)

    purchase_order_id = db.Column(
        db.Integer,
        db.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position = db.Column(db.Integer, nullable=False, default=0)
    date = db.Column(db.String(50))
    transport = db.Column(db.String(255))
    vehicle_details = db.Column(db.String(255))
    driver_details = db.Column(db.String(255))
    remarks = db.Column(db.Text)

    purchase_order = db.relationship("PurchaseOrder", back_populates="delivery_rows")

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "transport": self.transport,
            "vehicle_details": self.vehicle_details,
            "driver_details": self.driver_details,
            "remarks": self.remarks,
        }


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------
class DocumentMixin:
    """Columns every document carries: company, number, totals, audit stamps."""

    id = db.Column(db.Integer, primary_key=True)

    company_code = db.Column(db.String(50), nullable=False, index=True)
    document_number = db.Column(db.Integer, nullable=False, unique=True, index=True)
    date = db.Column(db.Date, nullable=False)

    terms = db.Column(db.Text)

    sub_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    tax_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    grand_total = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def _totals_dict(self) -> dict:
        return {
            "sub_total": self.sub_total,
            "tax_total": self.tax_total,
            "grand_total": self.grand_total,
        }


class Quotation(DocumentMixin, db.Model):
    __tablename__ = "quotations"

    company_id = db.Column(
        db.Integer,
        db.ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    valid_until = db.Column(db.Date)
    subject = db.Column(db.String(500), nullable=False)

    # Denormalized client snapshot
    client_name = db.Column(db.String(255), nullable=False)
    client_address = db.Column(db.String(500))
    client_contact = db.Column(db.String(100))
    client_email = db.Column(db.String(255))
    client_gstin = db.Column(db.String(20))

    # True when the totals came from a manual override, not from the lines
    totals_overridden = db.Column(db.Boolean, default=False, nullable=False)

    company = db.relationship("Company")
    client = db.relationship("Client")
    created_by = db.relationship("User")

    lines = db.relationship(
        "QuotationLine",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationLine.position",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "company_id": self.company_id,
            "company_code": self.company_code,
            "date": _iso(self.date),
            "valid_until": _iso(self.valid_until),
            "subject": self.subject,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "client_address": self.client_address,
            "client_contact": self.client_contact,
            "client_email": self.client_email,
            "client_gstin": self.client_gstin,
            "items": [line.to_dict() for line in self.lines],
            "terms": self.terms,
            **self._totals_dict(),
            "totals_overridden": self.totals_overridden,
            "created_by_id": self.created_by_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Quotation #{self.document_number}>"


class PurchaseOrder(DocumentMixin, db.Model):
    __tablename__ = "purchase_orders"

    company_id = db.Column(
        db.Integer,
        db.ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sales_manager_id = db.Column(
        db.Integer,
        db.ForeignKey("sales_managers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    order_against = db.Column(db.String(255), nullable=False)
    delivery_period = db.Column(db.String(255))
    place_installation = db.Column(db.String(255))

    # Denormalized supplier / sales manager snapshot
    manager_name = db.Column(db.String(255), nullable=False)
    manager_address = db.Column(db.String(500))
    manager_contact = db.Column(db.String(100))
    manager_email = db.Column(db.String(255))
    manager_gstin = db.Column(db.String(20))

    company = db.relationship("Company")
    sales_manager = db.relationship("SalesManager")
    created_by = db.relationship("User")

    lines = db.relationship(
        "PurchaseOrderLine",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLine.position",
    )

    delivery_rows = db.relationship(
        "DeliveryRow",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="DeliveryRow.position",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "company_id": self.company_id,
            "company_code": self.company_code,
            "date": _iso(self.date),
            "order_against": self.order_against,
            "delivery_period": self.delivery_period,
            "place_installation": self.place_installation,
            "sales_manager_id": self.sales_manager_id,
            "manager_name": self.manager_name,
            "manager_address": self.manager_address,
            "manager_contact": self.manager_contact,
            "manager_email": self.manager_email,
            "manager_gstin": self.manager_gstin,
            "items": [line.to_dict() for line in self.lines],
            "terms": self.terms,
            **self._totals_dict(),
            "delivery_schedule": [row.to_dict() for row in self.delivery_rows],
            "created_by_id": self.created_by_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<PurchaseOrder #{self.document_number}>"


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Who changed which document or master record, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))
