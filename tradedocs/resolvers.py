"""
tradedocs/resolvers.py

Get-or-create of master records by natural key.

- Company:             company_code, trimmed and upper-cased ("  brbio " -> "BRBIO")
- Client/SalesManager: email, trimmed and lower-cased

An existing match is returned unchanged: submitted attributes only fill a NEW row.

Concurrency:
- Natural keys carry unique constraints. Every resolution starts with
  insert_ignoring_conflict and then selects by key, so two requests racing on
  the same new key end up with the same single row.
- The INSERT comes first so the transaction takes its write lock before any
  read (SQLite cannot upgrade a read transaction while another writer waits).

Does NOT commit. The route controls transaction boundaries.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .extensions import db
from .models import Client, Company, SalesManager
from .utils import insert_ignoring_conflict

logger = logging.getLogger(__name__)

COUNTERPARTY_MODELS = (Client, SalesManager)


def normalize_company_code(code: Any) -> str:
    return ("" if code is None else str(code)).strip().upper()


def normalize_email(email: Any) -> str:
    return ("" if email is None else str(email)).strip().lower()


def _attr(attributes: Mapping[str, Any], name: str, default: str = "") -> str:
    value = attributes.get(name)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def resolve_company(code: Any, attributes: Optional[Mapping[str, Any]] = None) -> Company | None:
    """
    Return the Company for `code`, creating it if needed.

    Returns None when the code is empty; callers treat that as invalid input.
    New companies take name (defaults to the code), address, contact, email
    and gstin from `attributes`.
    """
    company_code = normalize_company_code(code)
    if not company_code:
        return None

    attributes = attributes or {}
    created = insert_ignoring_conflict(
        Company,
        {
            "company_code": company_code,
            "name": _attr(attributes, "name", company_code),
            "address": _attr(attributes, "address"),
            "contact": _attr(attributes, "contact"),
            "email": _attr(attributes, "email"),
            "gstin": _attr(attributes, "gstin"),
        },
        key="company_code",
    )
    company = db.session.execute(
        db.select(Company).where(Company.company_code == company_code)
    ).scalar_one()
    if created:
        logger.info("company_resolved_new", extra={"company_code": company_code, "company_id": company.id})
    return company


def resolve_counterparty(model, email: Any, attributes: Optional[Mapping[str, Any]] = None):
    """
    Return the Client/SalesManager with `email`, creating it if needed.

    Returns None when no email is given: the document then keeps only its
    denormalized counterparty fields and links no master record.
    """
    if model not in COUNTERPARTY_MODELS:
        raise TypeError(f"{model!r} is not a counterparty model")

    key = normalize_email(email)
    if not key:
        return None

    attributes = attributes or {}
    created = insert_ignoring_conflict(
        model,
        {
            "email": key,
            "name": _attr(attributes, "name", key),
            "address": _attr(attributes, "address"),
            "contact": _attr(attributes, "contact"),
            "gstin": _attr(attributes, "gstin"),
        },
        key="email",
    )
    entity = db.session.execute(db.select(model).where(model.email == key)).scalar_one()
    if created:
        logger.info(
            "counterparty_resolved_new",
            extra={"kind": model.__name__, "counterparty_id": entity.id},
        )
    return entity
