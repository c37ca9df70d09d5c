"""
tradedocs/seed.py

Seed the preset issuing companies.

Rules:
- Safe to run multiple times (idempotent): goes through resolve_company,
  so an existing code is left untouched.
- All presets share one address/contact block.

NOTE:
- Clients and sales managers are not seeded; they are created from documents
  or the master endpoints.
"""

from __future__ import annotations

import logging

from .extensions import db
from .resolvers import resolve_company

logger = logging.getLogger(__name__)

COMMON_DETAILS = {
    "address": "D-71, MALVIYA NAGAR, NEW DELHI, South Delhi, Delhi, 110017",
    "contact": "18002124669",
    "email": "sales@brbiomedical.com",
    "gstin": "07AACCB9500D1Z4",
}

COMPANY_PRESETS = {
    "BRBIO": {"name": "BR Biomedical (P) Ltd.", **COMMON_DETAILS},
    "HANUMAN": {"name": "Hanuman HealthCare", **COMMON_DETAILS},
    "VEGO": {"name": "Vego & Thomson Pvt Ltd", **COMMON_DETAILS},
}


def company_preset(code) -> dict | None:
    """Static letterhead details for a preset code (case-insensitive)."""
    if not code:
        return None
    return COMPANY_PRESETS.get(str(code).strip().upper())


def seed_companies() -> list:
    """Ensure every preset company exists. Returns the Company rows."""
    companies = [resolve_company(code, attrs) for code, attrs in COMPANY_PRESETS.items()]
    db.session.commit()
    logger.info("companies_seeded", extra={"count": len(companies)})
    return companies
