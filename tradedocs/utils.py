"""
Utility functions shared across the app. This includes:
- request payload helpers (clean strings, optional ints, ISO dates)
- insert_ignoring_conflict: the conflict-tolerant INSERT used for natural keys and counters
- paginate_query: page/per_page handling for master lists
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Mapping

from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from .errors import ValidationError
from .extensions import db

logger = logging.getLogger(__name__)


def clean_str(value: Any) -> str | None:
    """Strip a payload string; empty becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_optional_int(value: Any) -> int | None:
    """Parse optional int from payload/query. Returns None for empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value: Any, field: str) -> date | None:
    """
    Parse an ISO date ("2024-05-01", or a full ISO timestamp).

    Raises ValidationError for a non-empty value that is not a date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValidationError(f"Invalid {field}", field=field) from None


def json_payload() -> Mapping[str, Any]:
    """Request body as a dict (empty dict for missing/invalid JSON)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {}
    return data


def insert_ignoring_conflict(model, values: Mapping[str, Any], key: str) -> bool:
    """
    INSERT a row unless a row with the same unique `key` already exists.

    One statement on PostgreSQL/SQLite (ON CONFLICT DO NOTHING), so two
    concurrent inserts of the same key leave exactly one row and neither fails.
    Other backends fall back to a savepoint that swallows the duplicate.

    Returns True when this call inserted the row. The caller re-selects by key
    afterwards to get the surviving row.
    """
    dialect = db.engine.dialect.name

    if dialect in ("postgresql", "sqlite"):
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=[key])
        return db.session.execute(stmt).rowcount == 1

    savepoint = db.session.begin_nested()
    try:
        db.session.add(model(**values))
        db.session.flush()
    except IntegrityError:
        savepoint.rollback()
        logger.debug("insert_conflict_ignored", extra={"model": model.__name__, "key": key})
        return False
    savepoint.commit()
    return True


def paginate_query(query):
    """Apply ?page=&per_page= (bounded by MAX_PAGE_SIZE) and return a JSON-ready dict."""
    page = parse_optional_int(request.args.get("page")) or 1
    per_page = parse_optional_int(request.args.get("per_page")) or current_app.config["DEFAULT_PAGE_SIZE"]
    per_page = max(1, min(per_page, current_app.config["MAX_PAGE_SIZE"]))

    pagination = query.paginate(page=max(page, 1), per_page=per_page, error_out=False)
    return {
        "items": [row.to_dict() for row in pagination.items],
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }
