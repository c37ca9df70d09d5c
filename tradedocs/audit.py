"""
tradedocs/audit.py

Audit trail for documents and master data.

Goals:
- Capture WHO did WHAT to WHICH record, with BEFORE/AFTER snapshots.
- Store an email snapshot so the trail survives user renames/deletes.
- Store the client IP for traceability.

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The calling route controls transaction boundaries (commit/rollback), so an
  aborted save leaves no audit row behind either.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

ACTIONS = {"CREATE", "UPDATE", "DELETE"}


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form for JSON snapshots (Decimal/date/etc.)."""
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any, exclude: Iterable[str] = ()) -> Dict[str, Optional[str]]:
    """
    Snapshot of a model's scalar columns (relationships excluded).

    Values are stringified for JSON safety and SQLite/PostgreSQL portability.
    """
    skip = set(exclude)
    return {
        column.name: _safe_str(getattr(instance, column.key))
        for column in instance.__table__.columns
        if column.name not in skip
    }


def snapshot_document(document: Any) -> Dict[str, Any]:
    """Column snapshot of a document plus its line descriptions/totals."""
    data: Dict[str, Any] = serialize_model(document)
    data["lines"] = [
        {"description": line.description, "line_total": _safe_str(line.line_total)}
        for line in document.lines
    ]
    return data


def _actor():
    if has_request_context() and current_user and current_user.is_authenticated:
        return current_user
    return None


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    entity: model instance with an id (flush first for new rows)
    action: CREATE / UPDATE / DELETE
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown audit action {action!r}")

    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    actor = _actor()
    entry = AuditLog(
        user_id=actor.id if actor else None,
        email_snapshot=actor.email if actor else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=action,
        before_data=json.dumps(before, ensure_ascii=False, default=str) if before else None,
        after_data=json.dumps(after, ensure_ascii=False, default=str) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
