"""
tradedocs/numbering.py

Document number allocation.

One counter row per document type (sequence_counters.type). A number is issued
by a single atomic statement:

    UPDATE sequence_counters SET last_number = last_number + 1
    WHERE type = :type RETURNING last_number

The row is created on first use with INSERT ... ON CONFLICT DO NOTHING and the
same UPDATE is repeated, so concurrent first callers still get 1, 2, ...

Numbers chosen by a caller (external purchase order references) are reported
through advance_to(), which only ever moves the counter forward.

IMPORTANT:
- Never read last_number and write it back from Python (read-modify-write races).
- The increment belongs to the caller's transaction: the row stays locked until
  commit, and a rolled back document creation hands the number back.
- Does NOT commit. The route controls transaction boundaries.
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from .errors import AllocationError
from .extensions import db
from .models import SequenceCounter
from .utils import insert_ignoring_conflict

logger = logging.getLogger(__name__)

# Well-known sequence types
QUOTATION = "quotation"
PURCHASE_ORDER = "purchaseOrder"


def _increment(sequence_type: str) -> int | None:
    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.type == sequence_type)
        .values(last_number=SequenceCounter.last_number + 1)
        .returning(SequenceCounter.last_number)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def next_number(sequence_type: str) -> int:
    """
    Issue the next number of `sequence_type`.

    Strictly greater than every number previously issued for the type; no two
    callers observe the same value. Call once per document creation, only
    when the number is actually needed.

    Raises AllocationError when the store cannot complete the increment.
    """
    if not sequence_type:
        raise AllocationError("Sequence type is required")

    try:
        value = _increment(sequence_type)
        if value is None:
            insert_ignoring_conflict(
                SequenceCounter,
                {"type": sequence_type, "last_number": 0, "prefix": "", "pad_length": 0},
                key="type",
            )
            value = _increment(sequence_type)
    except SQLAlchemyError as exc:
        logger.error("sequence_allocation_failed", extra={"sequence_type": sequence_type}, exc_info=True)
        raise AllocationError(
            f"Could not allocate a {sequence_type} number",
            sequence_type=sequence_type,
        ) from exc

    if value is None:
        raise AllocationError(f"Could not allocate a {sequence_type} number", sequence_type=sequence_type)

    logger.debug("sequence_allocated", extra={"sequence_type": sequence_type, "value": value})
    return int(value)


def advance_to(sequence_type: str, number: int) -> None:
    """
    Record that `number` was issued outside the allocator.

    Raises last_number to `number` if it is lower (never lowers it), so later
    next_number() calls never land on a caller-chosen number. Same atomic,
    transaction-scoped semantics as next_number().
    """
    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.type == sequence_type, SequenceCounter.last_number < number)
        .values(last_number=number)
        .execution_options(synchronize_session=False)
    )
    try:
        insert_ignoring_conflict(
            SequenceCounter,
            {"type": sequence_type, "last_number": 0, "prefix": "", "pad_length": 0},
            key="type",
        )
        db.session.execute(stmt)
    except SQLAlchemyError as exc:
        logger.error("sequence_advance_failed", extra={"sequence_type": sequence_type}, exc_info=True)
        raise AllocationError(
            f"Could not record {sequence_type} number {number}",
            sequence_type=sequence_type,
        ) from exc

    logger.debug("sequence_advanced", extra={"sequence_type": sequence_type, "value": number})


def format_number(sequence_type: str, number: int | None) -> str | None:
    """Display form of a number (counter prefix + zero padding)."""
    if number is None:
        return None
    counter = SequenceCounter.query.filter_by(type=sequence_type).first()
    if counter is None:
        return str(number)
    return counter.format(number)
