"""
tradedocs/amounts.py

Line-item and document amount calculation.

Rules:
- Money is Decimal, rounded half-up to 2 places (round2).
- base_amount = quantity x unit_price (kept unrounded for the tax/total maths,
  exposed rounded for display only).
- tax_amount = round2(base x tax% / 100), line_total = round2(base + tax_amount).
- grand_total = round2(sub_total + tax_total). It is never summed from the
  per-line totals, so many lines cannot drift it by a cent.

IMPORTANT:
- Nothing here raises. Forms submit partially empty rows; anything that does
  not parse to a finite number counts as 0.
"""

from __future__ import annotations

import decimal
import sys
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Magnitudes beyond a double are treated as non-finite, like a float parse overflowing to inf.
MAX_MAGNITUDE = Decimal(repr(sys.float_info.max))


def _finite_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return ZERO
    if not number.is_finite() or abs(number) > MAX_MAGNITUDE:
        return ZERO
    return number


def _calc_context() -> decimal.Context:
    """Arithmetic context that signals overflow as Infinity instead of raising."""
    context = decimal.getcontext().copy()
    context.traps[decimal.Overflow] = False
    return context


def round2(value: Any) -> Decimal:
    """Round half-up to 2 decimals; non-finite input gives 0.00."""
    number = _finite_decimal(value)
    try:
        return number.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Beyond the decimal context precision.
        return ZERO.quantize(CENT)


def parse_amount(raw: Any) -> Decimal:
    """
    Parse a number or a string such as "12,500" / " 1,250.50 ".

    Thousands separators and surrounding whitespace are ignored.
    None, empty, unparsable and non-finite input all give 0.
    """
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, (int, float, Decimal)):
        return _finite_decimal(raw)
    text = str(raw).replace(",", "").strip()
    if not text:
        return ZERO
    return _finite_decimal(text)


def parse_percent(raw: Any) -> Decimal:
    """Parse "18", "18.0", "18%" or "18.00 %" into 18."""
    if raw is None or isinstance(raw, bool):
        return ZERO
    if isinstance(raw, (int, float, Decimal)):
        return _finite_decimal(raw)
    text = str(raw).replace(",", "").replace("%", "", 1).strip()
    if not text:
        return ZERO
    return _finite_decimal(text)


def compute_line(quantity: Any, unit_price: Any, tax_percent: Any) -> dict:
    """
    Compute the canonical amounts of one line.

    Returns normalized quantity/unit_price/tax_percent plus base_amount
    (rounded, display), tax_amount and line_total.
    """
    qty = parse_amount(quantity)
    price = parse_amount(unit_price)
    tax = parse_percent(tax_percent)

    with decimal.localcontext(_calc_context()):
        base = qty * price
        tax_amount = round2(base * tax / HUNDRED)
        line_total = round2(base + tax_amount)
        base_amount = round2(base)

    return {
        "quantity": qty,
        "unit_price": price,
        "tax_percent": tax,
        "base_amount": base_amount,
        "tax_amount": tax_amount,
        "line_total": line_total,
    }


def compute_totals(lines: Iterable[Mapping[str, Any]]) -> dict:
    """
    Aggregate computed lines.

    sub_total sums quantity x unit_price of each line (unrounded per line),
    tax_total sums the already rounded tax amounts.
    """
    base_sum = ZERO
    tax_sum = ZERO
    with decimal.localcontext(_calc_context()):
        for line in lines or []:
            base_sum += parse_amount(line.get("quantity")) * parse_amount(line.get("unit_price"))
            tax_sum += parse_amount(line.get("tax_amount"))

    sub_total = round2(base_sum)
    tax_total = round2(tax_sum)
    return {
        "sub_total": sub_total,
        "tax_total": tax_total,
        "grand_total": round2(sub_total + tax_total),
    }


def totals_from_override(override: Mapping[str, Any]) -> dict:
    """
    Totals typed in by a person, taken as-is.

    grand_total is derived from sub_total + tax_total unless supplied.
    Choosing this path gives up consistency with the line items: the values
    are not checked against them.
    """
    sub_total = round2(parse_amount(override.get("sub_total")))
    tax_total = round2(parse_amount(override.get("tax_total")))

    raw_grand = override.get("grand_total")
    if raw_grand:
        grand_total = round2(parse_amount(raw_grand))
    else:
        grand_total = round2(sub_total + tax_total)

    return {"sub_total": sub_total, "tax_total": tax_total, "grand_total": grand_total}
