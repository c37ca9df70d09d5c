"""
Amount in words for printed documents (Indian numbering).

    286        -> "Two Hundred Eighty Six Rupees Only"
    1250000    -> "Twelve Lakh Fifty Thousand Rupees Only"
    10000000   -> "One Crore Rupees Only"

The amount is rounded half-up to whole rupees first.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from .amounts import parse_amount

ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _below_thousand(n: int) -> list[str]:
    words: list[str] = []
    if n >= 100:
        words += [ONES[n // 100], "Hundred"]
        n %= 100
    if n >= 20:
        words.append(TENS[n // 10])
        n %= 10
    if n:
        words.append(ONES[n])
    return words


def _indian_words(n: int) -> list[str]:
    crore, n = divmod(n, 10_000_000)
    lakh, n = divmod(n, 100_000)
    thousand, n = divmod(n, 1_000)

    words: list[str] = []
    if crore:
        # Crores above 99 keep grouping: "One Hundred Crore", "One Lakh Crore".
        words += _indian_words(crore) + ["Crore"]
    if lakh:
        words += _below_thousand(lakh) + ["Lakh"]
    if thousand:
        words += _below_thousand(thousand) + ["Thousand"]
    words += _below_thousand(n)
    return words


def amount_in_words(amount: Any) -> str:
    rupees = int(parse_amount(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if rupees == 0:
        return "Zero Rupees Only"

    prefix = ["Minus"] if rupees < 0 else []
    return " ".join(prefix + _indian_words(abs(rupees)) + ["Rupees", "Only"])
