"""Line and document amount calculation."""

from decimal import Decimal

import pytest

from tradedocs.amounts import (
    compute_line,
    compute_totals,
    parse_amount,
    parse_percent,
    round2,
    totals_from_override,
)


class TestParsing:
    def test_thousands_separators_and_percent_sign(self):
        assert parse_amount("12,500") == Decimal("12500")
        assert parse_amount(" 1,250.50 ") == Decimal("1250.50")
        assert parse_percent("18%") == Decimal("18")
        assert parse_percent("18.00 %") == Decimal("18")

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "NaN", "inf", float("nan"), float("inf"), True])
    def test_garbage_degrades_to_zero(self, raw):
        assert parse_amount(raw) == 0
        assert parse_percent(raw) == 0

    def test_numbers_pass_through(self):
        assert parse_amount(3) == Decimal("3")
        assert parse_amount(1250.5) == Decimal("1250.5")


class TestRound2:
    def test_half_up(self):
        assert round2(Decimal("2.675")) == Decimal("2.68")
        assert round2("0.005") == Decimal("0.01")
        assert round2(Decimal("-2.675")) == Decimal("-2.68")

    def test_non_finite_gives_zero(self):
        assert round2("NaN") == Decimal("0.00")


class TestComputeLine:
    def test_reference_line(self):
        line = compute_line(3, 1250.5, 18)

        assert line["base_amount"] == Decimal("3751.50")
        assert line["tax_amount"] == Decimal("675.27")
        assert line["line_total"] == Decimal("4426.77")

    @pytest.mark.parametrize(
        "qty, price, tax",
        [("3", "1250.5", "18"), ("0.333", "19.99", "5"), ("7", "0.015", "28"), ("1", "0", "18")],
    )
    def test_line_total_rounds_once_over_unrounded_base(self, qty, price, tax):
        base = Decimal(qty) * Decimal(price)
        expected = round2(base + round2(base * Decimal(tax) / 100))

        first = compute_line(qty, price, tax)
        assert first["line_total"] == expected
        assert compute_line(qty, price, tax) == first

    def test_dirty_input_never_raises(self):
        line = compute_line("two", None, "eighteen")

        assert line["line_total"] == Decimal("0.00")
        assert line["tax_amount"] == Decimal("0.00")

    @pytest.mark.parametrize(
        "qty, price, tax",
        [
            ("1e500000", "1e500000", 0),
            ("1e308", "1e308", "1e308"),
            (Decimal("9e999999"), Decimal("9e999999"), 18),
        ],
    )
    def test_huge_magnitudes_never_raise(self, qty, price, tax):
        line = compute_line(qty, price, tax)
        totals = compute_totals([line, line])

        assert line["line_total"] == Decimal("0.00")
        assert totals["grand_total"] == round2(totals["sub_total"] + totals["tax_total"])

    def test_beyond_double_range_parses_as_zero(self):
        assert parse_amount("1e400") == 0
        assert parse_percent("-1e400%") == 0
        assert parse_amount("1e300") == Decimal("1e300")


class TestComputeTotals:
    def test_two_lines(self):
        lines = [compute_line(2, 100, 18), compute_line(1, 50, 0)]

        totals = compute_totals(lines)

        assert totals == {
            "sub_total": Decimal("250.00"),
            "tax_total": Decimal("36.00"),
            "grand_total": Decimal("286.00"),
        }

    def test_grand_total_never_drifts_from_parts(self):
        lines = [compute_line("0.333", "19.99", "5") for _ in range(50)]
        lines += [compute_line(1, "0.005", 18)]

        totals = compute_totals(lines)

        assert totals["grand_total"] == round2(totals["sub_total"] + totals["tax_total"])

    def test_empty(self):
        assert compute_totals([])["grand_total"] == Decimal("0.00")


class TestTotalsOverride:
    def test_inconsistent_values_are_taken_as_is(self):
        totals = totals_from_override({"sub_total": "1", "tax_total": "2", "grand_total": "1,000"})

        assert totals == {
            "sub_total": Decimal("1.00"),
            "tax_total": Decimal("2.00"),
            "grand_total": Decimal("1000.00"),
        }

    def test_missing_grand_total_is_derived(self):
        totals = totals_from_override({"sub_total": "100.004", "tax_total": "18"})

        assert totals["grand_total"] == Decimal("118.00")
