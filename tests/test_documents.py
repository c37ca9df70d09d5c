"""Document assembly: validation, resolution, lines, totals and numbering."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tradedocs import numbering
from tradedocs.documents import (
    PURCHASE_ORDER,
    QUOTATION,
    _flush,
    compute_line_items,
    create_document,
    delete_document,
    get_document,
    list_documents,
    present_document,
    update_document,
)
from tradedocs.errors import AllocationError, ConflictError, NotFoundError, ValidationError
from tradedocs.extensions import db
from tradedocs.models import Client, Company, PurchaseOrder, Quotation, QuotationLine, SalesManager
from tradedocs.resolvers import resolve_company


class TestLineItems:
    def test_only_countable_rows_survive(self):
        lines = compute_line_items(
            [
                {"description": "Monitor", "quantity": 2, "unit_price": 100, "tax_percent": 18},
                {"description": "Zero qty", "quantity": 0, "unit_price": 100},
                {"description": "", "quantity": 1, "unit_price": 100},
            ]
        )

        assert len(lines) == 1
        assert lines[0]["description"] == "Monitor"
        assert lines[0]["line_total"] == Decimal("236.00")

    def test_whitespace_description_and_zero_price_dropped(self):
        lines = compute_line_items(
            [
                {"description": "   ", "quantity": 1, "unit_price": 10},
                {"description": "Free sample", "quantity": 1, "unit_price": 0},
                "not a row",
            ]
        )

        assert lines == []

    def test_field_aliases_and_defaults(self):
        [line] = compute_line_items(
            [{"description": " Pump ", "quantity": "1", "price": "1,200", "gst": "5%", "model_no": "P-9"}]
        )

        assert line["description"] == "Pump"
        assert line["model"] == "P-9"
        assert line["unit"] == "PCS"
        assert line["tax_amount"] == Decimal("60.00")

    def test_missing_items(self):
        assert compute_line_items(None) == []


class TestCreateQuotation:
    def test_numbers_start_at_one_and_increase(self, app_ctx, quotation_payload):
        first = create_document(QUOTATION, quotation_payload)
        second = create_document(QUOTATION, quotation_payload)

        assert (first.document_number, second.document_number) == (1, 2)

    def test_totals_and_lines(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)

        assert quotation.sub_total == Decimal("250.00")
        assert quotation.tax_total == Decimal("36.00")
        assert quotation.grand_total == Decimal("286.00")
        assert quotation.totals_overridden is False
        assert [line.position for line in quotation.lines] == [1, 2]
        assert QuotationLine.query.count() == 2

    def test_company_and_client_resolved(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)

        assert quotation.company.company_code == "BRBIO"
        assert quotation.company_code == "BRBIO"
        assert quotation.client.email == "purchase@cityhospital.in"
        assert quotation.client_name == "City Hospital"
        assert quotation.date == date(2024, 5, 1)

    def test_same_client_email_reuses_client(self, app_ctx, quotation_payload):
        create_document(QUOTATION, quotation_payload)
        quotation_payload["client_email"] = "PURCHASE@cityhospital.in"
        create_document(QUOTATION, quotation_payload)

        assert Client.query.count() == 1
        assert Company.query.count() == 1

    def test_without_client_email_keeps_snapshot_only(self, app_ctx, quotation_payload):
        quotation_payload.pop("client_email")

        quotation = create_document(QUOTATION, quotation_payload)

        assert quotation.client is None
        assert quotation.client_name == "City Hospital"
        assert Client.query.count() == 0

    def test_submitted_number_is_ignored(self, app_ctx, quotation_payload):
        quotation_payload["quotation_number"] = 500
        quotation_payload["document_number"] = 500

        assert create_document(QUOTATION, quotation_payload).document_number == 1

    def test_date_defaults_to_today(self, app_ctx, quotation_payload):
        quotation_payload.pop("date")

        assert create_document(QUOTATION, quotation_payload).date == date.today()

    def test_totals_override_is_not_checked_against_lines(self, app_ctx, quotation_payload):
        quotation_payload["totals"] = {"sub_total": "1", "tax_total": "2", "grand_total": "99999"}

        quotation = create_document(QUOTATION, quotation_payload)

        assert quotation.grand_total == Decimal("99999.00")
        assert quotation.sub_total == Decimal("1.00")
        assert quotation.totals_overridden is True
        assert len(quotation.lines) == 2

    def test_empty_items_give_zero_totals(self, app_ctx, quotation_payload):
        quotation_payload["items"] = []

        quotation = create_document(QUOTATION, quotation_payload)

        assert quotation.lines == []
        assert quotation.grand_total == Decimal("0.00")

    @pytest.mark.parametrize("code", [None, "", "   "])
    def test_invalid_company_writes_nothing(self, app_ctx, quotation_payload, code):
        quotation_payload["company_code"] = code

        with pytest.raises(ValidationError):
            create_document(QUOTATION, quotation_payload)
        db.session.rollback()

        assert Quotation.query.count() == 0
        assert Client.query.count() == 0
        quotation_payload["company_code"] = "BRBIO"
        assert create_document(QUOTATION, quotation_payload).document_number == 1

    def test_missing_required_fields(self, app_ctx, quotation_payload):
        quotation_payload["subject"] = "  "
        quotation_payload.pop("client_name")

        with pytest.raises(ValidationError) as excinfo:
            create_document(QUOTATION, quotation_payload)

        assert excinfo.value.details["fields"] == ["subject", "client_name"]
        assert Company.query.count() == 0

    def test_invalid_date(self, app_ctx, quotation_payload):
        quotation_payload["valid_until"] = "next tuesday"

        with pytest.raises(ValidationError):
            create_document(QUOTATION, quotation_payload)

    def test_allocation_failure_aborts_whole_save(self, app_ctx, quotation_payload, monkeypatch):
        def broken(sequence_type):
            raise OperationalError("UPDATE sequence_counters", {}, Exception("locked"))

        monkeypatch.setattr(numbering, "_increment", broken)

        with pytest.raises(AllocationError):
            create_document(QUOTATION, quotation_payload)
        db.session.rollback()

        assert Quotation.query.count() == 0
        assert Client.query.count() == 0
        assert Company.query.count() == 0


class TestUpdateQuotation:
    def test_number_survives_update(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)
        db.session.commit()

        updated = update_document(
            QUOTATION,
            quotation.id,
            {"quotation_number": 42, "document_number": 42, "subject": "Revised", "items": quotation_payload["items"]},
        )

        assert updated.document_number == 1
        assert updated.subject == "Revised"
        assert updated.client_name == "City Hospital"

    def test_lines_and_totals_recomputed(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)
        db.session.commit()

        updated = update_document(
            QUOTATION,
            quotation.id,
            {"items": [{"description": "Monitor", "quantity": 1, "unit_price": 1000, "tax_percent": 18}]},
        )
        db.session.commit()

        assert updated.grand_total == Decimal("1180.00")
        assert len(updated.lines) == 1
        assert QuotationLine.query.count() == 1

    def test_company_switch(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)

        updated = update_document(QUOTATION, quotation.id, {"company_code": "hanuman", "items": []})

        assert updated.company_code == "HANUMAN"
        assert Company.query.count() == 2

    def test_blanking_required_field_is_rejected(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)

        with pytest.raises(ValidationError):
            update_document(QUOTATION, quotation.id, {"subject": ""})

    def test_unknown_id(self, app_ctx):
        with pytest.raises(NotFoundError):
            update_document(QUOTATION, 404, {"subject": "x"})


class TestPurchaseOrders:
    def test_allocated_number_and_delivery_schedule(self, app_ctx, purchase_order_payload):
        order = create_document(PURCHASE_ORDER, purchase_order_payload)

        assert order.document_number == 1
        assert order.sales_manager.email == "sharma@supplier.example"
        assert order.grand_total == Decimal("280000.00")
        assert [row.transport for row in order.delivery_rows] == ["Road"]

    def test_caller_supplied_number_moves_allocator_past_it(self, app_ctx, purchase_order_payload):
        purchase_order_payload["purchase_number"] = "500"
        external = create_document(PURCHASE_ORDER, purchase_order_payload)

        purchase_order_payload.pop("purchase_number")
        allocated = create_document(PURCHASE_ORDER, purchase_order_payload)

        assert external.document_number == 500
        assert allocated.document_number == 501

    def test_automatic_numbers_continue_after_manual_one(self, app_ctx, purchase_order_payload):
        create_document(PURCHASE_ORDER, dict(purchase_order_payload, purchase_number=1))
        db.session.commit()

        numbers = []
        for _ in range(3):
            numbers.append(create_document(PURCHASE_ORDER, purchase_order_payload).document_number)
            db.session.commit()

        assert numbers == [2, 3, 4]

    def test_lower_manual_number_does_not_rewind_allocator(self, app_ctx, purchase_order_payload):
        for _ in range(3):
            create_document(PURCHASE_ORDER, purchase_order_payload)
        create_document(PURCHASE_ORDER, dict(purchase_order_payload, purchase_number=50))
        create_document(PURCHASE_ORDER, dict(purchase_order_payload, purchase_number=10))

        assert create_document(PURCHASE_ORDER, purchase_order_payload).document_number == 51

    def test_taken_number_conflicts(self, app_ctx, purchase_order_payload):
        purchase_order_payload["purchase_number"] = 7
        create_document(PURCHASE_ORDER, purchase_order_payload)

        with pytest.raises(ConflictError):
            create_document(PURCHASE_ORDER, purchase_order_payload)

    @pytest.mark.parametrize("number", ["abc", -3])
    def test_invalid_number(self, app_ctx, purchase_order_payload, number):
        purchase_order_payload["purchase_number"] = number

        with pytest.raises(ValidationError):
            create_document(PURCHASE_ORDER, purchase_order_payload)

    def test_totals_override_not_allowed(self, app_ctx, purchase_order_payload):
        purchase_order_payload["totals"] = {"grand_total": "1"}

        order = create_document(PURCHASE_ORDER, purchase_order_payload)

        assert order.grand_total == Decimal("280000.00")

    def test_update_may_change_number(self, app_ctx, purchase_order_payload):
        first = create_document(PURCHASE_ORDER, purchase_order_payload)
        second = create_document(PURCHASE_ORDER, purchase_order_payload)

        updated = update_document(PURCHASE_ORDER, first.id, {"purchase_number": 90, "items": []})
        assert updated.document_number == 90
        assert create_document(PURCHASE_ORDER, purchase_order_payload).document_number == 91

        with pytest.raises(ConflictError):
            update_document(PURCHASE_ORDER, first.id, {"purchase_number": second.document_number})

    def test_update_replaces_delivery_rows(self, app_ctx, purchase_order_payload):
        order = create_document(PURCHASE_ORDER, purchase_order_payload)

        updated = update_document(
            PURCHASE_ORDER,
            order.id,
            {"delivery_schedule": [{"transport": "Air"}, {"transport": "Rail"}]},
        )

        assert [row.transport for row in updated.delivery_rows] == ["Air", "Rail"]
        assert SalesManager.query.count() == 1


class TestReadAndDelete:
    def test_get_and_delete(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)
        quotation_id = quotation.id

        assert get_document(QUOTATION, quotation_id) is quotation

        delete_document(QUOTATION, quotation_id)

        assert Quotation.query.count() == 0
        assert QuotationLine.query.count() == 0
        assert Client.query.count() == 1
        with pytest.raises(NotFoundError):
            get_document(QUOTATION, quotation_id)

    def test_delete_unknown(self, app_ctx):
        with pytest.raises(NotFoundError):
            delete_document(PURCHASE_ORDER, 1)
        assert PurchaseOrder.query.count() == 0

    def test_list_search_and_company_filter(self, app_ctx, quotation_payload):
        create_document(QUOTATION, quotation_payload)
        quotation_payload.update(company_code="VEGO", client_name="Apollo Clinic", subject="Beds")
        create_document(QUOTATION, quotation_payload)

        assert [q.client_name for q in list_documents(QUOTATION, search="apollo")] == ["Apollo Clinic"]
        assert [q.document_number for q in list_documents(QUOTATION, search="1")] == [1]
        assert len(list_documents(QUOTATION, company_code="brbio")) == 1
        assert [q.document_number for q in list_documents(QUOTATION)] == [2, 1]
        assert len(list_documents(QUOTATION, limit=1)) == 1

    def test_present_document(self, app_ctx, quotation_payload):
        quotation = create_document(QUOTATION, quotation_payload)

        data = present_document(QUOTATION, quotation)

        assert data["kind"] == "quotation"
        assert data["display_number"] == "1"
        assert data["amount_in_words"] == "Two Hundred Eighty Six Rupees Only"
        assert data["company"]["company_code"] == "BRBIO"
        assert len(data["items"]) == 2


class TestFlushErrors:
    def _quotation(self, number, **fields):
        company = resolve_company("BRBIO")
        values = {
            "company": company,
            "company_code": company.company_code,
            "document_number": number,
            "date": date.today(),
            "subject": "Direct insert",
            "client_name": "Someone",
        }
        values.update(fields)
        quotation = Quotation(**values)
        db.session.add(quotation)
        return quotation

    def test_duplicate_number_is_a_conflict(self, app_ctx, quotation_payload):
        create_document(QUOTATION, quotation_payload)
        duplicate = self._quotation(1)

        with pytest.raises(ConflictError):
            _flush(QUOTATION, duplicate)

    def test_other_integrity_errors_propagate(self, app_ctx):
        broken = self._quotation(9, subject=None)

        with pytest.raises(IntegrityError):
            _flush(QUOTATION, broken)
