"""Tests for draft id and bill number allocation."""

from datetime import date

from spa_ledger.domain.services.sequences import (
    DraftIdSequence,
    SheetBillNumberAllocator,
    financial_year,
    format_bill_no,
    next_draft_id,
)
from spa_ledger.infrastructure.ledger.ledger_store import COUNTER_SHEET, DELETED_SHEET, INVOICES_SHEET
from spa_ledger.infrastructure.ledger.row_codec import bill_to_row


class TestFinancialYear:
    def test_april_starts_new_year(self):
        assert financial_year(date(2025, 4, 1)) == "2025-26"
        assert financial_year(date(2025, 3, 31)) == "2024-25"

    def test_century_rollover(self):
        assert financial_year(date(2099, 12, 1)) == "2099-00"

    def test_bill_number_is_zero_padded(self):
        assert format_bill_no("2025-26", 7) == "2025-26/000007"


class TestDraftIds:
    def test_first_draft(self):
        assert next_draft_id([]) == "D1"

    def test_max_plus_one_ignores_foreign_ids(self):
        assert next_draft_id(["D1", "D10", "D9", "", "X77", "D3a", " D4 "]) == "D11"

    def test_archived_ids_are_not_reissued(self, sheets, store, event_loop, bill_factory):
        event_loop.run_until_complete(store.upsert(bill_factory("D1")))
        event_loop.run_until_complete(store.upsert(bill_factory("D2")))
        event_loop.run_until_complete(store.archive_and_remove("D2"))

        assert event_loop.run_until_complete(DraftIdSequence(store).next_id()) == "D3"


class TestBillNumbers:
    def test_counter_increments(self, sheets, store, fy_date, event_loop):
        allocator = SheetBillNumberAllocator(store, today=lambda: fy_date)

        first = event_loop.run_until_complete(allocator.next_bill_no())
        second = event_loop.run_until_complete(allocator.next_bill_no())

        assert first == "2025-26/000001"
        assert second == "2025-26/000002"
        assert sheets.data_rows(COUNTER_SHEET) == [["2025-26", 3]]

    def test_new_year_gets_its_own_counter_row(self, sheets, store, event_loop):
        today = [date(2026, 3, 31)]
        allocator = SheetBillNumberAllocator(store, today=lambda: today[0])

        assert event_loop.run_until_complete(allocator.next_bill_no()) == "2025-26/000001"
        today[0] = date(2026, 4, 1)
        assert event_loop.run_until_complete(allocator.next_bill_no()) == "2026-27/000001"
        assert sheets.data_rows(COUNTER_SHEET) == [["2025-26", 2], ["2026-27", 2]]

    def test_new_counter_starts_after_existing_ledger_numbers(self, sheets, store, fy_date, event_loop, bill_factory):
        event_loop.run_until_complete(store.ensure_structure())
        sheets.tables[INVOICES_SHEET].append(bill_to_row(bill_factory("D1", bill_no="2025-26/000041")))
        sheets.tables[INVOICES_SHEET].append(bill_to_row(bill_factory("D2", bill_no="2024-25/000900")))
        allocator = SheetBillNumberAllocator(store, today=lambda: fy_date)

        assert event_loop.run_until_complete(allocator.next_bill_no()) == "2025-26/000042"

    def test_falls_back_to_ledger_scan_when_counter_fails(self, sheets, store, fy_date, event_loop, bill_factory):
        event_loop.run_until_complete(store.upsert(bill_factory("D1", bill_no="2025-26/000005")))
        sheets.fail_on.add(COUNTER_SHEET)
        allocator = SheetBillNumberAllocator(store, today=lambda: fy_date)

        assert event_loop.run_until_complete(allocator.next_bill_no()) == "2025-26/000006"

    def test_counter_skips_numbers_issued_while_it_was_down(self, sheets, service, sample_draft_payload, event_loop):
        for _ in range(3):
            event_loop.run_until_complete(service.create_draft(sample_draft_payload))

        first = event_loop.run_until_complete(service.finalize_draft("D1", "cashier@spa.example"))
        sheets.fail_on.add(COUNTER_SHEET)
        second = event_loop.run_until_complete(service.finalize_draft("D2", "cashier@spa.example"))
        sheets.fail_on.discard(COUNTER_SHEET)
        third = event_loop.run_until_complete(service.finalize_draft("D3", "cashier@spa.example"))

        assert [first.bill_no, second.bill_no, third.bill_no] == [
            "2025-26/000001",
            "2025-26/000002",
            "2025-26/000003",
        ]
        assert sheets.data_rows(COUNTER_SHEET) == [["2025-26", 4]]

    def test_archived_numbers_are_not_reissued_by_scan(self, sheets, store, fy_date, event_loop, bill_factory):
        event_loop.run_until_complete(store.upsert(bill_factory("D1", bill_no="2025-26/000005")))
        event_loop.run_until_complete(store.archive_and_remove("D1"))
        sheets.fail_on.add(COUNTER_SHEET)
        allocator = SheetBillNumberAllocator(store, today=lambda: fy_date)

        assert sheets.data_rows(INVOICES_SHEET) == []
        assert event_loop.run_until_complete(allocator.next_bill_no()) == "2025-26/000006"

    def test_stale_counter_row_jumps_past_archived_numbers(self, sheets, store, fy_date, event_loop, bill_factory):
        event_loop.run_until_complete(store.ensure_structure())
        sheets.tables[COUNTER_SHEET].append(["2025-26", 2])
        sheets.tables[DELETED_SHEET].append(bill_to_row(bill_factory("D1", bill_no="2025-26/000005")))
        allocator = SheetBillNumberAllocator(store, today=lambda: fy_date)

        assert event_loop.run_until_complete(allocator.next_bill_no()) == "2025-26/000006"
        assert sheets.data_rows(COUNTER_SHEET) == [["2025-26", 7]]
