"""Shared test fixtures for the ledger test suite."""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from spa_ledger.domain.models.bill import Bill, BillLine, BillStatus, Customer
from spa_ledger.domain.services.bill_service import BillService
from spa_ledger.domain.services.sequences import SheetBillNumberAllocator
from spa_ledger.infrastructure.cache.bill_cache import BillListCache
from spa_ledger.infrastructure.ledger.ledger_store import LedgerStore
from spa_ledger.infrastructure.sheets.a1 import column_letter, parse_range
from spa_ledger.infrastructure.sheets.client import SheetsAPIError


def _blank(cell) -> bool:
    return cell is None or cell == ""


class FakeSheets:
    """
    In-memory stand-in for SheetsClient.

    Mirrors the API behaviour the ledger relies on: trailing empty cells
    and rows are omitted from reads, append writes after the last non-empty
    row and reports the range it wrote, deleting a row shifts later rows up.
    """

    def __init__(self):
        self.tables: dict[str, list[list]] = {}
        self.ids: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        # When set, every call yields to the event loop first, like a real request
        self.yielding = False

    # ---------- helpers ----------

    def _rows(self, sheet: str) -> list[list]:
        if sheet not in self.tables:
            raise SheetsAPIError(f"Unable to parse range: {sheet}", status_code=400)
        return self.tables[sheet]

    async def _pause(self) -> None:
        if self.yielding:
            await asyncio.sleep(0)

    def _record(self, method: str, target: str) -> None:
        self.calls.append((method, target))
        if method in self.fail_on or target.split("!")[0] in self.fail_on:
            raise SheetsAPIError(f"Simulated failure: {method} {target}", status_code=503)

    @staticmethod
    def _write(rows: list[list], row_number: int, col: int, values: list) -> None:
        while len(rows) < row_number:
            rows.append([])
        row = rows[row_number - 1]
        need = col - 1 + len(values)
        if len(row) < need:
            row.extend([""] * (need - len(row)))
        row[col - 1:need] = list(values)

    def data_rows(self, sheet: str) -> list[list]:
        """Non-empty rows below the header, trailing blanks stripped."""
        return [r for r in self._trimmed(self.tables.get(sheet, [])[1:]) if r]

    @staticmethod
    def _trimmed(rows: list[list]) -> list[list]:
        out = []
        for row in rows:
            row = list(row)
            while row and _blank(row[-1]):
                row.pop()
            out.append(row)
        while out and not out[-1]:
            out.pop()
        return out

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    # ---------- SheetsClient surface ----------

    async def get_sheet_ids(self, refresh: bool = False) -> dict[str, int]:
        await self._pause()
        self._record("meta", "")
        return dict(self.ids)

    async def add_sheets(self, titles: list[str]) -> None:
        await self._pause()
        self._record("add_sheets", ",".join(titles))
        for title in titles:
            self.tables.setdefault(title, [])
            self.ids.setdefault(title, len(self.ids) + 100)

    async def get_values(self, a1: str) -> list[list]:
        await self._pause()
        self._record("get", a1)
        r = parse_range(a1)
        rows = self._rows(r.sheet)
        start = (r.start_row or 1) - 1
        end = r.end_row if r.end_row is not None else len(rows)
        return self._trimmed([row[r.start_col - 1:r.end_col] for row in rows[start:end]])

    async def update_values(self, a1: str, values: list[list]) -> dict:
        await self._pause()
        self._record("update", a1)
        r = parse_range(a1)
        rows = self._rows(r.sheet)
        for offset, vals in enumerate(values):
            self._write(rows, (r.start_row or 1) + offset, r.start_col, vals)
        return {"updatedRange": a1}

    async def append_values(self, a1: str, values: list[list]) -> str:
        await self._pause()
        self._record("append", a1)
        r = parse_range(a1)
        rows = self._rows(r.sheet)
        last = 0
        for number, row in enumerate(rows, start=1):
            if any(not _blank(c) for c in row[r.start_col - 1:r.end_col]):
                last = number
        first = max(last, (r.start_row or 1) - 1) + 1
        for offset, vals in enumerate(values):
            self._write(rows, first + offset, r.start_col, vals)
        width = max(len(v) for v in values)
        return (
            f"{r.sheet}!{column_letter(r.start_col)}{first}:"
            f"{column_letter(r.start_col + width - 1)}{first + len(values) - 1}"
        )

    async def clear_values(self, a1: str) -> None:
        await self._pause()
        self._record("clear", a1)
        r = parse_range(a1)
        rows = self._rows(r.sheet)
        start = r.start_row or 1
        end = r.end_row if r.end_row is not None else len(rows)
        for number in range(start, end + 1):
            if number > len(rows):
                break
            row = rows[number - 1]
            for col in range(r.start_col - 1, min(r.end_col, len(row))):
                row[col] = ""

    async def delete_rows(self, sheet: str, row_number: int, count: int = 1) -> None:
        await self._pause()
        self._record("delete_rows", f"{sheet}!{row_number}")
        rows = self._rows(sheet)
        del rows[row_number - 1:row_number - 1 + count]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def sheets() -> FakeSheets:
    return FakeSheets()


@pytest.fixture
def store(sheets) -> LedgerStore:
    return LedgerStore(sheets, verify_index=True)


@pytest.fixture
def fy_date() -> date:
    return date(2025, 6, 1)


@pytest.fixture
def service(store, fy_date) -> BillService:
    return BillService(
        store,
        cache=BillListCache(ttl_seconds=20),
        bill_numbers=SheetBillNumberAllocator(store, today=lambda: fy_date),
        default_gst_rate=Decimal("0.18"),
    )


def make_bill(draft_id: str = "D1", bill_no: str | None = None, **overrides) -> Bill:
    """A priced-looking bill with sensible defaults."""
    fields = dict(
        id=draft_id,
        bill_no=bill_no,
        status=BillStatus.FINAL if bill_no else BillStatus.DRAFT,
        bill_date="2025-06-01",
        customer=Customer(name="Asha", phone="9800000000", email="asha@example.com"),
        lines=[BillLine(item_id="FACIAL", name="Facial", qty=Decimal("2"), rate=Decimal("100"), amount=Decimal("200.00"))],
        discount_pct=Decimal("10"),
        created_at=datetime(2025, 6, 1, 10, 30, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Bill(**fields)


@pytest.fixture
def sample_draft_payload() -> dict:
    """Body a billing screen posts when saving a draft."""
    return {
        "customer": {"name": "Asha", "phone": "9800000000", "email": "asha@example.com"},
        "lines": [{"itemId": "FACIAL", "name": "Facial", "qty": 2, "rate": 100}],
        "discountFlat": 0,
        "discountPct": 10,
        "isInterState": False,
        "paymentMode": "UPI",
        "notes": "Walk-in",
    }


@pytest.fixture
def bill_factory():
    return make_bill
