# spa_ledger/infrastructure/ledger/ledger_store.py
"""
Invoice ledger backed by a Google Sheet.

Tables:
  Invoices      one row per bill (24 fixed columns, RawJson snapshot last)
  Lines         one row per line item of a finalized bill
  Deleted       verbatim copies of archived Invoices rows
  BillCounter   per financial-year bill number counter
  InvoiceIndex  key -> row number accelerator (see index_table.py)

Every lookup goes through ``resolve``:
  1. index lookup for each key in order; the target row is re-read and,
     when verification is on, its key columns must contain the key;
  2. otherwise a full scan of Invoices, which backfills the index.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from spa_ledger.core.config import settings
from spa_ledger.domain.errors import BillNotFoundError, VersionConflictError
from spa_ledger.domain.models.bill import Bill
from spa_ledger.infrastructure.ledger.index_table import IndexTable
from spa_ledger.infrastructure.ledger.row_codec import (
    INVOICE_HEADERS,
    INVOICE_WIDTH,
    LINE_HEADERS,
    bill_to_row,
    line_rows,
    pad_row,
    row_keys,
    row_matches,
    row_to_bill,
)
from spa_ledger.infrastructure.sheets.a1 import first_row, row_range, rows_range

logger = logging.getLogger("ledger.store")

INVOICES_SHEET = "Invoices"
LINES_SHEET = "Lines"
DELETED_SHEET = "Deleted"
COUNTER_SHEET = "BillCounter"
COUNTER_HEADERS = ["FinYear", "NextSeq"]

_FIRST_DATA_ROW = 2

TABLES = {
    INVOICES_SHEET: INVOICE_HEADERS,
    LINES_SHEET: LINE_HEADERS,
    DELETED_SHEET: INVOICE_HEADERS,
    COUNTER_SHEET: COUNTER_HEADERS,
}


@dataclass
class RowHandle:
    """A resolved ledger row: its 1-based sheet row number and current cells."""

    row_number: int
    values: List[Any] = field(default_factory=list)
    via_index: bool = False

    @property
    def bill(self) -> Bill:
        return row_to_bill(self.values)


class LedgerStore:
    def __init__(self, sheets, index: IndexTable | None = None, verify_index: bool | None = None) -> None:
        self.sheets = sheets
        self.index = index or IndexTable(sheets)
        self.verify_index = settings.LEDGER_VERIFY_INDEX if verify_index is None else verify_index
        self._structure_ready = False
        self._structure_lock = asyncio.Lock()

    @property
    def invoices_range(self) -> str:
        return rows_range(INVOICES_SHEET, _FIRST_DATA_ROW, INVOICE_WIDTH)

    # ----------------------------------------------------------------
    # Bootstrap
    # ----------------------------------------------------------------

    async def ensure_structure(self) -> None:
        """Create missing tables and write header rows. Runs once per instance."""
        if not self._structure_ready:
            async with self._structure_lock:
                if not self._structure_ready:
                    await self._create_tables()
                    self._structure_ready = True
        await self.index.ensure_index()

    async def _create_tables(self) -> None:
        existing = await self.sheets.get_sheet_ids()
        missing = [title for title in TABLES if title not in existing]
        if missing:
            logger.info("Creating missing tables %s", missing)
            await self.sheets.add_sheets(missing)
        for title, headers in TABLES.items():
            await self.sheets.update_values(rows_range(title, 1, len(headers), 1), [headers])

    # ----------------------------------------------------------------
    # Resolution
    # ----------------------------------------------------------------

    async def _read_row(self, row_number: int) -> List[Any]:
        rows = await self.sheets.get_values(row_range(INVOICES_SHEET, row_number, INVOICE_WIDTH))
        return rows[0] if rows else []

    async def _scan(self, keys: List[str]) -> Optional[RowHandle]:
        rows = await self.sheets.get_values(self.invoices_range)
        for key in keys:
            for offset, row in enumerate(rows):
                if row_matches(row, key):
                    return RowHandle(_FIRST_DATA_ROW + offset, row)
        return None

    async def resolve(self, *keys: Optional[str]) -> Optional[RowHandle]:
        """Locate the row for the first key that resolves (index first, then full scan)."""
        wanted = [k.strip() for k in keys if k and k.strip()]
        if not wanted:
            return None
        await self.ensure_structure()

        for key in wanted:
            row_number = await self.index.lookup(key)
            if row_number is None:
                continue
            if not self.verify_index:
                return RowHandle(row_number, [], via_index=True)
            values = await self._read_row(row_number)
            if row_matches(values, key):
                return RowHandle(row_number, values, via_index=True)
            logger.warning(
                "Index desync: key %s points at row %d which holds %s; falling back to scan",
                key, row_number, sorted(row_keys(values)) or "nothing",
            )

        handle = await self._scan(wanted)
        if handle:
            logger.info("Fallback scan resolved %s to row %d; backfilling index", wanted, handle.row_number)
            await self.index.upsert_keys(row_keys(handle.values), handle.row_number)
        return handle

    # ----------------------------------------------------------------
    # Records
    # ----------------------------------------------------------------

    async def upsert(self, bill: Bill, expected_version: int | None = None) -> Bill:
        """
        Insert or overwrite the row for ``bill`` (matched by draft id, then bill number).

        Returns the stored copy with its version bumped. When
        ``expected_version`` is given it must equal the stored version.
        """
        handle = await self.resolve(bill.id, bill.bill_no)

        if handle and expected_version is not None:
            values = handle.values or await self._read_row(handle.row_number)
            if not values:
                raise BillNotFoundError(bill.id or bill.bill_no or "?")
            stored = row_to_bill(values).version
            if stored != expected_version:
                raise VersionConflictError(bill.id or bill.bill_no or "?", expected_version, stored)

        stored_bill = bill.model_copy(update={"version": bill.version + 1})
        row = bill_to_row(stored_bill)

        if handle:
            row_number = handle.row_number
            await self.sheets.update_values(row_range(INVOICES_SHEET, row_number, INVOICE_WIDTH), [row])
            logger.info("Updated bill %s in row %d", stored_bill.keys, row_number)
        else:
            updated_range = await self.sheets.append_values(self.invoices_range, [row])
            row_number = first_row(updated_range)
            logger.info("Appended bill %s at row %d", stored_bill.keys, row_number)

        await self.index.upsert_keys(stored_bill.keys, row_number)
        return stored_bill

    async def find(self, key: str) -> Optional[Bill]:
        handle = await self.resolve(key)
        if handle is None:
            return None
        values = handle.values or await self._read_row(handle.row_number)
        if not values:
            return None
        return row_to_bill(values)

    async def read(self, key: str) -> Bill:
        bill = await self.find(key)
        if bill is None:
            raise BillNotFoundError(key)
        return bill

    async def list_all(self) -> List[Bill]:
        await self.ensure_structure()
        rows = await self.sheets.get_values(self.invoices_range)
        return [row_to_bill(row) for row in rows if row and any(cell not in (None, "") for cell in row)]

    async def archive_and_remove(self, key: str) -> Bill:
        """
        Move a bill's row to ``Deleted`` and physically remove it from the ledger.

        The index forgets every key the row carried and shifts later rows
        up in the same step, so no caller can skip the shift.
        """
        handle = await self.resolve(key)
        if handle is None:
            raise BillNotFoundError(key)
        values = handle.values or await self._read_row(handle.row_number)
        if not values:
            raise BillNotFoundError(key)

        await self.sheets.append_values(
            rows_range(DELETED_SHEET, _FIRST_DATA_ROW, INVOICE_WIDTH), [pad_row(values)]
        )
        await self.sheets.delete_rows(INVOICES_SHEET, handle.row_number)
        await self.index.drop_row(handle.row_number, row_keys(values) | {key.strip()})

        logger.info("Archived bill %s from row %d", sorted(row_keys(values)), handle.row_number)
        return row_to_bill(values)

    async def append_lines(self, bill: Bill) -> int:
        """Write one Lines row per item of a finalized bill; returns rows written."""
        rows = line_rows(bill)
        if not bill.bill_no or not rows:
            return 0
        await self.sheets.append_values(rows_range(LINES_SHEET, _FIRST_DATA_ROW, len(LINE_HEADERS)), rows)
        return len(rows)

    async def read_key_column(self, sheet: str, column: str) -> List[str]:
        """Every non-empty value of one column below the header (e.g. DraftId = "B")."""
        rows = await self.sheets.get_values(f"{sheet}!{column}{_FIRST_DATA_ROW}:{column}")
        return [str(r[0]).strip() for r in rows if r and r[0] not in (None, "")]

    async def truncate(self) -> None:
        """Dev reset: clear all ledger, line, archive and index data (headers stay)."""
        await self.ensure_structure()
        logger.warning("Truncating ledger data")
        await self.sheets.clear_values(self.invoices_range)
        await self.sheets.clear_values(rows_range(LINES_SHEET, _FIRST_DATA_ROW, len(LINE_HEADERS)))
        await self.sheets.clear_values(rows_range(DELETED_SHEET, _FIRST_DATA_ROW, INVOICE_WIDTH))
        await self.sheets.clear_values(self.index.data_range)
