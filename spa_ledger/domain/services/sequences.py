# spa_ledger/domain/services/sequences.py
"""
Identifier allocation.

Draft ids:     D1, D2, ...           (max existing suffix + 1)
Bill numbers:  {FY}/{seq:06d}        e.g. 2025-26/000123

Both allocators read, compute and write without a lock. Two concurrent
callers can receive the same value; the ledger is meant for a single
writer. Swap in an atomic counter behind the same ``next_*`` method if that
ever changes.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Iterable, Optional, Protocol

from spa_ledger.domain.errors import RemoteUnavailableError
from spa_ledger.infrastructure.ledger.ledger_store import (
    COUNTER_SHEET,
    DELETED_SHEET,
    INVOICES_SHEET,
    LedgerStore,
)

logger = logging.getLogger("sequences")

DRAFT_ID_RE = re.compile(r"^D(\d+)$")


class BillNumberAllocator(Protocol):
    async def next_bill_no(self) -> str: ...


class DraftIdAllocator(Protocol):
    async def next_id(self) -> str: ...


def next_draft_id(existing: Iterable[str]) -> str:
    """``D<n+1>`` where n is the largest numeric suffix among ``D<digits>`` ids."""
    highest = 0
    for value in existing:
        m = DRAFT_ID_RE.match((value or "").strip())
        if m:
            highest = max(highest, int(m.group(1)))
    return f"D{highest + 1}"


def financial_year(today: Optional[date] = None) -> str:
    """Indian financial year (April start) as ``2025-26``."""
    today = today or date.today()
    start = today.year if today.month >= 4 else today.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


def format_bill_no(fy: str, seq: int) -> str:
    return f"{fy}/{seq:06d}"


class DraftIdSequence:
    """Scans live and archived draft ids; archived ids are never reissued."""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    async def next_id(self) -> str:
        await self.store.ensure_structure()
        live = await self.store.read_key_column(INVOICES_SHEET, "B")
        archived = await self.store.read_key_column(DELETED_SHEET, "B")
        return next_draft_id([*live, *archived])


class SheetBillNumberAllocator:
    """
    Allocates from the ``BillCounter`` table (FinYear | NextSeq), one row per
    financial year. If the counter cannot be used, falls back to scanning
    the BillNo column of the live and archived ledgers for the highest
    sequence in the year.

    The counter never hands out a number at or below that scanned maximum,
    so numbers issued while it was unreachable are not reissued later.
    """

    def __init__(self, store: LedgerStore, today=None) -> None:
        self.store = store
        self.sheets = store.sheets
        self._today = today or date.today

    async def _allocate_from_counter(self, fy: str) -> int:
        rows = await self.sheets.get_values(f"{COUNTER_SHEET}!A2:B")
        floor = await self._scan_max(fy) + 1
        for offset, row in enumerate(rows):
            if row and str(row[0]).strip() == fy:
                try:
                    seq = int(float(row[1])) if len(row) > 1 and row[1] not in (None, "") else 1
                except (TypeError, ValueError):
                    seq = 1
                if seq < floor:
                    logger.warning("BillCounter for %s behind ledger (%d < %d); skipping ahead", fy, seq, floor)
                    seq = floor
                row_number = 2 + offset
                await self.sheets.update_values(
                    f"{COUNTER_SHEET}!A{row_number}:B{row_number}", [[fy, seq + 1]]
                )
                return seq

        # First bill of the year: start after anything already in the ledger
        seq = floor
        await self.sheets.append_values(f"{COUNTER_SHEET}!A2:B", [[fy, seq + 1]])
        return seq

    async def _scan_max(self, fy: str) -> int:
        prefix = f"{fy}/"
        highest = 0
        live = await self.store.read_key_column(INVOICES_SHEET, "A")
        archived = await self.store.read_key_column(DELETED_SHEET, "A")
        for bill_no in [*live, *archived]:
            if not bill_no.startswith(prefix):
                continue
            try:
                highest = max(highest, int(bill_no[len(prefix):]))
            except ValueError:
                continue
        return highest

    async def next_bill_no(self) -> str:
        fy = financial_year(self._today())
        await self.store.ensure_structure()
        try:
            seq = await self._allocate_from_counter(fy)
        except RemoteUnavailableError as exc:
            logger.warning("BillCounter unavailable (%s); scanning ledger bill numbers", exc)
            seq = await self._scan_max(fy) + 1
        bill_no = format_bill_no(fy, seq)
        logger.info("Allocated bill number %s", bill_no)
        return bill_no
