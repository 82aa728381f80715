# spa_ledger/infrastructure/ledger/index_table.py
"""
Secondary index: bill key -> ledger row number.

Stored as its own sheet (``InvoiceIndex``: Key | RowNumber | UpdatedAt) so a
lookup costs one index read plus one single-row read instead of a full
ledger scan. The index is an accelerator only; the ledger's fallback scan
repairs it whenever it is missing or behind.

Physical row deletes in the ledger shift every later row up by one, so any
delete must be followed by ``shift_rows_after`` (``drop_row`` does both in
a single rewrite).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from spa_ledger.infrastructure.sheets.a1 import rows_range

logger = logging.getLogger("ledger.index")

INDEX_SHEET = "InvoiceIndex"
INDEX_HEADERS = ["Key", "RowNumber", "UpdatedAt"]
_WIDTH = len(INDEX_HEADERS)
_FIRST_DATA_ROW = 2


@dataclass
class IndexEntry:
    key: str
    row_number: int
    updated_at: str
    # Row of this entry inside the index sheet itself
    position: int = 0

    def as_row(self) -> List[Any]:
        return [self.key, self.row_number, self.updated_at]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_entry(row: List[Any], position: int) -> Optional[IndexEntry]:
    if not row:
        return None
    key = str(row[0] if row[0] is not None else "").strip()
    if not key:
        return None
    try:
        row_number = int(float(row[1]))
    except (IndexError, TypeError, ValueError):
        return None
    updated_at = str(row[2]).strip() if len(row) > 2 and row[2] is not None else ""
    return IndexEntry(key=key, row_number=row_number, updated_at=updated_at, position=position)


class IndexTable:
    def __init__(self, sheets, sheet_name: str = INDEX_SHEET) -> None:
        self.sheets = sheets
        self.sheet_name = sheet_name
        self._ready = False
        self._ready_lock = asyncio.Lock()

    @property
    def data_range(self) -> str:
        return rows_range(self.sheet_name, _FIRST_DATA_ROW, _WIDTH)

    # ---------- bootstrap ----------

    async def ensure_index(self) -> None:
        """Create the index sheet if absent and (re)write its header. Runs once per instance."""
        if self._ready:
            return
        async with self._ready_lock:
            # A concurrent caller may have finished while we waited
            if self._ready:
                return
            titles = await self.sheets.get_sheet_ids()
            if self.sheet_name not in titles:
                logger.info("Index sheet %s missing, creating it", self.sheet_name)
                await self.sheets.add_sheets([self.sheet_name])
            await self.sheets.update_values(rows_range(self.sheet_name, 1, _WIDTH, 1), [INDEX_HEADERS])
            self._ready = True

    # ---------- reads ----------

    async def load(self) -> List[IndexEntry]:
        rows = await self.sheets.get_values(self.data_range)
        entries = []
        for offset, row in enumerate(rows):
            entry = _parse_entry(row, _FIRST_DATA_ROW + offset)
            if entry:
                entries.append(entry)
        return entries

    @staticmethod
    def _latest(entries: Iterable[IndexEntry], key: str) -> Optional[IndexEntry]:
        matches = [e for e in entries if e.key == key]
        if not matches:
            return None
        return max(matches, key=lambda e: (e.updated_at, e.position))

    async def lookup(self, key: str) -> Optional[int]:
        key = (key or "").strip()
        if not key:
            return None
        entry = self._latest(await self.load(), key)
        return entry.row_number if entry else None

    # ---------- writes ----------

    async def upsert(self, key: str, row_number: int) -> None:
        await self.upsert_keys([key], row_number)

    async def upsert_keys(self, keys: Iterable[str], row_number: int) -> None:
        """Point every key at ``row_number``: overwrite in place when present, else append."""
        keys = [k.strip() for k in keys if k and k.strip()]
        if not keys:
            return
        entries = await self.load()
        stamp = _now()
        appends = []
        for key in dict.fromkeys(keys):
            entry = self._latest(entries, key)
            if entry:
                if entry.row_number == row_number:
                    continue
                entry.row_number = row_number
                entry.updated_at = stamp
                await self.sheets.update_values(
                    rows_range(self.sheet_name, entry.position, _WIDTH, entry.position),
                    [entry.as_row()],
                )
            else:
                appends.append([key, row_number, stamp])
        if appends:
            await self.sheets.append_values(self.data_range, appends)

    async def _rewrite(self, entries: List[IndexEntry]) -> None:
        """Clear every data row and write ``entries`` back contiguously."""
        await self.sheets.clear_values(self.data_range)
        if entries:
            last = _FIRST_DATA_ROW + len(entries) - 1
            await self.sheets.update_values(
                rows_range(self.sheet_name, _FIRST_DATA_ROW, _WIDTH, last),
                [e.as_row() for e in entries],
            )

    async def delete_keys(self, keys: Iterable[str]) -> int:
        """Remove every entry for ``keys``; returns how many entries were dropped."""
        doomed = {k.strip() for k in keys if k and k.strip()}
        if not doomed:
            return 0
        entries = await self.load()
        remaining = [e for e in entries if e.key not in doomed]
        removed = len(entries) - len(remaining)
        if removed:
            await self._rewrite(remaining)
        return removed

    async def shift_rows_after(self, deleted_row: int) -> int:
        """Decrement every entry pointing below ``deleted_row``; returns how many moved."""
        entries = await self.load()
        moved = 0
        for e in entries:
            if e.row_number > deleted_row:
                e.row_number -= 1
                moved += 1
        if moved:
            await self._rewrite(entries)
        return moved

    async def drop_row(self, deleted_row: int, keys: Iterable[str]) -> None:
        """
        Forget a physically deleted ledger row in one rewrite: drop entries
        for ``keys`` and any entry still pointing at the row, then shift
        later entries up by one.
        """
        doomed = {k.strip() for k in keys if k and k.strip()}
        entries = await self.load()
        remaining = []
        for e in entries:
            if e.key in doomed or e.row_number == deleted_row:
                continue
            if e.row_number > deleted_row:
                e.row_number -= 1
            remaining.append(e)
        logger.info(
            "Index drop_row row=%d removed=%d remaining=%d",
            deleted_row, len(entries) - len(remaining), len(remaining),
        )
        await self._rewrite(remaining)
