# spa_ledger/infrastructure/sheets/a1.py
"""Helpers for Google Sheets A1 range notation ("Invoices!A2:X", "Invoices!A7:X7")."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_CELL_RE = re.compile(r"^([A-Z]*)(\d*)$")


@dataclass(frozen=True)
class A1Range:
    sheet: str
    start_col: int
    start_row: Optional[int]
    end_col: int
    end_row: Optional[int]


def column_letter(index: int) -> str:
    """1-based column index -> letters (1 -> A, 27 -> AA)."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def column_index(letters: str) -> int:
    """Letters -> 1-based column index (A -> 1, AA -> 27)."""
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - 64)
    return index


def _split_cell(cell: str) -> tuple[int, Optional[int]]:
    m = _CELL_RE.match(cell.strip().upper())
    if not m:
        raise ValueError(f"Invalid A1 cell reference: {cell!r}")
    letters, digits = m.groups()
    col = column_index(letters) if letters else 1
    row = int(digits) if digits else None
    return col, row


def parse_range(a1: str) -> A1Range:
    """Parse ``Sheet!A2:X`` style notation. Sheet names may be quoted."""
    if "!" not in a1:
        raise ValueError(f"Range must include a sheet name: {a1!r}")
    sheet, _, cells = a1.rpartition("!")
    sheet = sheet.strip("'")
    start, _, end = cells.partition(":")
    start_col, start_row = _split_cell(start)
    if end:
        end_col, end_row = _split_cell(end)
    else:
        end_col, end_row = start_col, start_row
    return A1Range(sheet, start_col, start_row, end_col, end_row)


def first_row(a1: str) -> int:
    """Row number of the first cell of a range reported back by the API."""
    row = parse_range(a1).start_row
    if row is None:
        raise ValueError(f"Range has no row component: {a1!r}")
    return row


def rows_range(sheet: str, start_row: int, last_col: int, end_row: Optional[int] = None) -> str:
    """``Sheet!A{start}:{last}{end}``; open-ended when ``end_row`` is None."""
    end = "" if end_row is None else str(end_row)
    return f"{sheet}!A{start_row}:{column_letter(last_col)}{end}"


def row_range(sheet: str, row: int, last_col: int) -> str:
    return rows_range(sheet, row, last_col, row)
