# spa_ledger/infrastructure/ledger/row_codec.py
"""
Bill <-> spreadsheet row conversion.

Each ledger row carries 24 fixed columns (A:X) for humans and formulas,
plus a RawJson snapshot of the complete record in the last column. The
snapshot is the source of truth; the fixed columns are only used to
rebuild a best-effort record when the snapshot is missing or corrupt.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from pydantic import ValidationError

from spa_ledger.domain.models.bill import (
    Bill,
    BillStatus,
    Customer,
    PaymentMode,
    Totals,
)

logger = logging.getLogger("ledger.row_codec")

INVOICE_HEADERS = [
    "BillNo",
    "DraftId",
    "DateISO",
    "CustomerName",
    "Phone",
    "Email",
    "GSTPct",
    "InterState",
    "Subtotal",
    "Discount",
    "TaxBase",
    "CGST",
    "SGST",
    "IGST",
    "RoundOff",
    "GrandTotal",
    "PaymentMode",
    "Cash",
    "Card",
    "UPI",
    "Notes",
    "CashierEmail",
    "Status",
    "RawJson",
]

LINE_HEADERS = ["BillNo", "SNo", "ItemId", "ItemName", "Variant", "Qty", "Rate", "Amount"]

COL_BILL_NO = 0
COL_DRAFT_ID = 1
COL_DATE = 2
COL_STATUS = 22
COL_RAW_JSON = 23
INVOICE_WIDTH = len(INVOICE_HEADERS)


def _num(value: Decimal) -> float | int:
    """Sheets cells take JSON numbers; keep integers integral."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _to_decimal(value, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(default)


def _parse_dt(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _date_part(value: str) -> Optional[str]:
    """Calendar date of a DateISO cell (``2025-06-01T10:30:00+00:00`` -> ``2025-06-01``)."""
    if not value:
        return None
    parsed = _parse_dt(value)
    return parsed.date().isoformat() if parsed else value


def _cell(row: List[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def payment_columns(bill: Bill) -> tuple[Decimal, Decimal, Decimal]:
    """(cash, card, upi) amounts for the fixed payment columns."""
    grand = bill.totals.grand_total
    zero = Decimal("0")
    if bill.payment_mode == PaymentMode.CASH:
        return grand, zero, zero
    if bill.payment_mode == PaymentMode.CARD:
        return zero, grand, zero
    if bill.payment_mode == PaymentMode.UPI:
        return zero, zero, grand
    if bill.payment_mode == PaymentMode.SPLIT and bill.split:
        return bill.split.cash, bill.split.card, bill.split.upi
    return zero, zero, zero


def gst_pct(totals: Totals) -> Decimal:
    if totals.taxable_base <= 0:
        return Decimal("0")
    return (totals.tax_total / totals.taxable_base * 100).quantize(Decimal("0.01"))


def bill_to_row(bill: Bill) -> List[Any]:
    t = bill.totals
    cash, card, upi = payment_columns(bill)
    customer = bill.customer or Customer()
    date = bill.finalized_at or bill.created_at
    return [
        bill.bill_no or "",
        bill.id or "",
        date.isoformat() if date else "",
        customer.name,
        customer.phone,
        customer.email,
        _num(gst_pct(t)),
        "Y" if bill.is_inter_state else "N",
        _num(t.subtotal),
        _num(t.discount),
        _num(t.taxable_base),
        _num(t.cgst),
        _num(t.sgst),
        _num(t.igst),
        _num(t.round_off),
        _num(t.grand_total),
        bill.payment_mode.value if bill.payment_mode else "",
        _num(cash),
        _num(card),
        _num(upi),
        bill.notes,
        bill.cashier_email,
        bill.status.value,
        json.dumps(bill.to_record(), separators=(",", ":")),
    ]


def line_rows(bill: Bill) -> List[List[Any]]:
    """One ``Lines`` row per line item; only meaningful once a bill number exists."""
    return [
        [
            bill.bill_no or "",
            sno,
            line.item_id,
            line.name,
            line.variant or "",
            _num(line.qty),
            _num(line.rate),
            _num(line.amount),
        ]
        for sno, line in enumerate(bill.lines, start=1)
    ]


def _snapshot(row: List[Any]) -> Optional[dict]:
    raw = _cell(row, COL_RAW_JSON)
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def row_keys(row: List[Any]) -> set[str]:
    """Every key the row answers to: fixed key columns plus snapshot identity."""
    keys = {_cell(row, COL_BILL_NO), _cell(row, COL_DRAFT_ID)}
    snap = _snapshot(row)
    if snap:
        keys.add(str(snap.get("id") or "").strip())
        keys.add(str(snap.get("billNo") or "").strip())
    keys.discard("")
    return keys


def row_matches(row: List[Any], key: str) -> bool:
    key = key.strip()
    return bool(key) and key in (_cell(row, COL_BILL_NO), _cell(row, COL_DRAFT_ID))


def _from_columns(row: List[Any]) -> Bill:
    status_raw = _cell(row, COL_STATUS).upper()
    status = BillStatus(status_raw) if status_raw in BillStatus.__members__ else BillStatus.FINAL
    date_raw = _cell(row, COL_DATE)
    created_at = _parse_dt(date_raw)
    name, phone, email = _cell(row, 3), _cell(row, 4), _cell(row, 5)
    mode = _cell(row, 16).upper()

    return Bill(
        id=_cell(row, COL_DRAFT_ID) or None,
        bill_no=_cell(row, COL_BILL_NO) or None,
        status=status,
        bill_date=_date_part(date_raw),
        customer=Customer(name=name, phone=phone, email=email) if (name or phone or email) else None,
        is_inter_state=_cell(row, 7).upper() == "Y",
        totals=Totals(
            subtotal=_to_decimal(_cell(row, 8)),
            discount=_to_decimal(_cell(row, 9)),
            taxable_base=_to_decimal(_cell(row, 10)),
            cgst=_to_decimal(_cell(row, 11)),
            sgst=_to_decimal(_cell(row, 12)),
            igst=_to_decimal(_cell(row, 13)),
            round_off=_to_decimal(_cell(row, 14)),
            grand_total=_to_decimal(_cell(row, 15)),
        ),
        payment_mode=PaymentMode(mode) if mode in PaymentMode.__members__ else None,
        notes=_cell(row, 20),
        cashier_email=_cell(row, 21),
        created_at=created_at,
        finalized_at=created_at if status == BillStatus.FINAL else None,
    )


def row_to_bill(row: List[Any]) -> Bill:
    """Parse a ledger row, preferring the snapshot column."""
    snap = _snapshot(row)
    if snap is not None:
        try:
            bill = Bill.model_validate(snap)
        except ValidationError as exc:
            logger.warning(
                "Snapshot for row %s/%s is invalid, rebuilding from columns: %s",
                _cell(row, COL_BILL_NO), _cell(row, COL_DRAFT_ID), exc.error_count(),
            )
        else:
            date_raw = _cell(row, COL_DATE)
            if date_raw:
                if bill.created_at is None:
                    bill.created_at = _parse_dt(date_raw)
                if not bill.bill_date:
                    bill.bill_date = _date_part(date_raw)
            return bill
    return _from_columns(row)


def pad_row(row: List[Any], width: int = INVOICE_WIDTH) -> List[Any]:
    return list(row) + [""] * (width - len(row))

