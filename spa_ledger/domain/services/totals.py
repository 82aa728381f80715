# spa_ledger/domain/services/totals.py
"""
Bill totals engine.

Pure functions: line items + discount + GST rate + supply type produce a
fully itemised tax breakdown. All arithmetic happens on integer minor
units (paise); Decimal values only appear at the boundary.

    subtotal      = sum(round(rate_paise * qty))      per line
    discount      = flat + round(subtotal * pct / 100), clamped to [0, subtotal]
    taxable_base  = subtotal - discount
    igst          = round(taxable_base * rate)                 (inter-state)
    cgst, sgst    = round(taxable_base * rate / 2) each        (intra-state)
                    sgst absorbs the paisa lost to split rounding
    grand_total   = taxable_base + cgst + sgst + igst + round_off
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from spa_ledger.domain.errors import BillValidationError
from spa_ledger.domain.models.bill import Totals

_ONE = Decimal("1")
_HUNDRED = Decimal("100")


def _dec(value: Any, field: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise BillValidationError(f"{field} must be numeric, got {value!r}") from None
    if not result.is_finite():
        raise BillValidationError(f"{field} must be a finite number, got {value!r}")
    return result


def _round(value: Decimal) -> int:
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_minor(amount: Any, field: str = "amount") -> int:
    """Currency units -> integer paise, rounded half-up."""
    return _round(_dec(amount, field) * _HUNDRED)


def from_minor(minor: int) -> Decimal:
    """Integer paise -> Decimal currency units with two places."""
    return Decimal(minor).scaleb(-2)


def _field(line: Any, name: str) -> Any:
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def line_amount_minor(line: Any) -> int:
    rate_minor = to_minor(_field(line, "rate"), "rate")
    qty = _dec(_field(line, "qty"), "qty")
    return _round(rate_minor * qty)


def line_amounts(lines: Iterable[Any]) -> list[Decimal]:
    """Per-line amounts exactly as they are summed into the subtotal."""
    return [from_minor(line_amount_minor(line)) for line in lines]


def compute_totals(
    lines: Iterable[Any],
    discount_flat: Any = 0,
    discount_pct: Any = 0,
    gst_rate: Any = 0,
    inter_state: bool = False,
    *,
    round_to_unit: bool = False,
) -> Totals:
    """
    Compute bill totals.

    ``gst_rate`` is a fraction (0.18 for 18%), ``discount_pct`` a
    percentage (10 for 10%). With ``round_to_unit`` the grand total is
    rounded to the nearest whole rupee and the difference is reported as
    ``round_off``; otherwise ``round_off`` is always zero.
    """
    subtotal = sum(line_amount_minor(line) for line in lines)

    pct = _dec(discount_pct, "discount_pct")
    discount = to_minor(discount_flat, "discount_flat") + _round(subtotal * pct / _HUNDRED)
    discount = min(max(discount, 0), subtotal)

    taxable_base = max(subtotal - discount, 0)

    rate = _dec(gst_rate, "gst_rate")
    whole_tax = _round(taxable_base * rate)
    cgst = sgst = igst = 0
    if inter_state:
        igst = whole_tax
    else:
        half = rate / 2
        cgst = _round(taxable_base * half)
        sgst = _round(taxable_base * half)
        # Independent rounding can drift one paisa from the undivided tax
        sgst += whole_tax - (cgst + sgst)

    raw_total = taxable_base + cgst + sgst + igst
    round_off = 0
    if round_to_unit:
        round_off = _round(Decimal(raw_total) / _HUNDRED) * 100 - raw_total

    return Totals(
        subtotal=from_minor(subtotal),
        discount=from_minor(discount),
        taxable_base=from_minor(taxable_base),
        cgst=from_minor(cgst),
        sgst=from_minor(sgst),
        igst=from_minor(igst),
        round_off=from_minor(round_off),
        grand_total=from_minor(raw_total + round_off),
    )
