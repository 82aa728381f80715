from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ZERO = Decimal("0.00")


class BillStatus(str, Enum):
    DRAFT = "DRAFT"
    FINAL = "FINAL"
    VOID = "VOID"


class PaymentMode(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    SPLIT = "SPLIT"


class _CamelModel(BaseModel):
    """Boundary records use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Customer(_CamelModel):
    name: str = ""
    phone: str = ""
    email: str = ""


class BillLine(_CamelModel):
    item_id: str = ""
    name: str = ""
    variant: Optional[str] = None
    qty: Decimal = Decimal("1")
    rate: Decimal = ZERO
    amount: Decimal = ZERO


class PaymentSplit(_CamelModel):
    cash: Decimal = ZERO
    card: Decimal = ZERO
    upi: Decimal = ZERO


class Totals(_CamelModel):
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    taxable_base: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    round_off: Decimal = ZERO
    grand_total: Decimal = ZERO

    @property
    def tax_total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


class Bill(_CamelModel):
    """
    A bill in any lifecycle state.

    Unknown keys are kept (``extra="allow"``) so fields written by newer
    clients survive a read-modify-write through the snapshot column.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: Optional[str] = None
    bill_no: Optional[str] = None
    status: BillStatus = BillStatus.DRAFT
    bill_date: Optional[str] = None

    customer: Optional[Customer] = None
    lines: list[BillLine] = Field(default_factory=list)

    discount_flat: Decimal = ZERO
    discount_pct: Decimal = ZERO
    is_inter_state: bool = False
    gst_rate: Optional[Decimal] = None
    totals: Totals = Field(default_factory=Totals)

    payment_mode: Optional[PaymentMode] = None
    split: Optional[PaymentSplit] = None
    notes: str = ""
    cashier_email: str = ""

    created_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    printed_at: Optional[datetime] = None

    # Optimistic concurrency token, bumped on every write
    version: int = 0

    @property
    def keys(self) -> list[str]:
        """Every non-empty key this bill is addressable by (draft id first)."""
        return [k for k in (self.id, self.bill_no) if k]

    def to_record(self) -> dict:
        """JSON-safe boundary dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Fields a patch may never change; restored after every merge.
PROTECTED_FIELDS = ("id", "bill_no", "status", "finalized_at", "created_at", "printed_at", "version")
