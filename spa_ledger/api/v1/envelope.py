# spa_ledger/api/v1/envelope.py
"""
Response envelope shared by every /api/v1 endpoint:

    {
        "status": "ok" | "error",
        "data": <bill record | page of bill records>,
        "message": <optional string>,
        "errors": <optional list of {"type", "key"} dicts>
    }

Bills always leave the service as their camelCase records. Ledger errors
carry their class name (and the key they were raised for, when there is
one) so clients can branch without parsing the message.
"""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel

from spa_ledger.domain.errors import LedgerError
from spa_ledger.domain.models.bill import Bill


class Envelope(BaseModel):
    status: str = "ok"
    data: Any = None
    message: str | None = None
    errors: list[dict[str, Any]] | None = None


class BillPage(BaseModel):
    """One window of the bill list."""

    items: list[dict[str, Any]]
    total: int
    limit: int
    offset: int
    has_more: bool


def ok(data: Any = None, message: str | None = None) -> dict:
    return Envelope(data=data, message=message).model_dump()


def bill_response(bill: Bill, message: str | None = None) -> dict:
    return ok(bill.to_record(), message)


def bill_page(bills: List[Bill], limit: int, offset: int) -> dict:
    window = bills[offset:offset + limit]
    page = BillPage(
        items=[b.to_record() for b in window],
        total=len(bills),
        limit=limit,
        offset=offset,
        has_more=offset + len(window) < len(bills),
    )
    return ok(page.model_dump())


def error_response(exc: LedgerError) -> dict:
    detail: dict[str, Any] = {"type": type(exc).__name__}
    key = getattr(exc, "key", None)
    if key:
        detail["key"] = key
    return Envelope(status="error", message=str(exc), errors=[detail]).model_dump()
