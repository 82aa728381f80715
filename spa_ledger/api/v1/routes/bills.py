# spa_ledger/api/v1/routes/bills.py
"""
Bill endpoints: list, create draft, read, edit draft, finalize / mark
printed, void + archive.

Bill numbers contain "/" (``2025-26/000123``), so the identifier segment
is a path parameter. Ledger errors are translated to HTTP responses by the
handlers registered in ``spa_ledger.main``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, status

from spa_ledger.api.v1.deps import get_bill_service
from spa_ledger.api.v1.envelope import bill_page, bill_response
from spa_ledger.api.v1.schemas.bills import BillActionRequest
from spa_ledger.domain.errors import BillValidationError, InvalidTransitionError
from spa_ledger.domain.models.bill import BillStatus
from spa_ledger.domain.services.bill_service import BillService, ensure_editable

logger = logging.getLogger("api.v1.bills")

router = APIRouter(prefix="/bills", tags=["Bills"])


# ---------------------------------------------------------------------------
# List / create
# ---------------------------------------------------------------------------

@router.get("", response_model=dict)
async def list_bills(
    status_filter: BillStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    service: BillService = Depends(get_bill_service),
):
    """List bills (served from the short-lived list cache)."""
    bills = await service.list_bills(status_filter)
    return bill_page(bills, limit=limit, offset=offset)


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_draft(
    body: Optional[Dict[str, Any]] = Body(default=None),
    service: BillService = Depends(get_bill_service),
):
    """Create a new DRAFT bill; totals are computed server-side."""
    draft = await service.create_draft(body or {})
    return bill_response(draft, message=f"Draft {draft.id} created")


# ---------------------------------------------------------------------------
# Single bill (draft id or bill number)
# ---------------------------------------------------------------------------

@router.get("/{id_or_no:path}", response_model=dict)
async def get_bill(id_or_no: str, service: BillService = Depends(get_bill_service)):
    bill = await service.get_bill(id_or_no)
    return bill_response(bill)


@router.put("/{id_or_no:path}", response_model=dict)
async def update_bill(
    id_or_no: str,
    patch: Optional[Dict[str, Any]] = Body(default=None),
    service: BillService = Depends(get_bill_service),
):
    """Edit a DRAFT. FINAL and VOID bills are read-only."""
    existing = await service.get_bill(id_or_no)
    ensure_editable(existing)
    updated = await service.update_bill(id_or_no, patch or {})
    return bill_response(updated)


@router.patch("/{id_or_no:path}", response_model=dict)
async def bill_action(
    id_or_no: str,
    body: Optional[BillActionRequest] = None,
    service: BillService = Depends(get_bill_service),
):
    """``{"markPrinted": true}`` stamps printedAt; otherwise finalizes the draft."""
    body = body or BillActionRequest()
    if body.mark_printed:
        bill = await service.mark_printed(id_or_no)
        return bill_response(bill)

    if not body.cashier_email:
        raise BillValidationError("cashierEmail is required to finalize a bill")
    bill = await service.finalize_draft(id_or_no, body.cashier_email)
    return bill_response(bill, message=f"Finalized as {bill.bill_no}")


@router.delete("/{id_or_no:path}", response_model=dict)
async def delete_bill(
    id_or_no: str,
    archive: bool = Query(default=True, description="Also move the row to the Deleted sheet"),
    service: BillService = Depends(get_bill_service),
):
    """Void a bill, then (by default) archive it out of the live ledger."""
    bill = await service.get_bill(id_or_no)
    if bill.status == BillStatus.VOID:
        raise InvalidTransitionError("This invoice is already void.")

    voided = await service.void_bill(id_or_no)
    if archive:
        await service.archive_bill(voided.bill_no or voided.id or id_or_no)
    return bill_response(voided, message="Archived" if archive else "Voided")
