# spa_ledger/domain/services/bill_service.py
"""
Bill lifecycle: DRAFT -> FINAL -> (optionally) VOID.

``printedAt`` is orthogonal and may be stamped in any state. FINAL and
VOID bills are read-only; the API layer calls ``ensure_editable`` before
``update_bill`` and this service trusts that it did.

Archiving is a separate, explicit step after voiding (void, then
optionally purge).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from spa_ledger.core.config import settings
from spa_ledger.domain.errors import (
    BillNotFoundError,
    BillValidationError,
    InvalidTransitionError,
    LinesWriteError,
    RemoteUnavailableError,
)
from spa_ledger.domain.models.bill import PROTECTED_FIELDS, Bill, BillStatus
from spa_ledger.domain.services.sequences import (
    BillNumberAllocator,
    DraftIdAllocator,
    DraftIdSequence,
    SheetBillNumberAllocator,
)
from spa_ledger.domain.services.totals import compute_totals, line_amounts
from spa_ledger.infrastructure.cache.bill_cache import BillListCache
from spa_ledger.infrastructure.ledger.ledger_store import LedgerStore

logger = logging.getLogger("bill_service")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _alias_map() -> Dict[str, str]:
    return {name: (info.alias or name) for name, info in Bill.model_fields.items()}


def _normalize_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Accept snake_case or camelCase keys; return camelCase."""
    aliases = _alias_map()
    return {aliases.get(k, k): v for k, v in patch.items()}


def ensure_editable(bill: Bill) -> None:
    if bill.status != BillStatus.DRAFT:
        raise InvalidTransitionError(
            "Final / void invoices are read-only. Please create a new bill if you need changes."
        )


def price_bill(bill: Bill, default_gst_rate: Decimal) -> Bill:
    """Recompute line amounts and totals from the bill's own pricing inputs."""
    rate = bill.gst_rate if bill.gst_rate is not None else default_gst_rate
    lines = [
        line.model_copy(update={"amount": amount})
        for line, amount in zip(bill.lines, line_amounts(bill.lines))
    ]
    totals = compute_totals(
        lines,
        discount_flat=bill.discount_flat,
        discount_pct=bill.discount_pct,
        gst_rate=rate,
        inter_state=bill.is_inter_state,
    )
    return bill.model_copy(update={"lines": lines, "totals": totals})


def _validate(data: Dict[str, Any]) -> Bill:
    try:
        return Bill.model_validate(data)
    except ValidationError as exc:
        raise BillValidationError(f"Invalid bill: {exc.error_count()} field error(s): {exc.errors()[0]['msg']}") from exc


class BillService:
    def __init__(
        self,
        store: LedgerStore,
        cache: Optional[BillListCache] = None,
        bill_numbers: Optional[BillNumberAllocator] = None,
        draft_ids: Optional[DraftIdAllocator] = None,
        default_gst_rate: Optional[Decimal] = None,
    ) -> None:
        self.store = store
        self.cache = cache or BillListCache()
        self.bill_numbers = bill_numbers or SheetBillNumberAllocator(store)
        self.draft_ids = draft_ids or DraftIdSequence(store)
        self.default_gst_rate = settings.DEFAULT_GST_RATE if default_gst_rate is None else default_gst_rate

    # ---------- reads ----------

    async def list_bills(self, status: Optional[BillStatus] = None) -> List[Bill]:
        bills = await self.cache.get_or_load(self.store.list_all)
        if status is None:
            return list(bills)
        return [b for b in bills if b.status == status]

    async def get_bill(self, id_or_no: str) -> Bill:
        key = (id_or_no or "").strip()
        if not key:
            raise BillNotFoundError(id_or_no)
        return await self.store.read(key)

    # ---------- lifecycle ----------

    async def create_draft(self, data: Dict[str, Any]) -> Bill:
        draft_id = await self.draft_ids.next_id()
        now = _now()
        fields = _normalize_patch(dict(data or {}))
        fields.update(
            {
                "id": draft_id,
                "billNo": None,
                "status": BillStatus.DRAFT.value,
                "createdAt": now,
                "finalizedAt": None,
                "printedAt": None,
                "version": 0,
            }
        )
        fields.setdefault("billDate", now.date().isoformat())
        draft = price_bill(_validate(fields), self.default_gst_rate)

        saved = await self.store.upsert(draft)
        self.cache.invalidate()
        logger.info("Created draft %s total=%s", saved.id, saved.totals.grand_total)
        return saved

    async def finalize_draft(self, draft_id: str, cashier_email: str) -> Bill:
        draft_id = (draft_id or "").strip()
        existing = await self.store.find(draft_id) if draft_id else None
        if existing is None or existing.status != BillStatus.DRAFT or (existing.id or "").strip() != draft_id:
            raise BillNotFoundError(draft_id, "Draft not found")

        bill_no = await self.bill_numbers.next_bill_no()
        final = existing.model_copy(
            update={
                "status": BillStatus.FINAL,
                "bill_no": bill_no,
                "cashier_email": cashier_email,
                "finalized_at": _now(),
            }
        )

        saved = await self.store.upsert(final, expected_version=existing.version)
        self.cache.invalidate()
        logger.info("Finalized draft %s as %s by %s", draft_id, bill_no, cashier_email)
        try:
            await self.store.append_lines(saved)
        except RemoteUnavailableError as exc:
            logger.error("Lines rows for %s not written: %s", bill_no, exc)
            raise LinesWriteError(bill_no) from exc
        return saved

    async def update_bill(self, id_or_no: str, patch: Dict[str, Any]) -> Bill:
        if not isinstance(patch, dict):
            raise BillValidationError("Patch must be a JSON object")
        existing = await self.get_bill(id_or_no)

        merged = existing.model_dump(by_alias=True)
        merged.update(_normalize_patch(patch))
        aliases = _alias_map()
        for name in PROTECTED_FIELDS:
            merged[aliases[name]] = getattr(existing, name)

        updated = price_bill(_validate(merged), self.default_gst_rate)
        saved = await self.store.upsert(updated, expected_version=existing.version)
        self.cache.invalidate()
        logger.info("Updated bill %s", saved.keys)
        return saved

    async def mark_printed(self, id_or_no: str) -> Bill:
        existing = await self.get_bill(id_or_no)
        printed = existing.model_copy(update={"printed_at": _now()})
        saved = await self.store.upsert(printed, expected_version=existing.version)
        self.cache.invalidate()
        return saved

    async def void_bill(self, id_or_no: str) -> Bill:
        existing = await self.get_bill(id_or_no)
        voided = existing.model_copy(update={"status": BillStatus.VOID})
        saved = await self.store.upsert(voided, expected_version=existing.version)
        self.cache.invalidate()
        logger.info("Voided bill %s", saved.keys)
        return saved

    async def archive_bill(self, id_or_no: str) -> Bill:
        archived = await self.store.archive_and_remove((id_or_no or "").strip())
        self.cache.invalidate()
        return archived
