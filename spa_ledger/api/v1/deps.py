# spa_ledger/api/v1/deps.py
"""
FastAPI dependencies for the v1 API layer.

One ``BillService`` per process: the index bootstrap memo and the bill list
cache both live on it.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from spa_ledger.domain.services.bill_service import BillService
from spa_ledger.infrastructure.ledger.ledger_store import LedgerStore
from spa_ledger.infrastructure.sheets.client import SheetsClient

logger = logging.getLogger("api.v1.deps")


@lru_cache(maxsize=1)
def get_bill_service() -> BillService:
    logger.info("Initialising bill service")
    return BillService(LedgerStore(SheetsClient()))
