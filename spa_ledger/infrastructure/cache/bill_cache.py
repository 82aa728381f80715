import time
from typing import Awaitable, Callable, List, Optional

from spa_ledger.core.config import settings
from spa_ledger.domain.models.bill import Bill

# Dashboard + invoice list render within seconds of each other; anything
# longer would hide other cashiers' bills.
DEFAULT_TTL_SECONDS = settings.BILL_LIST_CACHE_SECONDS


class BillListCache:
    """
    In-process cache for the "list all bills" read.

    Never patched: a mutation clears it, the next read replaces it whole.
    Each process holds its own copy; there is no cross-instance invalidation.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[tuple[float, List[Bill]]] = None

    def get(self) -> Optional[List[Bill]]:
        entry = self._entry
        if entry is None:
            return None
        stored_at, bills = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            return None
        return bills

    def put(self, bills: List[Bill]) -> None:
        self._entry = (self._clock(), list(bills))

    def invalidate(self) -> None:
        self._entry = None

    async def get_or_load(self, loader: Callable[[], Awaitable[List[Bill]]]) -> List[Bill]:
        cached = self.get()
        if cached is not None:
            return cached
        bills = await loader()
        self.put(bills)
        return bills
