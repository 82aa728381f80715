# spa_ledger/api/v1/__init__.py
"""
Versioned API v1: mounts the bill routes under ``/api/v1``.

Usage in ``main.py``::

    from spa_ledger.api.v1 import v1_router
    app.include_router(v1_router)
"""

from fastapi import APIRouter

from spa_ledger.api.v1.routes.bills import router as bills_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(bills_router)
