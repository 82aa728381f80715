# spa_ledger/api/v1/schemas/bills.py
"""Request schemas for bill endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BillActionRequest(BaseModel):
    """PATCH body: either stamp printedAt or finalize the draft."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    mark_printed: bool = False
    cashier_email: str | None = Field(default=None, max_length=254)
