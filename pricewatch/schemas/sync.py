"""Schemas for competitor sync runs."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pricewatch.schemas.common import CamelModel


class SyncRequest(CamelModel):
    store_id: Optional[UUID] = None


class SyncResponse(CamelModel):
    """Result of a sync request. Limits come back as ``skipped=True``."""

    ok: bool = True
    skipped: bool = False
    reason: Optional[str] = None
    matched: int = 0
    auto_confirmed: int = 0
    refreshed: int = 0
    next_allowed_at: Optional[datetime] = None
    syncs_remaining: Optional[int] = None
