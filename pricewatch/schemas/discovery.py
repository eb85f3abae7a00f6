"""Schemas for discovery runs and the monthly discovery quota."""

from typing import Optional
from uuid import UUID

from pydantic import Field

from pricewatch.schemas.common import CamelModel


class DiscoveryRunRequest(CamelModel):
    store_id: UUID = Field(..., description="Store that owns the competitor")
    competitor_id: UUID = Field(..., description="Competitor to discover")


class DiscoveryRunResponse(CamelModel):
    """Outcome of a discovery run.

    ``success=False`` with a ``reason`` is a normal outcome (quota exhausted,
    nothing found), not an error.
    """

    success: bool
    products_scraped: int = 0
    error: Optional[str] = None
    reason: Optional[str] = None
    candidates_built: int = 0
    quota_remaining: Optional[int] = None


class QuotaResponse(CamelModel):
    store_id: UUID
    month_key: str = Field(..., examples=["2026-10"])
    limit: int
    used: int
    remaining: int
