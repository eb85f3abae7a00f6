"""Schemas for competitors, their candidates and confirmed matches."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from pricewatch.schemas.common import CamelModel


class CompetitorCreate(CamelModel):
    store_id: UUID
    url: str = Field(..., min_length=1, max_length=2000, examples=["https://shop.example.com/collections/all"])
    name: Optional[str] = Field(None, max_length=200)


class CompetitorResponse(CamelModel):
    id: UUID
    store_id: UUID
    name: Optional[str] = None
    url: str
    domain: Optional[str] = None
    status: str
    last_error: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    created_at: datetime


class CompetitorDeleteResponse(CamelModel):
    ok: bool = True
    staging_products: int = 0
    match_candidates: int = 0
    confirmed_matches: int = 0


class CandidateResponse(CamelModel):
    id: UUID
    competitor_item_id: UUID
    product_id: UUID
    score: int
    competitor_name: str
    competitor_url: str
    competitor_price: Optional[Decimal] = None
    currency: str
    last_checked_at: Optional[datetime] = None


class ConfirmedMatchResponse(CamelModel):
    id: UUID
    store_id: UUID
    competitor_id: UUID
    product_id: UUID
    competitor_item_id: Optional[UUID] = None
    competitor_name: str
    competitor_url: str
    last_price: Optional[Decimal] = None
    currency: str
    last_checked_at: Optional[datetime] = None
    score: Optional[int] = None
    source: str


class AddByUrlRequest(CamelModel):
    store_id: UUID
    product_id: UUID
    product_url: str = Field(..., min_length=1, max_length=2000)
