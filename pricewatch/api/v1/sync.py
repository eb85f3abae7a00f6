"""Sync endpoint, called by the UI or a scheduler."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.api.v1.errors import ERROR_RESPONSES, to_http_exception
from pricewatch.core.exceptions import PriceWatchException
from pricewatch.dependencies import get_db, get_scrapers
from pricewatch.scrapers.factory import ScraperFactory
from pricewatch.schemas import SyncRequest, SyncResponse
from pricewatch.services.sync_service import SyncService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/{competitor_id}", response_model=SyncResponse, responses=ERROR_RESPONSES)
async def sync_competitor(
    competitor_id: UUID,
    body: Optional[SyncRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    scrapers: ScraperFactory = Depends(get_scrapers),
) -> SyncResponse:
    """Re-scrape a competitor and refresh its matches.

    A run refused by the daily cap or cooldown answers 200 with
    ``skipped=true`` and ``nextAllowedAt`` so schedulers can retry later.
    """
    store_id = body.store_id if body else None
    service = SyncService(db, scraper_factory=scrapers)
    try:
        result = await service.run_sync(competitor_id, store_id=store_id)
    except PriceWatchException as exc:
        logger.error("sync_request_failed", competitor_id=str(competitor_id), error=exc.message)
        raise to_http_exception(exc)

    return SyncResponse(
        ok=result.ok,
        skipped=result.skipped,
        reason=result.reason,
        matched=result.matched,
        auto_confirmed=result.auto_confirmed,
        refreshed=result.refreshed,
        next_allowed_at=result.next_allowed_at,
        syncs_remaining=result.syncs_remaining,
    )
