"""Discovery endpoints: trigger a run and read the monthly quota."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.api.v1.errors import ERROR_RESPONSES, to_http_exception
from pricewatch.core.exceptions import NotFoundError, PriceWatchException
from pricewatch.dependencies import get_db, get_scrapers
from pricewatch.models.store import Store
from pricewatch.scrapers.factory import ScraperFactory
from pricewatch.schemas import DiscoveryRunRequest, DiscoveryRunResponse, QuotaResponse
from pricewatch.services.discovery_service import DiscoveryService
from pricewatch.services.quota_service import QuotaService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/run",
    response_model=DiscoveryRunResponse,
    status_code=status.HTTP_200_OK,
    responses=ERROR_RESPONSES,
)
async def run_discovery(
    body: DiscoveryRunRequest,
    db: AsyncSession = Depends(get_db),
    scrapers: ScraperFactory = Depends(get_scrapers),
) -> DiscoveryRunResponse:
    """Scrape a competitor, stage its listings and rebuild match candidates.

    Quota exhaustion and empty scrapes return ``success=false`` with a
    ``reason``; they are not HTTP errors.
    """
    service = DiscoveryService(db, scraper_factory=scrapers)
    try:
        result = await service.run_discovery(body.store_id, body.competitor_id)
    except PriceWatchException as exc:
        logger.error("discovery_request_failed", competitor_id=str(body.competitor_id), error=exc.message)
        raise to_http_exception(exc)

    return DiscoveryRunResponse(
        success=result.success,
        products_scraped=result.products_scraped,
        error=result.error,
        reason=result.reason.value if result.reason else None,
        candidates_built=result.candidates_built,
        quota_remaining=result.quota_remaining,
    )


@router.get("/quota", response_model=QuotaResponse, responses=ERROR_RESPONSES)
async def get_quota(
    store_id: UUID = Query(..., alias="storeId"),
    db: AsyncSession = Depends(get_db),
) -> QuotaResponse:
    """Return this month's discovery quota for a store."""
    plan_row = await db.execute(select(Store.plan).where(Store.id == store_id))
    plan = plan_row.one_or_none()
    if plan is None:
        raise to_http_exception(NotFoundError("Store", str(store_id)))

    snapshot = await QuotaService(db).get_discovery_quota(store_id, plan.plan)
    return QuotaResponse(
        store_id=store_id,
        month_key=snapshot.month_key,
        limit=snapshot.limit,
        used=snapshot.used,
        remaining=snapshot.remaining,
    )
