"""Competitor endpoints: CRUD, candidate review, confirmation and add-by-url."""

from typing import List
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.api.v1.errors import ERROR_RESPONSES, to_http_exception
from pricewatch.core.exceptions import PriceWatchException
from pricewatch.dependencies import get_db, get_scrapers
from pricewatch.scrapers.factory import ScraperFactory
from pricewatch.schemas import (
    AddByUrlRequest,
    CandidateResponse,
    CompetitorCreate,
    CompetitorDeleteResponse,
    CompetitorResponse,
    ConfirmedMatchResponse,
    ConfirmMatchesRequest,
    ConfirmMatchesResponse,
)
from pricewatch.services.candidate_service import CandidateService
from pricewatch.services.competitor_service import CompetitorService
from pricewatch.services.confirmation_service import ConfirmationService, MatchSelection

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=CompetitorResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_competitor(
    body: CompetitorCreate,
    db: AsyncSession = Depends(get_db),
) -> CompetitorResponse:
    """Register a competitor storefront. Discovery is triggered separately."""
    try:
        competitor = await CompetitorService(db).create_competitor(body.store_id, body.url, body.name)
    except PriceWatchException as exc:
        raise to_http_exception(exc)
    return CompetitorResponse.model_validate(competitor)


@router.get("", response_model=List[CompetitorResponse])
async def list_competitors(
    store_id: UUID = Query(..., alias="storeId"),
    db: AsyncSession = Depends(get_db),
) -> List[CompetitorResponse]:
    competitors = await CompetitorService(db).list_competitors(store_id)
    return [CompetitorResponse.model_validate(c) for c in competitors]


@router.post(
    "/add-by-url",
    response_model=ConfirmedMatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **ERROR_RESPONSES,
        422: {"description": "The page could not be scraped into a product"},
    },
)
async def add_by_url(
    body: AddByUrlRequest,
    db: AsyncSession = Depends(get_db),
    scrapers: ScraperFactory = Depends(get_scrapers),
) -> ConfirmedMatchResponse:
    """Track a single competitor product page against one of the store's products."""
    service = CompetitorService(db, scraper_factory=scrapers)
    try:
        match = await service.add_by_product_url(body.store_id, body.product_id, body.product_url)
    except PriceWatchException as exc:
        logger.warning("add_by_url_failed", url=body.product_url, error=exc.message)
        raise to_http_exception(exc)
    return ConfirmedMatchResponse.model_validate(match)


@router.delete("/{competitor_id}", response_model=CompetitorDeleteResponse, responses=ERROR_RESPONSES)
async def delete_competitor(
    competitor_id: UUID,
    store_id: UUID = Query(..., alias="storeId"),
    db: AsyncSession = Depends(get_db),
) -> CompetitorDeleteResponse:
    """Delete a competitor with its staging rows, candidates and confirmed matches."""
    try:
        removed = await CompetitorService(db).delete_competitor(store_id, competitor_id)
    except PriceWatchException as exc:
        raise to_http_exception(exc)
    return CompetitorDeleteResponse(ok=True, **removed)


@router.get(
    "/{competitor_id}/candidates",
    response_model=List[CandidateResponse],
    responses=ERROR_RESPONSES,
)
async def list_candidates(
    competitor_id: UUID,
    store_id: UUID = Query(..., alias="storeId"),
    db: AsyncSession = Depends(get_db),
) -> List[CandidateResponse]:
    try:
        await CompetitorService(db).get_competitor(store_id, competitor_id)
    except PriceWatchException as exc:
        raise to_http_exception(exc)
    candidates = await CandidateService(db).list_candidates(store_id, competitor_id)
    return [CandidateResponse.model_validate(c) for c in candidates]


@router.get(
    "/{competitor_id}/matches",
    response_model=List[ConfirmedMatchResponse],
    responses=ERROR_RESPONSES,
)
async def list_matches(
    competitor_id: UUID,
    store_id: UUID = Query(..., alias="storeId"),
    db: AsyncSession = Depends(get_db),
) -> List[ConfirmedMatchResponse]:
    try:
        await CompetitorService(db).get_competitor(store_id, competitor_id)
    except PriceWatchException as exc:
        raise to_http_exception(exc)
    matches = await ConfirmationService(db).list_confirmed(store_id, competitor_id)
    return [ConfirmedMatchResponse.model_validate(m) for m in matches]


@router.post(
    "/{competitor_id}/matches/confirm",
    response_model=ConfirmMatchesResponse,
    responses=ERROR_RESPONSES,
)
async def confirm_matches(
    competitor_id: UUID,
    body: ConfirmMatchesRequest,
    db: AsyncSession = Depends(get_db),
) -> ConfirmMatchesResponse:
    """Promote reviewed candidates to confirmed matches.

    Rows whose product is null or ``none`` are skipped. The request fails
    with 400 only when nothing could be confirmed and some row was invalid.
    """
    selections = [
        MatchSelection(competitor_item_id=s.competitor_item_id, product_id=s.product_id)
        for s in body.selections
    ]
    try:
        result = await ConfirmationService(db).confirm_matches(
            competitor_id,
            selections,
            store_id=body.store_id,
        )
    except PriceWatchException as exc:
        logger.warning("confirm_request_failed", competitor_id=str(competitor_id), error=exc.message)
        raise to_http_exception(exc)

    return ConfirmMatchesResponse(
        ok=True,
        inserted=result.inserted,
        already_confirmed=result.already_confirmed,
        skipped=result.skipped,
        rejected=result.rejected,
        errors=result.errors,
    )
