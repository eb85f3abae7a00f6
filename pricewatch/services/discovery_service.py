"""Discovery orchestration.

A discovery run takes one competitor from its root URL to a fresh set of
match candidates: scrape, validate, stage, count against the monthly quota,
then rebuild candidates. Every run ends with the competitor either ``active``
or ``failed``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.core.clock import utcnow
from pricewatch.core.exceptions import NotFoundError, PersistenceError
from pricewatch.core.outcomes import REASON_MESSAGES, OutcomeReason
from pricewatch.models.competitor import Competitor, CompetitorStatus
from pricewatch.models.store import Store
from pricewatch.scrapers.factory import ScraperFactory, get_scraper_factory
from pricewatch.scrapers.utils.normalizer import extract_domain
from pricewatch.services.candidate_service import CandidateService
from pricewatch.services.quota_service import QuotaService
from pricewatch.services.staging_service import StagingService, filter_valid_items

logger = structlog.get_logger(__name__)

_NOT_SET = object()


@dataclass
class DiscoveryResult:
    success: bool
    products_scraped: int = 0
    error: Optional[str] = None
    reason: Optional[OutcomeReason] = None
    candidates_built: int = 0
    quota_remaining: Optional[int] = None


class DiscoveryService:
    """Runs discovery for one competitor of one store."""

    def __init__(self, db: AsyncSession, scraper_factory: Optional[ScraperFactory] = None):
        self.db = db
        self.scraper_factory = scraper_factory or get_scraper_factory()
        self.staging = StagingService(db)
        self.candidates = CandidateService(db)
        self.quota = QuotaService(db)
        self.logger = logger.bind(service="discovery_service")

    async def run_discovery(self, store_id: UUID, competitor_id: UUID) -> DiscoveryResult:
        """Run a full discovery pass.

        Args:
            store_id: Caller's store
            competitor_id: Competitor to discover

        Returns:
            DiscoveryResult; limits and empty scrapes are reported as a
            ``reason``, never raised

        Raises:
            NotFoundError: Competitor missing or owned by another store
            PersistenceError: The failure status itself could not be written
        """
        competitor = await self._get_competitor(store_id, competitor_id)
        root_url = competitor.url
        plan = await self._get_plan(store_id)

        self.logger.info(
            "discovery_started",
            store_id=str(store_id),
            competitor_id=str(competitor_id),
            url=root_url,
            plan=plan,
        )

        await self._set_status(
            competitor_id,
            CompetitorStatus.PROCESSING,
            domain=extract_domain(root_url) or None,
        )
        await self.db.commit()

        try:
            return await self._discover(store_id, competitor_id, root_url, plan)
        except Exception as e:
            self.logger.error(
                "discovery_failed",
                store_id=str(store_id),
                competitor_id=str(competitor_id),
                error=str(e),
                exc_info=True,
            )
            await self.db.rollback()
            try:
                await self._set_status(
                    competitor_id,
                    CompetitorStatus.FAILED,
                    last_error=f"{REASON_MESSAGES[OutcomeReason.UNEXPECTED_ERROR]}: {e}"[:1000],
                    last_sync_at=utcnow(),
                )
                await self.db.commit()
            except SQLAlchemyError as write_error:
                await self.db.rollback()
                raise PersistenceError(
                    f"Could not mark competitor {competitor_id} as failed: {write_error}"
                ) from write_error

            return DiscoveryResult(
                success=False,
                error=REASON_MESSAGES[OutcomeReason.UNEXPECTED_ERROR],
                reason=OutcomeReason.UNEXPECTED_ERROR,
            )

    async def _discover(
        self,
        store_id: UUID,
        competitor_id: UUID,
        root_url: str,
        plan: Optional[str],
    ) -> DiscoveryResult:
        quota = await self.quota.get_discovery_quota(store_id, plan)
        if quota.remaining <= 0:
            return await self._fail(competitor_id, OutcomeReason.QUOTA_EXHAUSTED, quota_remaining=0)

        items = await self.scraper_factory.scrape_competitor(root_url)
        scraped = len(items)
        if not items:
            return await self._fail(competitor_id, OutcomeReason.NO_PRODUCTS_FOUND, quota_remaining=quota.remaining)

        valid = filter_valid_items(items[:quota.remaining])
        self.logger.info(
            "discovery_items_filtered",
            competitor_id=str(competitor_id),
            scraped=scraped,
            within_quota=min(scraped, quota.remaining),
            valid=len(valid),
        )
        if not valid:
            return await self._fail(
                competitor_id,
                OutcomeReason.NO_VALID_PRODUCTS,
                products_scraped=scraped,
                quota_remaining=quota.remaining,
            )

        staged = await self.staging.stage_items(store_id, competitor_id, valid)
        if not staged:
            await self.db.rollback()
            return await self._fail(
                competitor_id,
                OutcomeReason.NO_PRODUCTS_STAGED,
                products_scraped=scraped,
                quota_remaining=quota.remaining,
            )

        # staging, pruning and the candidate swap commit together
        await self.staging.prune_stale(competitor_id, [row.url for row in staged])
        candidates = await self.candidates.rebuild_candidates(store_id, competitor_id, staged=staged)

        await self.quota.consume_discovery_quota(store_id, len(staged))

        await self._set_status(
            competitor_id,
            CompetitorStatus.ACTIVE,
            last_error=None,
            last_sync_at=utcnow(),
        )
        await self.db.commit()

        remaining = max(0, quota.remaining - len(staged))
        self.logger.info(
            "discovery_completed",
            store_id=str(store_id),
            competitor_id=str(competitor_id),
            scraped=scraped,
            staged=len(staged),
            candidates=len(candidates),
            quota_remaining=remaining,
        )
        return DiscoveryResult(
            success=True,
            products_scraped=len(staged),
            candidates_built=len(candidates),
            quota_remaining=remaining,
        )

    async def _fail(
        self,
        competitor_id: UUID,
        reason: OutcomeReason,
        products_scraped: int = 0,
        quota_remaining: Optional[int] = None,
    ) -> DiscoveryResult:
        message = REASON_MESSAGES[reason]
        await self._set_status(
            competitor_id,
            CompetitorStatus.FAILED,
            last_error=message,
            last_sync_at=utcnow(),
        )
        await self.db.commit()

        self.logger.warning("discovery_unsuccessful", competitor_id=str(competitor_id), reason=reason.value)
        return DiscoveryResult(
            success=False,
            products_scraped=products_scraped,
            error=message,
            reason=reason,
            quota_remaining=quota_remaining,
        )

    async def _get_competitor(self, store_id: UUID, competitor_id: UUID) -> Competitor:
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.id == competitor_id)
            .execution_options(populate_existing=True)
        )
        competitor = result.scalar_one_or_none()
        if competitor is None or competitor.store_id != store_id:
            raise NotFoundError("Competitor", str(competitor_id))
        return competitor

    async def _get_plan(self, store_id: UUID) -> Optional[str]:
        result = await self.db.execute(select(Store.plan).where(Store.id == store_id))
        return result.scalar_one_or_none()

    async def _set_status(
        self,
        competitor_id: UUID,
        status: str,
        domain: Optional[str] = None,
        last_error=_NOT_SET,
        last_sync_at: Optional[datetime] = None,
    ) -> None:
        values = {"status": status, "updated_at": utcnow()}
        if domain:
            values["domain"] = domain
        if last_error is not _NOT_SET:
            values["last_error"] = last_error
        if last_sync_at is not None:
            values["last_sync_at"] = last_sync_at

        await self.db.execute(
            update(Competitor)
            .where(Competitor.id == competitor_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
