"""Scheduled re-sync of a competitor.

A sync re-scrapes an already discovered competitor, rebuilds its candidates,
auto-confirms near-certain pairings and refreshes prices of existing
confirmed matches. Runs are gated by the plan's daily cap and cooldown.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.config import settings
from pricewatch.core.clock import next_utc_midnight, utcnow
from pricewatch.core.exceptions import NotFoundError, ValidationError
from pricewatch.models.competitor import Competitor, CompetitorStatus
from pricewatch.models.confirmed_match import ConfirmedMatch, MatchSource
from pricewatch.models.match_candidate import MatchCandidate
from pricewatch.models.store import Store
from pricewatch.scrapers.factory import ScraperFactory, get_scraper_factory
from pricewatch.services.candidate_service import CandidateService
from pricewatch.services.confirmation_service import ConfirmationService
from pricewatch.services.quota_service import QuotaService
from pricewatch.services.staging_service import StagingService, filter_valid_items, stageable_price
from pricewatch.services.url_policy import is_amazon_url

logger = structlog.get_logger(__name__)


@dataclass
class SyncResult:
    ok: bool = True
    skipped: bool = False
    reason: Optional[str] = None
    matched: int = 0
    auto_confirmed: int = 0
    refreshed: int = 0
    next_allowed_at: Optional[datetime] = None
    syncs_remaining: Optional[int] = None


class SyncService:
    """Runs a plan-gated sync for one competitor."""

    def __init__(self, db: AsyncSession, scraper_factory: Optional[ScraperFactory] = None):
        self.db = db
        self.scraper_factory = scraper_factory or get_scraper_factory()
        self.staging = StagingService(db)
        self.candidates = CandidateService(db)
        self.confirmation = ConfirmationService(db)
        self.quota = QuotaService(db)
        self.logger = logger.bind(service="sync_service")

    async def run_sync(self, competitor_id: UUID, store_id: Optional[UUID] = None) -> SyncResult:
        """Sync one competitor if its plan allows it right now.

        Limits produce ``skipped=True`` with a reason and the next allowed
        time; they are never raised.

        Raises:
            NotFoundError: Competitor missing or owned by another store
            ValidationError: Competitor URL points at an unsupported marketplace
        """
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.id == competitor_id)
            .execution_options(populate_existing=True)
        )
        competitor = result.scalar_one_or_none()
        if competitor is None or (store_id is not None and competitor.store_id != store_id):
            raise NotFoundError("Competitor", str(competitor_id))

        store_id = competitor.store_id
        root_url = competitor.url
        last_sync_at = competitor.last_sync_at

        if is_amazon_url(root_url):
            raise ValidationError("Amazon is not supported.")

        plan = (await self.db.execute(select(Store.plan).where(Store.id == store_id))).scalar_one_or_none()
        check = await self.quota.check_sync_allowed(store_id, plan, last_sync_at)
        if not check.allowed:
            self.logger.info(
                "sync_skipped",
                competitor_id=str(competitor_id),
                reason=check.reason_code.value if check.reason_code else None,
                next_allowed_at=check.next_allowed_at.isoformat() if check.next_allowed_at else None,
            )
            return SyncResult(
                ok=True,
                skipped=True,
                reason=check.reason,
                next_allowed_at=check.next_allowed_at,
                syncs_remaining=check.remaining,
            )

        if not await self.quota.reserve_sync_run(store_id, check.limit):
            # another run took the last slot after the check above
            return SyncResult(
                ok=True,
                skipped=True,
                reason=f"Daily sync limit reached ({check.limit}/{check.limit})",
                next_allowed_at=next_utc_midnight(utcnow()),
                syncs_remaining=0,
            )

        self.logger.info("sync_started", store_id=str(store_id), competitor_id=str(competitor_id), url=root_url)

        items = await self.scraper_factory.scrape_competitor(root_url)
        valid = filter_valid_items(items)
        fresh_prices: Dict[str, Tuple[Decimal, str, datetime]] = {}
        candidates: List[MatchCandidate] = []

        if valid:
            staged = await self.staging.stage_items(store_id, competitor_id, valid)
            await self.staging.prune_stale(competitor_id, [row.url for row in staged])
            candidates = await self.candidates.rebuild_candidates(store_id, competitor_id, staged=staged)
            fresh_prices = {
                row.url: (row.price, row.currency, row.last_checked_at)
                for row in staged
                if row.price is not None
            }
        else:
            self.logger.warning("sync_no_listings", competitor_id=str(competitor_id), scraped=len(items))

        auto_confirmed = await self._auto_confirm(store_id, competitor_id, candidates)
        refreshed = await self._refresh_confirmed_prices(store_id, competitor_id, fresh_prices)

        now = utcnow()
        await self.db.execute(
            update(Competitor)
            .where(Competitor.id == competitor_id)
            .values(status=CompetitorStatus.ACTIVE, last_error=None, last_sync_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        self.logger.info(
            "sync_completed",
            competitor_id=str(competitor_id),
            matched=len(candidates),
            auto_confirmed=auto_confirmed,
            refreshed=refreshed,
        )
        return SyncResult(
            ok=True,
            matched=len(candidates),
            auto_confirmed=auto_confirmed,
            refreshed=refreshed,
            syncs_remaining=max(0, check.remaining - 1),
        )

    async def _auto_confirm(
        self,
        store_id: UUID,
        competitor_id: UUID,
        candidates: List[MatchCandidate],
    ) -> int:
        """Promote candidates at or above AUTO_CONFIRM_SCORE.

        Products that already have a confirmed match for this competitor keep
        it; otherwise the highest-scoring candidate per product wins.
        """
        eligible = [c for c in candidates if c.score >= settings.AUTO_CONFIRM_SCORE]
        if not eligible:
            return 0

        result = await self.db.execute(
            select(ConfirmedMatch.product_id).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
            ))
        )
        confirmed_products = set(result.scalars().all())

        best: Dict[UUID, MatchCandidate] = {}
        for candidate in eligible:
            if candidate.product_id in confirmed_products:
                continue
            current = best.get(candidate.product_id)
            if current is None or candidate.score > current.score:
                best[candidate.product_id] = candidate

        if not best:
            return 0

        inserted, _ = await self.confirmation.promote(
            store_id,
            competitor_id,
            [(candidate, product_id) for product_id, candidate in best.items()],
            source=MatchSource.AUTO,
        )
        await self.db.commit()
        return inserted

    async def _refresh_confirmed_prices(
        self,
        store_id: UUID,
        competitor_id: UUID,
        fresh_prices: Dict[str, Tuple[Decimal, str, datetime]],
    ) -> int:
        """Update last_price of confirmed matches.

        Listing data from this run is used where the URL was seen; the rest
        fall back to detail-page fetches, at most SYNC_MAX_DETAIL_REFRESH.
        """
        result = await self.db.execute(
            select(ConfirmedMatch.id, ConfirmedMatch.competitor_url).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
            ))
        )
        rows = result.all()
        refreshed = 0
        detail_fetches_left = settings.SYNC_MAX_DETAIL_REFRESH

        for row in rows:
            fresh = fresh_prices.get(row.competitor_url)
            if fresh is None:
                if detail_fetches_left <= 0:
                    continue
                detail_fetches_left -= 1
                item = await self.scraper_factory.scrape_product_page(row.competitor_url)
                price = stageable_price(item.price) if item is not None else None
                if price is None:
                    self.logger.debug("confirmed_price_unavailable", url=row.competitor_url)
                    continue
                fresh = (price, item.currency, utcnow())

            price, currency, checked_at = fresh
            await self.db.execute(
                update(ConfirmedMatch)
                .where(ConfirmedMatch.id == row.id)
                .values(last_price=price, currency=currency, last_checked_at=checked_at, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            refreshed += 1

        await self.db.commit()
        return refreshed
