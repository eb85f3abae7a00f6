"""Competitor management and the add-by-product-link flow."""

from typing import Dict, List, Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.core.clock import utcnow
from pricewatch.core.exceptions import NotFoundError, ScraperError, ValidationError
from pricewatch.db.utils import upsert_insert
from pricewatch.models.competitor import Competitor, CompetitorStatus
from pricewatch.models.confirmed_match import ConfirmedMatch, MatchSource
from pricewatch.models.match_candidate import MatchCandidate
from pricewatch.models.product import Product
from pricewatch.models.staging_product import StagingProduct
from pricewatch.models.store import Store
from pricewatch.scrapers.base import RawItem
from pricewatch.scrapers.factory import ScraperFactory, get_scraper_factory
from pricewatch.scrapers.utils.normalizer import extract_domain
from pricewatch.services.confirmation_service import ConfirmationService, MatchSelection
from pricewatch.services.plans import get_plan_config
from pricewatch.services.staging_service import StagingService
from pricewatch.services.url_policy import validate_competitor_url

logger = structlog.get_logger(__name__)

PRODUCT_LINK_SCORE = 100


def competitor_name_for(domain: str) -> str:
    """``shop.example.com`` -> ``shop.example``."""
    parts = domain.split(".")
    return ".".join(parts[:-1]) or domain


class CompetitorService:
    """CRUD for competitors, always scoped to the owning store."""

    def __init__(self, db: AsyncSession, scraper_factory: Optional[ScraperFactory] = None):
        self.db = db
        self.scraper_factory = scraper_factory or get_scraper_factory()
        self.logger = logger.bind(service="competitor_service")

    async def create_competitor(self, store_id: UUID, url: str, name: Optional[str] = None) -> Competitor:
        """Register a competitor in ``pending`` state.

        Raises:
            NotFoundError: Store does not exist
            ValidationError: URL is not http(s) or points at Amazon
        """
        await self._require_store(store_id)
        url = validate_competitor_url(url)
        domain = extract_domain(url)

        competitor = Competitor(
            store_id=store_id,
            name=(name or "").strip() or domain,
            url=url,
            domain=domain,
            status=CompetitorStatus.PENDING,
        )
        self.db.add(competitor)
        await self.db.commit()

        self.logger.info("competitor_created", store_id=str(store_id), competitor_id=str(competitor.id), domain=domain)
        return competitor

    async def list_competitors(self, store_id: UUID) -> List[Competitor]:
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.store_id == store_id)
            .order_by(Competitor.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_competitor(self, store_id: UUID, competitor_id: UUID) -> Competitor:
        result = await self.db.execute(
            select(Competitor)
            .where(and_(Competitor.id == competitor_id, Competitor.store_id == store_id))
            .execution_options(populate_existing=True)
        )
        competitor = result.scalar_one_or_none()
        if competitor is None:
            raise NotFoundError("Competitor", str(competitor_id))
        return competitor

    async def delete_competitor(self, store_id: UUID, competitor_id: UUID) -> Dict[str, int]:
        """Delete a competitor and every row scoped to it.

        Dependent rows are removed explicitly so the result does not depend
        on the database enforcing ON DELETE CASCADE.

        Returns:
            Number of rows removed per table
        """
        await self.get_competitor(store_id, competitor_id)

        removed: Dict[str, int] = {}
        for label, model in (
            ("staging_products", StagingProduct),
            ("match_candidates", MatchCandidate),
            ("confirmed_matches", ConfirmedMatch),
        ):
            result = await self.db.execute(
                delete(model)
                .where(model.competitor_id == competitor_id)
                .execution_options(synchronize_session=False)
            )
            removed[label] = result.rowcount or 0

        await self.db.execute(
            delete(Competitor)
            .where(and_(Competitor.id == competitor_id, Competitor.store_id == store_id))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        self.logger.info("competitor_deleted", store_id=str(store_id), competitor_id=str(competitor_id), **removed)
        return removed

    async def add_by_product_url(self, store_id: UUID, product_id: UUID, product_url: str) -> ConfirmedMatch:
        """Track one competitor product page directly against a seller product.

        The page is scraped, staged under a competitor grouped by domain,
        offered as a candidate and confirmed through ConfirmationService.

        Raises:
            NotFoundError: Product missing or owned by another store
            ValidationError: Bad URL or the plan's per-product competitor limit is reached
            ScraperError: The page yielded no usable product
        """
        product_url = validate_competitor_url(product_url)
        product = await self._get_product(store_id, product_id)
        plan = (await self.db.execute(select(Store.plan).where(Store.id == store_id))).scalar_one_or_none()
        await self._check_competitor_limit(store_id, product.id, product_url, plan)

        item = await self.scraper_factory.scrape_product_page(product_url)
        if item is None:
            self.logger.warning("product_link_scrape_failed", url=product_url)
            raise ScraperError("detail_page", "Could not fetch product data from this URL")

        domain = extract_domain(product_url)
        competitor = await self._get_or_create_domain_competitor(store_id, domain)
        competitor_id = competitor.id

        staging = StagingService(self.db)
        staged = await staging.stage_items(
            store_id,
            competitor_id,
            [RawItem(
                name=item.name,
                url=product_url,
                price=item.price,
                currency=item.currency,
                external_id=item.external_id,
                sku=item.sku,
            )],
        )
        if not staged:
            await self.db.rollback()
            raise ScraperError("detail_page", "No usable product name found on this page")
        row = staged[0]

        now = utcnow()
        stmt = upsert_insert(self.db, MatchCandidate).values(
            id=uuid4(),
            store_id=store_id,
            competitor_id=competitor_id,
            competitor_item_id=row.id,
            product_id=product.id,
            score=PRODUCT_LINK_SCORE,
            competitor_name=row.name,
            competitor_url=row.url,
            competitor_price=row.price,
            currency=row.currency,
            last_checked_at=row.last_checked_at,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["store_id", "competitor_id", "competitor_item_id"],
            set_={
                "product_id": stmt.excluded.product_id,
                "score": stmt.excluded.score,
                "competitor_name": stmt.excluded.competitor_name,
                "competitor_price": stmt.excluded.competitor_price,
                "currency": stmt.excluded.currency,
                "last_checked_at": stmt.excluded.last_checked_at,
            },
        )
        await self.db.execute(stmt)
        await self.db.commit()

        confirmation = ConfirmationService(self.db)
        await confirmation.confirm_matches(
            competitor_id,
            [MatchSelection(competitor_item_id=row.id, product_id=product.id)],
            store_id=store_id,
            source=MatchSource.PRODUCT_LINK,
        )

        result = await self.db.execute(
            select(ConfirmedMatch)
            .where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
                ConfirmedMatch.product_id == product.id,
            ))
            .execution_options(populate_existing=True)
        )
        match = result.scalar_one()

        self.logger.info(
            "product_link_added",
            store_id=str(store_id),
            product_id=str(product.id),
            competitor_id=str(competitor_id),
            url=product_url,
            price=str(match.last_price) if match.last_price is not None else None,
        )
        return match

    async def _require_store(self, store_id: UUID) -> None:
        result = await self.db.execute(select(Store.id).where(Store.id == store_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Store", str(store_id))

    async def _get_product(self, store_id: UUID, product_id: UUID) -> Product:
        result = await self.db.execute(
            select(Product).where(and_(Product.id == product_id, Product.store_id == store_id))
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product", str(product_id))
        return product

    async def _check_competitor_limit(
        self,
        store_id: UUID,
        product_id: UUID,
        product_url: str,
        plan: Optional[str],
    ) -> None:
        # Re-adding a URL already tracked for the product refreshes it
        existing = await self.db.execute(
            select(ConfirmedMatch.id).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.product_id == product_id,
                ConfirmedMatch.competitor_url == product_url,
            ))
        )
        if existing.first() is not None:
            return

        limit = get_plan_config(plan).competitors_per_product
        result = await self.db.execute(
            select(func.count(ConfirmedMatch.id)).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.product_id == product_id,
            ))
        )
        count = result.scalar_one()
        if count >= limit:
            raise ValidationError(
                f"Competitor limit reached for this product (max {limit}).",
                errors=[{"current_count": count, "limit": limit, "product_id": str(product_id)}],
            )

    async def _get_or_create_domain_competitor(self, store_id: UUID, domain: str) -> Competitor:
        result = await self.db.execute(
            select(Competitor)
            .where(and_(Competitor.store_id == store_id, Competitor.domain == domain))
            .order_by(Competitor.created_at)
            .limit(1)
        )
        competitor = result.scalar_one_or_none()
        if competitor is not None:
            return competitor

        competitor = Competitor(
            store_id=store_id,
            name=competitor_name_for(domain),
            url=f"https://{domain}",
            domain=domain,
            status=CompetitorStatus.PENDING,
        )
        self.db.add(competitor)
        await self.db.flush()
        self.logger.info("domain_competitor_created", store_id=str(store_id), domain=domain)
        return competitor
