"""Staging of scraped competitor listings."""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.core.clock import utcnow
from pricewatch.db.utils import upsert_insert
from pricewatch.models.staging_product import StagingProduct
from pricewatch.scrapers.base import RawItem
from pricewatch.scrapers.utils.normalizer import clean_text, looks_like_price

logger = structlog.get_logger(__name__)

MAX_NAME_LENGTH = 500
MAX_URL_LENGTH = 2000
MAX_PRICE = Decimal("10000000000")


def is_valid_item(item: RawItem) -> bool:
    """A listing is stageable when it has a real name and a URL."""
    name = clean_text(item.name)
    if not name or looks_like_price(name):
        return False
    if not item.url or len(item.url) > MAX_URL_LENGTH:
        return False
    return True


def filter_valid_items(items: Iterable[RawItem]) -> List[RawItem]:
    return [item for item in items if is_valid_item(item)]


def stageable_price(price: Optional[Decimal]) -> Optional[Decimal]:
    """Return ``price`` if it can be stored, else None.

    Zero or negative values are "call for price" placeholders. Values at or
    above MAX_PRICE do not fit the Numeric(12, 2) columns and come from
    mis-parsed text such as a SKU run merged into the price.
    """
    if price is None or price <= 0 or price >= MAX_PRICE:
        return None
    return price


class StagingService:
    """Writes scraped listings into the volatile staging table.

    Rows are keyed by (competitor, url). Re-staging a URL overwrites it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="staging_service")

    async def stage_items(
        self,
        store_id: UUID,
        competitor_id: UUID,
        items: Sequence[RawItem],
        checked_at: Optional[datetime] = None,
    ) -> List[StagingProduct]:
        """Upsert ``items`` and return the resulting staging rows.

        Items are expected to have passed ``is_valid_item``; any that have not
        are skipped here as well.
        """
        checked_at = checked_at or utcnow()
        urls: List[str] = []

        for item in items:
            if not is_valid_item(item):
                self.logger.debug("staging_item_skipped", url=item.url, name=item.name)
                continue
            if item.url in urls:
                continue

            values = {
                "store_id": store_id,
                "competitor_id": competitor_id,
                "url": item.url,
                "name": clean_text(item.name)[:MAX_NAME_LENGTH],
                "sku": (item.sku or None),
                "external_id": item.external_id,
                "price": stageable_price(item.price),
                "currency": (item.currency or "USD")[:5],
                "last_checked_at": checked_at,
            }
            stmt = upsert_insert(self.db, StagingProduct).values(id=uuid4(), created_at=checked_at, updated_at=checked_at, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["competitor_id", "url"],
                set_={
                    "name": stmt.excluded.name,
                    "sku": stmt.excluded.sku,
                    "external_id": stmt.excluded.external_id,
                    "price": stmt.excluded.price,
                    "currency": stmt.excluded.currency,
                    "last_checked_at": stmt.excluded.last_checked_at,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await self.db.execute(stmt)
            urls.append(item.url)

        if not urls:
            return []

        result = await self.db.execute(
            select(StagingProduct)
            .where(and_(
                StagingProduct.competitor_id == competitor_id,
                StagingProduct.url.in_(urls),
            ))
            .execution_options(populate_existing=True)
        )
        rows = list(result.scalars().all())
        order = {url: index for index, url in enumerate(urls)}
        rows.sort(key=lambda row: order.get(row.url, len(order)))

        self.logger.info("items_staged", competitor_id=str(competitor_id), count=len(rows))
        return rows

    async def prune_stale(self, competitor_id: UUID, keep_urls: Iterable[str]) -> int:
        """Delete staging rows of a competitor whose URL was not produced by the latest run."""
        keep = list(keep_urls)
        stmt = delete(StagingProduct).where(StagingProduct.competitor_id == competitor_id)
        if keep:
            stmt = stmt.where(StagingProduct.url.not_in(keep))
        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount:
            self.logger.info("stale_staging_pruned", competitor_id=str(competitor_id), count=result.rowcount)
        return result.rowcount or 0

    async def get_staged(self, competitor_id: UUID) -> List[StagingProduct]:
        result = await self.db.execute(
            select(StagingProduct)
            .where(StagingProduct.competitor_id == competitor_id)
            .order_by(StagingProduct.created_at)
        )
        return list(result.scalars().all())
