"""Match candidate rebuilds."""

from typing import List, Optional, Sequence, Set, Tuple
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.core.clock import utcnow
from pricewatch.models.confirmed_match import ConfirmedMatch
from pricewatch.models.match_candidate import MatchCandidate
from pricewatch.models.product import Product
from pricewatch.models.staging_product import StagingProduct
from pricewatch.services.matching import find_best_matches

logger = structlog.get_logger(__name__)


class CandidateService:
    """Recomputes the candidate set of a (store, competitor) pair.

    A rebuild always clears the previous candidates and inserts the new ones
    in the same transaction, so readers see either the old set or the new one.
    Staging writes the caller has not committed yet are committed with it.
    Pairings that are already confirmed are never offered again.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="candidate_service")

    async def get_catalog(self, store_id: UUID) -> List[Product]:
        result = await self.db.execute(
            select(Product)
            .where(and_(Product.store_id == store_id, Product.is_active.is_(True)))
            .order_by(Product.created_at, Product.id)
        )
        return list(result.scalars().all())

    async def rebuild_candidates(
        self,
        store_id: UUID,
        competitor_id: UUID,
        staged: Optional[Sequence[StagingProduct]] = None,
        min_score: Optional[int] = None,
    ) -> List[MatchCandidate]:
        """Replace the candidates for (store, competitor) with fresh matches.

        Args:
            store_id: Owning store
            competitor_id: Competitor whose staged listings are matched
            staged: Staging rows to match; defaults to everything staged for the competitor
            min_score: Score threshold; defaults to MATCH_MIN_SCORE

        Returns:
            The inserted candidates
        """
        if staged is None:
            result = await self.db.execute(
                select(StagingProduct)
                .where(StagingProduct.competitor_id == competitor_id)
                .order_by(StagingProduct.created_at)
            )
            staged = list(result.scalars().all())

        catalog = await self.get_catalog(store_id)
        matches = find_best_matches(catalog, staged, min_score=min_score)
        confirmed = await self._confirmed_pairs(store_id, competitor_id)
        matches = [
            match for match in matches
            if (match.competitor_item.url, match.seller_product.id) not in confirmed
            and (match.competitor_item.id, match.seller_product.id) not in confirmed
        ]
        now = utcnow()

        await self.db.execute(
            delete(MatchCandidate)
            .where(and_(
                MatchCandidate.store_id == store_id,
                MatchCandidate.competitor_id == competitor_id,
            ))
            .execution_options(synchronize_session=False)
        )

        candidates = [
            MatchCandidate(
                store_id=store_id,
                competitor_id=competitor_id,
                competitor_item_id=match.competitor_item.id,
                product_id=match.seller_product.id,
                score=match.score,
                competitor_name=match.competitor_item.name,
                competitor_url=match.competitor_item.url,
                competitor_price=match.competitor_item.price,
                currency=match.competitor_item.currency,
                last_checked_at=match.competitor_item.last_checked_at or now,
                created_at=now,
            )
            for match in matches
        ]
        self.db.add_all(candidates)
        await self.db.commit()

        self.logger.info(
            "candidates_rebuilt",
            store_id=str(store_id),
            competitor_id=str(competitor_id),
            staged=len(staged),
            catalog=len(catalog),
            candidates=len(candidates),
        )
        return candidates

    async def _confirmed_pairs(self, store_id: UUID, competitor_id: UUID) -> Set[Tuple[object, UUID]]:
        """(url, product) and (item id, product) keys of confirmed matches."""
        result = await self.db.execute(
            select(
                ConfirmedMatch.competitor_url,
                ConfirmedMatch.competitor_item_id,
                ConfirmedMatch.product_id,
            ).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
            ))
        )
        pairs: Set[Tuple[object, UUID]] = set()
        for url, item_id, product_id in result.all():
            pairs.add((url, product_id))
            if item_id is not None:
                pairs.add((item_id, product_id))
        return pairs

    async def list_candidates(self, store_id: UUID, competitor_id: UUID) -> List[MatchCandidate]:
        result = await self.db.execute(
            select(MatchCandidate)
            .where(and_(
                MatchCandidate.store_id == store_id,
                MatchCandidate.competitor_id == competitor_id,
            ))
            .order_by(MatchCandidate.score.desc(), MatchCandidate.competitor_name)
        )
        return list(result.scalars().all())
