"""Promotion of match candidates to confirmed matches."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.core.clock import utcnow
from pricewatch.core.exceptions import NotFoundError, ValidationError
from pricewatch.db.utils import upsert_insert
from pricewatch.models.competitor import Competitor, CompetitorStatus
from pricewatch.models.confirmed_match import ConfirmedMatch, MatchSource
from pricewatch.models.match_candidate import MatchCandidate
from pricewatch.models.product import Product
from pricewatch.models.staging_product import StagingProduct

logger = structlog.get_logger(__name__)

SKIP_SENTINELS = {"", "none", "__none__"}


@dataclass
class MatchSelection:
    """One row of a confirmation request. ``product_id`` may be a skip sentinel."""

    competitor_item_id: Any
    product_id: Any = None


@dataclass
class ConfirmationResult:
    inserted: int = 0
    already_confirmed: int = 0
    skipped: int = 0
    rejected: int = 0
    errors: List[dict] = field(default_factory=list)


def is_skip(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip().lower() in SKIP_SENTINELS


def _as_uuid(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError, TypeError):
        return None


class ConfirmationService:
    """Copies candidate snapshots into durable ConfirmedMatch rows.

    Confirmed rows never depend on staging: every field needed to display or
    price-compare a match is copied at confirmation time.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="confirmation_service")

    async def confirm_matches(
        self,
        competitor_id: UUID,
        selections: Sequence[MatchSelection],
        store_id: Optional[UUID] = None,
        source: str = MatchSource.MANUAL,
    ) -> ConfirmationResult:
        """Confirm the user's selections for one competitor.

        Args:
            competitor_id: Competitor the selections belong to
            selections: (competitor item, product) pairs; a sentinel product skips the row
            store_id: Caller's store; defaults to the competitor's owner
            source: Recorded on the confirmed rows

        Returns:
            Per-row counts

        Raises:
            NotFoundError: Competitor missing or owned by another store
            ValidationError: No row could be confirmed and at least one was rejected
        """
        competitor = await self._get_competitor(competitor_id, store_id)
        store_id = competitor.store_id
        result = ConfirmationResult()

        parsed: List[Tuple[UUID, UUID]] = []
        for selection in selections:
            if is_skip(selection.product_id):
                result.skipped += 1
                continue
            item_id = _as_uuid(selection.competitor_item_id)
            product_id = _as_uuid(selection.product_id)
            if item_id is None or product_id is None:
                self._reject(result, selection, "invalid identifier")
                continue
            parsed.append((item_id, product_id))

        owned_products = await self._owned_product_ids(store_id, {product_id for _, product_id in parsed})
        candidates = await self._candidates_by_item(store_id, competitor_id, {item_id for item_id, _ in parsed})
        confirmed_items = await self._confirmed_item_pairs(
            store_id, competitor_id, {item_id for item_id, _ in parsed}
        )

        pairs: List[Tuple[MatchCandidate, UUID]] = []
        for item_id, product_id in parsed:
            if product_id not in owned_products:
                self._reject(result, MatchSelection(item_id, product_id), "product not found")
                continue
            candidate = candidates.get(item_id)
            if candidate is None:
                if (item_id, product_id) in confirmed_items:
                    result.already_confirmed += 1
                else:
                    self._reject(result, MatchSelection(item_id, product_id), "no candidate for item")
                continue
            pairs.append((candidate, product_id))

        if not pairs:
            if result.rejected and not result.already_confirmed:
                self.logger.warning(
                    "confirmation_rejected",
                    competitor_id=str(competitor_id),
                    rejected=result.rejected,
                )
                raise ValidationError("No valid selections to confirm", errors=result.errors)
            self.logger.info(
                "confirmation_nothing_to_promote",
                competitor_id=str(competitor_id),
                skipped=result.skipped,
                already_confirmed=result.already_confirmed,
            )
            return result

        inserted, existing = await self.promote(store_id, competitor_id, pairs, source=source)
        result.inserted += inserted
        result.already_confirmed += existing

        now = utcnow()
        await self.db.execute(
            update(Competitor)
            .where(Competitor.id == competitor_id)
            .values(status=CompetitorStatus.ACTIVE, last_sync_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        self.logger.info(
            "matches_confirmed",
            store_id=str(store_id),
            competitor_id=str(competitor_id),
            inserted=result.inserted,
            already_confirmed=result.already_confirmed,
            skipped=result.skipped,
            rejected=result.rejected,
        )
        return result

    async def promote(
        self,
        store_id: UUID,
        competitor_id: UUID,
        pairs: Sequence[Tuple[MatchCandidate, UUID]],
        source: str = MatchSource.MANUAL,
    ) -> Tuple[int, int]:
        """Upsert ConfirmedMatch rows for ``pairs`` and delete the promoted candidates.

        Does not commit.

        Returns:
            (inserted, already_confirmed)
        """
        if not pairs:
            return 0, 0

        fresh = await self._staging_snapshots(competitor_id, {candidate.competitor_url for candidate, _ in pairs})
        existing = await self._confirmed_product_ids(store_id, competitor_id, {product_id for _, product_id in pairs})
        now = utcnow()
        inserted = 0
        already = 0
        seen: Set[UUID] = set()

        for candidate, product_id in pairs:
            if product_id in existing or product_id in seen:
                already += 1
            else:
                inserted += 1
            seen.add(product_id)

            price = candidate.competitor_price
            currency = candidate.currency
            checked_at = candidate.last_checked_at or now
            staged = fresh.get(candidate.competitor_url)
            if staged is not None and staged.price is not None:
                price = staged.price
                currency = staged.currency or currency
                checked_at = staged.last_checked_at or checked_at

            stmt = upsert_insert(self.db, ConfirmedMatch).values(
                id=uuid4(),
                store_id=store_id,
                competitor_id=competitor_id,
                product_id=product_id,
                competitor_item_id=candidate.competitor_item_id,
                competitor_name=candidate.competitor_name,
                competitor_url=candidate.competitor_url,
                last_price=price,
                currency=currency,
                last_checked_at=checked_at,
                score=candidate.score,
                source=source,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["store_id", "competitor_id", "product_id"],
                set_={
                    "competitor_item_id": stmt.excluded.competitor_item_id,
                    "competitor_name": stmt.excluded.competitor_name,
                    "competitor_url": stmt.excluded.competitor_url,
                    "last_price": stmt.excluded.last_price,
                    "currency": stmt.excluded.currency,
                    "last_checked_at": stmt.excluded.last_checked_at,
                    "score": stmt.excluded.score,
                    "source": stmt.excluded.source,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await self.db.execute(stmt)

        await self.db.execute(
            delete(MatchCandidate)
            .where(MatchCandidate.id.in_([candidate.id for candidate, _ in pairs]))
            .execution_options(synchronize_session=False)
        )

        self.logger.debug(
            "candidates_promoted",
            competitor_id=str(competitor_id),
            source=source,
            inserted=inserted,
            already_confirmed=already,
        )
        return inserted, already

    async def list_confirmed(self, store_id: UUID, competitor_id: UUID) -> List[ConfirmedMatch]:
        result = await self.db.execute(
            select(ConfirmedMatch)
            .where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
            ))
            .order_by(ConfirmedMatch.competitor_name)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _reject(self, result: ConfirmationResult, selection: MatchSelection, reason: str) -> None:
        result.rejected += 1
        result.errors.append({
            "competitor_item_id": str(selection.competitor_item_id),
            "product_id": str(selection.product_id),
            "reason": reason,
        })

    async def _get_competitor(self, competitor_id: UUID, store_id: Optional[UUID]) -> Competitor:
        result = await self.db.execute(
            select(Competitor)
            .where(Competitor.id == competitor_id)
            .execution_options(populate_existing=True)
        )
        competitor = result.scalar_one_or_none()
        if competitor is None or (store_id is not None and competitor.store_id != store_id):
            raise NotFoundError("Competitor", str(competitor_id))
        return competitor

    async def _owned_product_ids(self, store_id: UUID, product_ids: Iterable[UUID]) -> Set[UUID]:
        ids = list(product_ids)
        if not ids:
            return set()
        result = await self.db.execute(
            select(Product.id).where(and_(Product.store_id == store_id, Product.id.in_(ids)))
        )
        return set(result.scalars().all())

    async def _candidates_by_item(
        self,
        store_id: UUID,
        competitor_id: UUID,
        item_ids: Iterable[UUID],
    ) -> Dict[UUID, MatchCandidate]:
        ids = list(item_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(MatchCandidate).where(and_(
                MatchCandidate.store_id == store_id,
                MatchCandidate.competitor_id == competitor_id,
                MatchCandidate.competitor_item_id.in_(ids),
            ))
        )
        return {candidate.competitor_item_id: candidate for candidate in result.scalars().all()}

    async def _confirmed_item_pairs(
        self,
        store_id: UUID,
        competitor_id: UUID,
        item_ids: Iterable[UUID],
    ) -> Set[Tuple[UUID, UUID]]:
        ids = list(item_ids)
        if not ids:
            return set()
        result = await self.db.execute(
            select(ConfirmedMatch.competitor_item_id, ConfirmedMatch.product_id).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
                ConfirmedMatch.competitor_item_id.in_(ids),
            ))
        )
        return {(row.competitor_item_id, row.product_id) for row in result.all()}

    async def _confirmed_product_ids(
        self,
        store_id: UUID,
        competitor_id: UUID,
        product_ids: Iterable[UUID],
    ) -> Set[UUID]:
        ids = list(product_ids)
        result = await self.db.execute(
            select(ConfirmedMatch.product_id).where(and_(
                ConfirmedMatch.store_id == store_id,
                ConfirmedMatch.competitor_id == competitor_id,
                ConfirmedMatch.product_id.in_(ids),
            ))
        )
        return set(result.scalars().all())

    async def _staging_snapshots(self, competitor_id: UUID, urls: Iterable[str]) -> Dict[str, StagingProduct]:
        wanted = list(urls)
        result = await self.db.execute(
            select(StagingProduct).where(and_(
                StagingProduct.competitor_id == competitor_id,
                StagingProduct.url.in_(wanted),
            ))
            .execution_options(populate_existing=True)
        )
        return {row.url: row for row in result.scalars().all()}
