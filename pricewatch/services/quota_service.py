"""Plan-parameterized quotas: monthly discovery volume and daily sync allowance.

Both counters live in the database and are only ever changed with
single-statement increments, so concurrent runs for the same store cannot
lose updates.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pricewatch.core.clock import as_utc, month_key, next_utc_midnight, utc_date, utcnow
from pricewatch.core.outcomes import REASON_MESSAGES, OutcomeReason
from pricewatch.db.utils import upsert_insert
from pricewatch.models.quota import DiscoveryQuota, StoreSyncRun
from pricewatch.services.plans import get_plan_config

logger = structlog.get_logger(__name__)


@dataclass
class QuotaSnapshot:
    """Discovery quota for one store and month.

    ``persisted`` is False when the row could not be read and a plan default
    is being used instead.
    """

    store_id: UUID
    month_key: str
    limit: int
    used: int
    persisted: bool = True

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


@dataclass
class SyncCheck:
    allowed: bool
    today_count: int
    limit: int
    remaining: int
    reason_code: Optional[OutcomeReason] = None
    reason: Optional[str] = None
    next_allowed_at: Optional[datetime] = None


class QuotaService:
    """Reads and consumes per-store quotas."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="quota_service")

    # ------------------------------------------------------------------
    # Discovery quota
    # ------------------------------------------------------------------

    async def get_discovery_quota(
        self,
        store_id: UUID,
        plan: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> QuotaSnapshot:
        """Return this month's discovery quota, creating the row on first use.

        Storage failures are logged and answered with an unpersisted snapshot
        at the plan's full limit.
        """
        now = now or utcnow()
        key = month_key(now)
        limit = get_plan_config(plan).discovery_products_per_month

        try:
            stmt = upsert_insert(self.db, DiscoveryQuota).values(
                id=uuid4(),
                store_id=store_id,
                month_key=key,
                limit_products=limit,
                used_products=0,
                created_at=now,
                updated_at=now,
            )
            await self.db.execute(stmt.on_conflict_do_nothing(index_elements=["store_id", "month_key"]))
            result = await self.db.execute(
                select(DiscoveryQuota.limit_products, DiscoveryQuota.used_products)
                .where(and_(DiscoveryQuota.store_id == store_id, DiscoveryQuota.month_key == key))
            )
            row = result.one()
            await self.db.commit()
        except SQLAlchemyError as e:
            self.logger.warning("discovery_quota_unavailable", store_id=str(store_id), month=key, error=str(e))
            await self.db.rollback()
            return QuotaSnapshot(store_id=store_id, month_key=key, limit=limit, used=0, persisted=False)

        return QuotaSnapshot(
            store_id=store_id,
            month_key=key,
            limit=row.limit_products,
            used=row.used_products,
        )

    async def consume_discovery_quota(
        self,
        store_id: UUID,
        amount: int,
        now: Optional[datetime] = None,
    ) -> bool:
        """Atomically add ``amount`` to this month's usage.

        Returns:
            False when the increment could not be persisted (logged, not raised)
        """
        if amount <= 0:
            return True
        now = now or utcnow()
        key = month_key(now)

        try:
            result = await self.db.execute(
                update(DiscoveryQuota)
                .where(and_(DiscoveryQuota.store_id == store_id, DiscoveryQuota.month_key == key))
                .values(used_products=DiscoveryQuota.used_products + amount, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            self.logger.warning("discovery_quota_increment_failed", store_id=str(store_id), amount=amount, error=str(e))
            await self.db.rollback()
            return False

        if not result.rowcount:
            self.logger.warning("discovery_quota_row_missing", store_id=str(store_id), month=key)
            return False

        self.logger.info("discovery_quota_consumed", store_id=str(store_id), month=key, amount=amount)
        return True

    # ------------------------------------------------------------------
    # Daily sync allowance
    # ------------------------------------------------------------------

    async def get_today_sync_count(self, store_id: UUID, now: Optional[datetime] = None) -> int:
        today = utc_date(now or utcnow())
        result = await self.db.execute(
            select(StoreSyncRun.sync_count)
            .where(and_(StoreSyncRun.store_id == store_id, StoreSyncRun.run_date == today))
        )
        return result.scalar_one_or_none() or 0

    async def check_sync_allowed(
        self,
        store_id: UUID,
        plan: Optional[str],
        last_sync_at: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> SyncCheck:
        """Decide whether a sync may start now.

        Checks, in order: the plan allows syncing at all, the daily cap has
        headroom, and the cooldown since ``last_sync_at`` has elapsed.
        """
        now = as_utc(now or utcnow())
        config = get_plan_config(plan)
        limit = config.syncs_per_day

        if limit <= 0:
            return SyncCheck(
                allowed=False,
                today_count=0,
                limit=0,
                remaining=0,
                reason_code=OutcomeReason.SYNC_NOT_AVAILABLE,
                reason=REASON_MESSAGES[OutcomeReason.SYNC_NOT_AVAILABLE],
            )

        today_count = await self.get_today_sync_count(store_id, now)
        remaining = max(0, limit - today_count)

        if today_count >= limit:
            return SyncCheck(
                allowed=False,
                today_count=today_count,
                limit=limit,
                remaining=0,
                reason_code=OutcomeReason.DAILY_LIMIT_REACHED,
                reason=f"Daily sync limit reached ({today_count}/{limit})",
                next_allowed_at=next_utc_midnight(now),
            )

        last_sync_at = as_utc(last_sync_at)
        if last_sync_at is not None:
            next_allowed = last_sync_at + config.sync_cooldown
            if next_allowed > now:
                return SyncCheck(
                    allowed=False,
                    today_count=today_count,
                    limit=limit,
                    remaining=remaining,
                    reason_code=OutcomeReason.COOLDOWN_NOT_ELAPSED,
                    reason=f"Sync already ran recently. Next sync available at {next_allowed.isoformat()}",
                    next_allowed_at=next_allowed,
                )

        return SyncCheck(allowed=True, today_count=today_count, limit=limit, remaining=remaining)

    async def reserve_sync_run(self, store_id: UUID, limit: int, now: Optional[datetime] = None) -> bool:
        """Take one of today's sync slots before the run starts.

        The increment is a single upsert guarded by ``sync_count < limit``, so
        two overlapping requests cannot both take the last slot.

        Returns:
            False when the daily cap is already used up. A storage error is
            logged and the run is let through unrecorded.
        """
        if limit <= 0:
            return False
        now = as_utc(now or utcnow())
        today = utc_date(now)
        sync_count = StoreSyncRun.__table__.c.sync_count

        try:
            stmt = upsert_insert(self.db, StoreSyncRun).values(
                id=uuid4(),
                store_id=store_id,
                run_date=today,
                sync_count=1,
                last_sync_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["store_id", "run_date"],
                set_={"sync_count": sync_count + 1, "last_sync_at": stmt.excluded.last_sync_at},
                where=sync_count < limit,
            ).returning(sync_count)
            count = (await self.db.execute(stmt)).scalar_one_or_none()
            await self.db.commit()
        except SQLAlchemyError as e:
            self.logger.warning("sync_run_reserve_failed", store_id=str(store_id), error=str(e))
            await self.db.rollback()
            return True

        if count is None:
            self.logger.info("sync_run_cap_reached", store_id=str(store_id), run_date=str(today), limit=limit)
            return False

        self.logger.info("sync_run_reserved", store_id=str(store_id), run_date=str(today), count=count)
        return True
