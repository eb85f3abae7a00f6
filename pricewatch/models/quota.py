"""Quota counter models: monthly discovery volume and daily sync runs."""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class DiscoveryQuota(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Products a store may discover in one billing month."""

    __tablename__ = "discovery_quotas"

    store_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    month_key: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")
    limit_products: Mapped[int] = mapped_column(Integer, nullable=False)
    used_products: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("store_id", "month_key", name="uq_discovery_quota_store_month"),
    )

    @property
    def remaining(self) -> int:
        return max(0, self.limit_products - self.used_products)

    def __repr__(self) -> str:
        return f"<DiscoveryQuota(store_id={self.store_id}, month={self.month_key}, used={self.used_products}/{self.limit_products})>"


class StoreSyncRun(UUIDPrimaryKeyMixin, Base):
    """Number of sync runs a store started on one UTC date."""

    __tablename__ = "store_sync_runs"

    store_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    run_date: Mapped[date] = mapped_column(Date, nullable=False)
    sync_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("store_id", "run_date", name="uq_sync_run_store_date"),
    )

    def __repr__(self) -> str:
        return f"<StoreSyncRun(store_id={self.store_id}, date={self.run_date}, count={self.sync_count})>"
