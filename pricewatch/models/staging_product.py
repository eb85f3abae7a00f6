"""Volatile staging rows for freshly scraped competitor listings."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from pricewatch.models.competitor import Competitor


class StagingProduct(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One scraped competitor listing.

    Rows are keyed by (competitor_id, url) and may be wiped and rebuilt by any
    discovery or sync run. Nothing durable may depend on them.
    """

    __tablename__ = "competitor_staging_products"

    store_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    competitor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("competitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(2000), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    external_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="USD")
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("competitor_id", "url", name="uq_staging_competitor_url"),
    )

    competitor: Mapped["Competitor"] = relationship(back_populates="staging_products")

    def __repr__(self) -> str:
        return f"<StagingProduct(id={self.id}, name='{self.name[:50]}', price={self.price})>"
