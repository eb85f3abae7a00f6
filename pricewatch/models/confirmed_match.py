"""Durable, self-contained confirmed matches."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from pricewatch.models.competitor import Competitor


class MatchSource:
    MANUAL = "manual"
    AUTO = "auto"
    PRODUCT_LINK = "product_link"


class ConfirmedMatch(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A user-accepted pairing with a full copy of the competitor listing.

    Rows never reference staging data; name, URL and price are copied at
    confirmation time and refreshed in place by sync runs.
    """

    __tablename__ = "confirmed_matches"

    store_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    competitor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("competitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    competitor_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        nullable=True,
        comment="Staging row the match was promoted from (informational)",
    )

    competitor_name: Mapped[str] = mapped_column(String(500), nullable=False)
    competitor_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    last_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="USD")
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MatchSource.MANUAL,
        comment="How the match was confirmed: 'manual', 'auto', 'product_link'",
    )

    __table_args__ = (
        UniqueConstraint("store_id", "competitor_id", "product_id", name="uq_confirmed_store_competitor_product"),
    )

    competitor: Mapped["Competitor"] = relationship(back_populates="confirmed_matches")

    def __repr__(self) -> str:
        return f"<ConfirmedMatch(product={self.product_id}, url='{self.competitor_url[:50]}', price={self.last_price})>"
