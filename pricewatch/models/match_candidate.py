"""Proposed seller-product to competitor-listing pairings."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricewatch.models.base import Base, UUIDPrimaryKeyMixin
from pricewatch.core.clock import utcnow

if TYPE_CHECKING:
    from pricewatch.models.competitor import Competitor


class MatchCandidate(UUIDPrimaryKeyMixin, Base):
    """A scored, unconfirmed pairing awaiting user review.

    ``competitor_item_id`` is the id of the staging row the pairing was built
    from. It is deliberately not a foreign key: the listing details are
    snapshotted here so staging can be rebuilt underneath.
    """

    __tablename__ = "match_candidates"

    store_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    competitor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("competitors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    competitor_item_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False, comment="Similarity score 0-100")

    # Snapshot of the listing
    competitor_name: Mapped[str] = mapped_column(String(500), nullable=False)
    competitor_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    competitor_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(5), nullable=False, default="USD")
    last_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("store_id", "competitor_id", "competitor_item_id", name="uq_candidate_store_competitor_item"),
    )

    competitor: Mapped["Competitor"] = relationship(back_populates="match_candidates")

    def __repr__(self) -> str:
        return f"<MatchCandidate(item={self.competitor_item_id}, product={self.product_id}, score={self.score})>"
