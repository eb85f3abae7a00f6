"""Competitor model: a rival storefront tracked by a store."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from pricewatch.models.confirmed_match import ConfirmedMatch
    from pricewatch.models.match_candidate import MatchCandidate
    from pricewatch.models.staging_product import StagingProduct
    from pricewatch.models.store import Store


class CompetitorStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    ACTIVE = "active"
    FAILED = "failed"


class Competitor(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A competitor storefront whose listings are discovered and matched.

    Status moves pending -> processing -> active | failed on every discovery
    run; ``last_error`` carries the human-readable reason of a failed run.
    """

    __tablename__ = "competitors"

    store_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    url: Mapped[str] = mapped_column(String(2000), nullable=False, comment="Listing or storefront root URL")
    domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, comment="Hostname without www.")
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CompetitorStatus.PENDING,
        index=True,
        comment="Status: 'pending', 'processing', 'active', 'failed'",
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    store: Mapped["Store"] = relationship(back_populates="competitors")
    staging_products: Mapped[list["StagingProduct"]] = relationship(
        back_populates="competitor", cascade="all, delete-orphan", passive_deletes=True
    )
    match_candidates: Mapped[list["MatchCandidate"]] = relationship(
        back_populates="competitor", cascade="all, delete-orphan", passive_deletes=True
    )
    confirmed_matches: Mapped[list["ConfirmedMatch"]] = relationship(
        back_populates="competitor", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Competitor(id={self.id}, domain='{self.domain}', status='{self.status}')>"
