"""Store (tenant) model."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from pricewatch.models.competitor import Competitor
    from pricewatch.models.product import Product


class Store(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A seller's store. Every other row is scoped to one store.

    The subscription plan is written by the billing side; this service only
    reads it to size quotas and sync allowances.
    """

    __tablename__ = "stores"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    plan: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="free_demo",
        comment="Plan tier or alias: free_demo, STARTER, PRO, SCALE",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    products: Mapped[list["Product"]] = relationship(back_populates="store", passive_deletes=True)
    competitors: Mapped[list["Competitor"]] = relationship(back_populates="store", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, name='{self.name}', plan='{self.plan}')>"
