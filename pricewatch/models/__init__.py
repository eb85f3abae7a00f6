"""SQLAlchemy models for PriceWatch.

All models are imported here so metadata.create_all and Alembic can discover them.
"""

from pricewatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from pricewatch.models.store import Store
from pricewatch.models.product import Product
from pricewatch.models.competitor import Competitor, CompetitorStatus
from pricewatch.models.staging_product import StagingProduct
from pricewatch.models.match_candidate import MatchCandidate
from pricewatch.models.confirmed_match import ConfirmedMatch, MatchSource
from pricewatch.models.quota import DiscoveryQuota, StoreSyncRun

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Store",
    "Product",
    "Competitor",
    "CompetitorStatus",
    "StagingProduct",
    "MatchCandidate",
    "ConfirmedMatch",
    "MatchSource",
    "DiscoveryQuota",
    "StoreSyncRun",
]
