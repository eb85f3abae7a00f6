"""Pytest configuration and shared fixtures."""

import os

# Must be set before pricewatch.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ["SCRAPING_API_KEY"] = ""

from decimal import Decimal
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pricewatch.models import Base, Competitor, Product, Store
from pricewatch.scrapers.base import RawItem


class FakeScraperFactory:
    """Stands in for ScraperFactory: returns canned listings and product pages."""

    def __init__(
        self,
        items: Optional[List[RawItem]] = None,
        pages: Optional[Dict[str, RawItem]] = None,
        error: Optional[Exception] = None,
    ):
        self.items = items or []
        self.pages = pages or {}
        self.error = error
        self.listing_calls: List[str] = []
        self.page_calls: List[str] = []

    async def scrape_competitor(self, url: str) -> List[RawItem]:
        self.listing_calls.append(url)
        if self.error:
            raise self.error
        return list(self.items)

    async def scrape_product_page(self, url: str) -> Optional[RawItem]:
        self.page_calls.append(url)
        return self.pages.get(url)


def make_item(name: str, slug: str, price: Optional[str] = "10.00", sku: Optional[str] = None) -> RawItem:
    return RawItem(
        name=name,
        url=f"https://rival.example.com/products/{slug}",
        price=Decimal(price) if price is not None else None,
        sku=sku,
    )


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def sample_store(test_db: AsyncSession) -> Store:
    store = Store(name="Outdoor Goods Co", plan="PRO")
    test_db.add(store)
    await test_db.commit()
    await test_db.refresh(store)
    return store


@pytest_asyncio.fixture
async def other_store(test_db: AsyncSession) -> Store:
    store = Store(name="Someone Else", plan="SCALE")
    test_db.add(store)
    await test_db.commit()
    await test_db.refresh(store)
    return store


@pytest_asyncio.fixture
async def sample_products(test_db: AsyncSession, sample_store: Store) -> List[Product]:
    """Three catalog products, committed one by one so created_at orders them."""
    products = []
    for name, sku, price in (
        ("Trail Running Shoe Blue", "TRS-100", "89.00"),
        ("Ceramic Coffee Mug", None, "12.50"),
        ("Insulated Water Bottle 750ml", "IWB-750", "24.99"),
    ):
        product = Product(store_id=sample_store.id, name=name, sku=sku, price=Decimal(price))
        test_db.add(product)
        await test_db.commit()
        await test_db.refresh(product)
        products.append(product)
    return products


@pytest_asyncio.fixture
async def sample_competitor(test_db: AsyncSession, sample_store: Store) -> Competitor:
    competitor = Competitor(
        store_id=sample_store.id,
        name="Rival",
        url="https://www.rival.example.com/collections/all",
    )
    test_db.add(competitor)
    await test_db.commit()
    await test_db.refresh(competitor)
    return competitor


@pytest.fixture
def rival_items() -> List[RawItem]:
    """Listings that match two of the sample products, plus noise."""
    return [
        make_item("Trail Running Shoe - Blue", "trail-shoe", "79.00"),
        make_item("Coffee Mug Ceramic", "mug", "9.99"),
        make_item("Garden Hose 20m", "hose", "30.00"),
        make_item("$19.99", "price-as-name", "19.99"),
    ]
