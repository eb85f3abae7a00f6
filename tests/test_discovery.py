"""Tests for the discovery pipeline."""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import FakeScraperFactory, make_item
from pricewatch.core.clock import month_key, utcnow
from pricewatch.core.exceptions import NotFoundError
from pricewatch.core.outcomes import OutcomeReason
from pricewatch.models import DiscoveryQuota, MatchCandidate, StagingProduct
from pricewatch.models.competitor import CompetitorStatus
from pricewatch.services.candidate_service import CandidateService
from pricewatch.services.discovery_service import DiscoveryService
from pricewatch.services.quota_service import QuotaService


async def _staged_urls(db, competitor_id):
    result = await db.execute(
        select(StagingProduct.url).where(StagingProduct.competitor_id == competitor_id)
    )
    return sorted(result.scalars().all())


async def _use_quota(db, store_id, used, limit=6000):
    db.add(DiscoveryQuota(store_id=store_id, month_key=month_key(utcnow()), limit_products=limit, used_products=used))
    await db.commit()


class TestDiscoverySuccess:
    """Tests for a discovery run that stages and matches listings."""

    async def test_full_run(self, test_db, sample_store, sample_products, sample_competitor, rival_items):
        store_id, competitor_id = sample_store.id, sample_competitor.id
        factory = FakeScraperFactory(items=rival_items)

        result = await DiscoveryService(test_db, scraper_factory=factory).run_discovery(store_id, competitor_id)

        assert result.success is True
        assert result.reason is None
        assert result.products_scraped == 3
        assert result.candidates_built == 2
        assert result.quota_remaining == 6000 - 3
        assert factory.listing_calls == ["https://www.rival.example.com/collections/all"]

        await test_db.refresh(sample_competitor)
        assert sample_competitor.status == CompetitorStatus.ACTIVE
        assert sample_competitor.domain == "rival.example.com"
        assert sample_competitor.last_error is None
        assert sample_competitor.last_sync_at is not None

    async def test_candidates_scored_and_snapshotted(
        self, test_db, sample_store, sample_products, sample_competitor, rival_items
    ):
        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        candidates = await CandidateService(test_db).list_candidates(sample_store.id, sample_competitor.id)

        assert [c.competitor_name for c in candidates] == ["Coffee Mug Ceramic", "Trail Running Shoe - Blue"]
        assert all(c.score == 100 for c in candidates)
        mug = candidates[0]
        assert mug.product_id == sample_products[1].id
        assert mug.competitor_url == "https://rival.example.com/products/mug"
        assert str(mug.competitor_price) == "9.99"

    async def test_quota_consumed(self, test_db, sample_store, sample_products, sample_competitor, rival_items):
        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        quota = await QuotaService(test_db).get_discovery_quota(sample_store.id, "PRO")
        assert quota.used == 3

    async def test_truncated_to_remaining_quota(
        self, test_db, sample_store, sample_products, sample_competitor, rival_items
    ):
        await _use_quota(test_db, sample_store.id, used=5999)

        result = await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.success is True
        assert result.products_scraped == 1
        assert result.quota_remaining == 0
        assert await _staged_urls(test_db, sample_competitor.id) == ["https://rival.example.com/products/trail-shoe"]

    async def test_rerun_replaces_candidates_and_prunes_staging(
        self, test_db, sample_store, sample_products, sample_competitor, rival_items
    ):
        store_id, competitor_id = sample_store.id, sample_competitor.id
        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            store_id, competitor_id
        )

        second = FakeScraperFactory(items=[make_item("Ceramic Coffee Mug", "mug", "8.49")])
        result = await DiscoveryService(test_db, scraper_factory=second).run_discovery(store_id, competitor_id)

        assert result.products_scraped == 1
        assert await _staged_urls(test_db, competitor_id) == ["https://rival.example.com/products/mug"]
        candidates = await CandidateService(test_db).list_candidates(store_id, competitor_id)
        assert len(candidates) == 1
        assert str(candidates[0].competitor_price) == "8.49"

    async def test_no_catalog_still_succeeds(self, test_db, sample_store, sample_competitor, rival_items):
        result = await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.success is True
        assert result.candidates_built == 0

    async def test_oversized_price_staged_without_price(
        self, test_db, sample_store, sample_products, sample_competitor
    ):
        items = [
            make_item("Coffee Mug Ceramic", "mug", "9.99"),
            make_item("Trail Running Shoe - Blue", "trail-shoe", "79004400123456.00"),
        ]

        result = await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.success is True
        assert result.products_scraped == 2
        rows = await test_db.execute(
            select(StagingProduct.url, StagingProduct.price).where(StagingProduct.competitor_id == sample_competitor.id)
        )
        assert dict(rows.all()) == {
            "https://rival.example.com/products/mug": Decimal("9.99"),
            "https://rival.example.com/products/trail-shoe": None,
        }


class TestDiscoveryOutcomes:
    """Tests for runs that end without staging anything."""

    async def test_quota_exhausted(self, test_db, sample_store, sample_competitor, rival_items):
        await _use_quota(test_db, sample_store.id, used=6000)
        factory = FakeScraperFactory(items=rival_items)

        result = await DiscoveryService(test_db, scraper_factory=factory).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.success is False
        assert result.reason == OutcomeReason.QUOTA_EXHAUSTED
        assert result.quota_remaining == 0
        assert factory.listing_calls == []

        await test_db.refresh(sample_competitor)
        assert sample_competitor.status == CompetitorStatus.FAILED
        assert sample_competitor.last_error == "Discovery quota exhausted"

    async def test_no_products_found(self, test_db, sample_store, sample_competitor):
        result = await DiscoveryService(test_db, scraper_factory=FakeScraperFactory()).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.success is False
        assert result.reason == OutcomeReason.NO_PRODUCTS_FOUND
        assert result.error == "No products found"

        await test_db.refresh(sample_competitor)
        assert sample_competitor.status == CompetitorStatus.FAILED
        assert sample_competitor.last_sync_at is not None

    async def test_no_valid_products(self, test_db, sample_store, sample_competitor):
        items = [make_item("$5.00", "a"), make_item("   ", "b")]
        result = await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.reason == OutcomeReason.NO_VALID_PRODUCTS
        assert result.products_scraped == 2
        assert await _staged_urls(test_db, sample_competitor.id) == []

    async def test_unexpected_error_marks_failed(self, test_db, sample_store, sample_competitor):
        store_id, competitor_id = sample_store.id, sample_competitor.id
        factory = FakeScraperFactory(error=RuntimeError("connection reset"))

        result = await DiscoveryService(test_db, scraper_factory=factory).run_discovery(store_id, competitor_id)

        assert result.success is False
        assert result.reason == OutcomeReason.UNEXPECTED_ERROR

        await test_db.refresh(sample_competitor)
        assert sample_competitor.status == CompetitorStatus.FAILED
        assert sample_competitor.last_error == "Discovery failed unexpectedly: connection reset"

    async def test_failed_run_keeps_previous_candidates(
        self, test_db, sample_store, sample_products, sample_competitor, rival_items
    ):
        store_id, competitor_id = sample_store.id, sample_competitor.id
        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            store_id, competitor_id
        )

        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory()).run_discovery(store_id, competitor_id)

        result = await test_db.execute(select(MatchCandidate).where(MatchCandidate.competitor_id == competitor_id))
        assert len(result.scalars().all()) == 2

    async def test_failed_rebuild_rolls_back_staging(
        self, test_db, sample_store, sample_products, sample_competitor, rival_items, monkeypatch
    ):
        store_id, competitor_id = sample_store.id, sample_competitor.id
        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            store_id, competitor_id
        )

        async def catalog_unavailable(self, store_id):
            raise OperationalError("SELECT products", {}, Exception("database is locked"))

        monkeypatch.setattr(CandidateService, "get_catalog", catalog_unavailable)
        second = FakeScraperFactory(items=[make_item("Ceramic Coffee Mug", "mug", "8.49")])
        result = await DiscoveryService(test_db, scraper_factory=second).run_discovery(store_id, competitor_id)

        assert result.reason == OutcomeReason.UNEXPECTED_ERROR
        assert len(await _staged_urls(test_db, competitor_id)) == 3
        staged_ids = set(
            (await test_db.execute(
                select(StagingProduct.id).where(StagingProduct.competitor_id == competitor_id)
            )).scalars().all()
        )
        candidates = await CandidateService(test_db).list_candidates(store_id, competitor_id)
        assert len(candidates) == 2
        assert {c.competitor_item_id for c in candidates} <= staged_ids


class TestDiscoveryTenancy:
    """Tests for cross-store access."""

    async def test_foreign_store_rejected(self, test_db, sample_competitor, other_store):
        factory = FakeScraperFactory(items=[make_item("Blue Mug", "mug")])
        with pytest.raises(NotFoundError):
            await DiscoveryService(test_db, scraper_factory=factory).run_discovery(other_store.id, sample_competitor.id)
        assert factory.listing_calls == []

    async def test_missing_competitor(self, test_db, sample_store):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            await DiscoveryService(test_db, scraper_factory=FakeScraperFactory()).run_discovery(sample_store.id, uuid4())
