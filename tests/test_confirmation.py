"""Tests for promoting match candidates to confirmed matches."""

from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import delete, update

from conftest import FakeScraperFactory
from pricewatch.core.exceptions import NotFoundError, ValidationError
from pricewatch.models import Product, StagingProduct
from pricewatch.models.competitor import CompetitorStatus
from pricewatch.models.confirmed_match import MatchSource
from pricewatch.services.candidate_service import CandidateService
from pricewatch.services.confirmation_service import ConfirmationService, MatchSelection, is_skip
from pricewatch.services.discovery_service import DiscoveryService


@pytest_asyncio.fixture
async def candidates(test_db, sample_store, sample_products, sample_competitor, rival_items):
    """Candidates from one discovery run: [mug, trail shoe]."""
    await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
        sample_store.id, sample_competitor.id
    )
    return await CandidateService(test_db).list_candidates(sample_store.id, sample_competitor.id)


def select_candidate(candidate, product_id=None):
    return MatchSelection(
        competitor_item_id=str(candidate.competitor_item_id),
        product_id=str(product_id or candidate.product_id),
    )


class TestSkipSentinels:
    """Tests for is_skip."""

    @pytest.mark.parametrize("value", [None, "", "  ", "none", "None", "__none__", "__NONE__"])
    def test_skips(self, value):
        assert is_skip(value) is True

    def test_real_id_not_skipped(self):
        assert is_skip(str(uuid4())) is False


class TestConfirmMatches:
    """Tests for ConfirmationService.confirm_matches."""

    async def test_confirms_and_consumes_candidates(self, test_db, sample_store, sample_competitor, candidates):
        service = ConfirmationService(test_db)

        result = await service.confirm_matches(
            sample_competitor.id,
            [select_candidate(c) for c in candidates],
            store_id=sample_store.id,
        )

        assert result.inserted == 2
        assert result.already_confirmed == 0
        assert result.rejected == 0
        assert await CandidateService(test_db).list_candidates(sample_store.id, sample_competitor.id) == []

        confirmed = await service.list_confirmed(sample_store.id, sample_competitor.id)
        assert [m.competitor_name for m in confirmed] == ["Coffee Mug Ceramic", "Trail Running Shoe - Blue"]
        assert confirmed[0].last_price == Decimal("9.99")
        assert confirmed[0].source == MatchSource.MANUAL
        assert confirmed[0].score == 100

        await test_db.refresh(sample_competitor)
        assert sample_competitor.status == CompetitorStatus.ACTIVE

    async def test_sentinels_are_skipped(self, test_db, sample_competitor, candidates):
        item_id = str(candidates[0].competitor_item_id)
        selections = [MatchSelection(item_id, value) for value in (None, "", "none", "__NONE__")]

        result = await ConfirmationService(test_db).confirm_matches(sample_competitor.id, selections)

        assert result.skipped == 4
        assert result.inserted == 0
        assert len(await CandidateService(test_db).list_candidates(sample_competitor.store_id, sample_competitor.id)) == 2

    async def test_partial_batch(self, test_db, sample_store, sample_competitor, candidates):
        selections = [
            select_candidate(candidates[0]),
            MatchSelection("not-a-uuid", str(candidates[1].product_id)),
            MatchSelection(str(uuid4()), str(candidates[1].product_id)),
        ]

        result = await ConfirmationService(test_db).confirm_matches(
            sample_competitor.id, selections, store_id=sample_store.id
        )

        assert result.inserted == 1
        assert result.rejected == 2
        assert [e["reason"] for e in result.errors] == ["invalid identifier", "no candidate for item"]

    async def test_all_rejected_raises(self, test_db, sample_competitor, candidates):
        with pytest.raises(ValidationError) as exc_info:
            await ConfirmationService(test_db).confirm_matches(
                sample_competitor.id,
                [MatchSelection(str(uuid4()), str(candidates[0].product_id))],
            )

        assert exc_info.value.errors[0]["reason"] == "no candidate for item"

    async def test_foreign_product_rejected(self, test_db, sample_competitor, other_store, candidates):
        foreign = Product(store_id=other_store.id, name="Ceramic Coffee Mug")
        test_db.add(foreign)
        await test_db.commit()

        with pytest.raises(ValidationError) as exc_info:
            await ConfirmationService(test_db).confirm_matches(
                sample_competitor.id,
                [select_candidate(candidates[0], product_id=foreign.id)],
            )

        assert exc_info.value.errors[0]["reason"] == "product not found"

    async def test_user_may_pick_another_product(self, test_db, sample_store, sample_products, sample_competitor, candidates):
        bottle = sample_products[2]

        result = await ConfirmationService(test_db).confirm_matches(
            sample_competitor.id, [select_candidate(candidates[0], product_id=bottle.id)]
        )

        assert result.inserted == 1
        confirmed = await ConfirmationService(test_db).list_confirmed(sample_store.id, sample_competitor.id)
        assert confirmed[0].product_id == bottle.id
        assert confirmed[0].competitor_name == "Coffee Mug Ceramic"

    async def test_reconfirm_is_idempotent(self, test_db, sample_store, sample_competitor, candidates):
        service = ConfirmationService(test_db)
        selection = select_candidate(candidates[0])
        await service.confirm_matches(sample_competitor.id, [selection])

        again = await service.confirm_matches(sample_competitor.id, [selection])

        assert again.inserted == 0
        assert again.already_confirmed == 1
        assert len(await service.list_confirmed(sample_store.id, sample_competitor.id)) == 1

    async def test_foreign_store_not_found(self, test_db, sample_competitor, other_store, candidates):
        with pytest.raises(NotFoundError):
            await ConfirmationService(test_db).confirm_matches(
                sample_competitor.id, [select_candidate(candidates[0])], store_id=other_store.id
            )


class TestConfirmedMatchDurability:
    """Tests that confirmed matches carry their own copy of the listing."""

    async def test_fresher_staging_price_wins(self, test_db, sample_store, sample_competitor, candidates):
        mug = candidates[0]
        await test_db.execute(
            update(StagingProduct)
            .where(StagingProduct.url == mug.competitor_url)
            .values(price=Decimal("8.25"))
            .execution_options(synchronize_session=False)
        )
        await test_db.commit()

        await ConfirmationService(test_db).confirm_matches(sample_competitor.id, [select_candidate(mug)])

        confirmed = await ConfirmationService(test_db).list_confirmed(sample_store.id, sample_competitor.id)
        assert confirmed[0].last_price == Decimal("8.25")

    async def test_survives_staging_wipe(self, test_db, sample_store, sample_competitor, candidates):
        service = ConfirmationService(test_db)
        await service.confirm_matches(sample_competitor.id, [select_candidate(c) for c in candidates])

        await test_db.execute(delete(StagingProduct).where(StagingProduct.competitor_id == sample_competitor.id))
        await test_db.commit()

        confirmed = await service.list_confirmed(sample_store.id, sample_competitor.id)
        assert len(confirmed) == 2
        assert confirmed[1].competitor_url == "https://rival.example.com/products/trail-shoe"
        assert confirmed[1].last_price == Decimal("79.00")


class TestRediscoveryAfterConfirmation:
    """Tests that later discovery runs leave confirmed pairings alone."""

    async def test_confirmed_pairings_not_offered_again(
        self, test_db, sample_store, sample_competitor, rival_items, candidates
    ):
        await ConfirmationService(test_db).confirm_matches(
            sample_competitor.id, [select_candidate(c) for c in candidates]
        )

        result = await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        assert result.success is True
        assert result.candidates_built == 0
        assert await CandidateService(test_db).list_candidates(sample_store.id, sample_competitor.id) == []

    async def test_unconfirmed_pairings_still_offered(
        self, test_db, sample_store, sample_competitor, rival_items, candidates
    ):
        mug, shoe = candidates
        await ConfirmationService(test_db).confirm_matches(sample_competitor.id, [select_candidate(mug)])

        await DiscoveryService(test_db, scraper_factory=FakeScraperFactory(items=rival_items)).run_discovery(
            sample_store.id, sample_competitor.id
        )

        remaining = await CandidateService(test_db).list_candidates(sample_store.id, sample_competitor.id)
        assert [(c.competitor_url, c.product_id) for c in remaining] == [(shoe.competitor_url, shoe.product_id)]
