"""HTTP-level tests for the v1 API."""

from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import update

from conftest import FakeScraperFactory
from pricewatch.dependencies import get_db, get_scrapers
from pricewatch.main import app
from pricewatch.models import Store


@pytest.fixture
def scrapers(rival_items):
    return FakeScraperFactory(items=rival_items)


@pytest_asyncio.fixture
async def client(test_db, scrapers):
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scrapers] = lambda: scrapers
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _discover(client, store_id, competitor_id):
    response = await client.post(
        "/api/v1/discovery/run",
        json={"storeId": str(store_id), "competitorId": str(competitor_id)},
    )
    assert response.status_code == 200
    return response.json()


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["services"]["rendering_proxy"] == "not_configured"

    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["health"] == "/api/v1/health"


class TestCompetitorEndpoints:
    """Tests for /competitors CRUD."""

    async def test_create_and_list(self, client, sample_store):
        response = await client.post(
            "/api/v1/competitors",
            json={"storeId": str(sample_store.id), "url": "https://rival.example.com/collections/all"},
        )

        assert response.status_code == 201
        created = response.json()
        assert created["storeId"] == str(sample_store.id)
        assert created["domain"] == "rival.example.com"
        assert created["status"] == "pending"
        assert created["lastSyncAt"] is None

        listed = await client.get("/api/v1/competitors", params={"storeId": str(sample_store.id)})
        assert [c["id"] for c in listed.json()] == [created["id"]]

    async def test_create_amazon_is_400(self, client, sample_store):
        response = await client.post(
            "/api/v1/competitors",
            json={"storeId": str(sample_store.id), "url": "https://www.amazon.com/s?k=shoes"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Amazon is not supported."

    async def test_store_id_required(self, client):
        response = await client.get("/api/v1/competitors")
        assert response.status_code == 422

    async def test_delete(self, client, sample_store, sample_products, sample_competitor):
        await _discover(client, sample_store.id, sample_competitor.id)

        response = await client.delete(
            f"/api/v1/competitors/{sample_competitor.id}",
            params={"storeId": str(sample_store.id)},
        )

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "stagingProducts": 3,
            "matchCandidates": 2,
            "confirmedMatches": 0,
        }

    async def test_delete_foreign_is_404(self, client, sample_competitor, other_store):
        response = await client.delete(
            f"/api/v1/competitors/{sample_competitor.id}",
            params={"storeId": str(other_store.id)},
        )
        assert response.status_code == 404


class TestDiscoveryEndpoints:
    """Tests for /discovery."""

    async def test_run(self, client, sample_store, sample_products, sample_competitor):
        data = await _discover(client, sample_store.id, sample_competitor.id)

        assert data == {
            "success": True,
            "productsScraped": 3,
            "error": None,
            "reason": None,
            "candidatesBuilt": 2,
            "quotaRemaining": 5997,
        }

    async def test_unsuccessful_run_is_200(self, client, scrapers, sample_store, sample_competitor):
        scrapers.items = []

        data = await _discover(client, sample_store.id, sample_competitor.id)

        assert data["success"] is False
        assert data["reason"] == "no_products_found"
        assert data["error"] == "No products found"

    async def test_foreign_store_is_404(self, client, sample_competitor, other_store):
        response = await client.post(
            "/api/v1/discovery/run",
            json={"storeId": str(other_store.id), "competitorId": str(sample_competitor.id)},
        )
        assert response.status_code == 404

    async def test_quota(self, client, sample_store, sample_products, sample_competitor):
        await _discover(client, sample_store.id, sample_competitor.id)

        response = await client.get("/api/v1/discovery/quota", params={"storeId": str(sample_store.id)})

        assert response.status_code == 200
        data = response.json()
        assert data["limit"] == 6000
        assert data["used"] == 3
        assert data["remaining"] == 5997
        assert len(data["monthKey"]) == 7

    async def test_quota_unknown_store(self, client):
        response = await client.get("/api/v1/discovery/quota", params={"storeId": str(uuid4())})
        assert response.status_code == 404


class TestMatchEndpoints:
    """Tests for candidate review and confirmation."""

    async def test_review_and_confirm(self, client, sample_store, sample_products, sample_competitor):
        await _discover(client, sample_store.id, sample_competitor.id)
        base = f"/api/v1/competitors/{sample_competitor.id}"
        params = {"storeId": str(sample_store.id)}

        candidates = (await client.get(f"{base}/candidates", params=params)).json()
        assert [c["competitorName"] for c in candidates] == ["Coffee Mug Ceramic", "Trail Running Shoe - Blue"]
        assert candidates[0]["competitorPrice"] == "9.99"
        assert candidates[0]["score"] == 100

        response = await client.post(
            f"{base}/matches/confirm",
            json={
                "storeId": str(sample_store.id),
                "selections": [
                    {"competitorItemId": candidates[0]["competitorItemId"], "productId": candidates[0]["productId"]},
                    {"competitorItemId": candidates[1]["competitorItemId"], "productId": "__NONE__"},
                ],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["inserted"] == 1
        assert body["skipped"] == 1
        assert body["alreadyConfirmed"] == 0

        matches = (await client.get(f"{base}/matches", params=params)).json()
        assert len(matches) == 1
        assert matches[0]["lastPrice"] == "9.99"
        assert matches[0]["source"] == "manual"

    async def test_confirm_nothing_valid_is_400(self, client, sample_store, sample_products, sample_competitor):
        await _discover(client, sample_store.id, sample_competitor.id)

        response = await client.post(
            f"/api/v1/competitors/{sample_competitor.id}/matches/confirm",
            json={"selections": [{"competitorItemId": str(uuid4()), "productId": str(sample_products[0].id)}]},
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["message"] == "No valid selections to confirm"
        assert detail["errors"][0]["reason"] == "no candidate for item"

    async def test_candidates_foreign_store_is_404(self, client, sample_competitor, other_store):
        response = await client.get(
            f"/api/v1/competitors/{sample_competitor.id}/candidates",
            params={"storeId": str(other_store.id)},
        )
        assert response.status_code == 404

    async def test_add_by_url_scrape_failure_is_422(self, client, sample_store, sample_products):
        response = await client.post(
            "/api/v1/competitors/add-by-url",
            json={
                "storeId": str(sample_store.id),
                "productId": str(sample_products[1].id),
                "productUrl": "https://shop.example.net/products/mug",
            },
        )
        assert response.status_code == 422


class TestSyncEndpoint:
    """Tests for /sync."""

    async def test_cooldown_is_skipped_not_error(self, client, sample_store, sample_products, sample_competitor):
        await _discover(client, sample_store.id, sample_competitor.id)

        response = await client.post(
            f"/api/v1/sync/{sample_competitor.id}",
            json={"storeId": str(sample_store.id)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["skipped"] is True
        assert data["nextAllowedAt"] is not None
        assert data["syncsRemaining"] == 2

    async def test_sync_runs_without_body(self, client, sample_store, sample_products, sample_competitor):
        response = await client.post(f"/api/v1/sync/{sample_competitor.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["skipped"] is False
        assert data["autoConfirmed"] == 2
        assert data["syncsRemaining"] == 1

    async def test_free_plan(self, client, test_db, sample_store, sample_competitor):
        await test_db.execute(update(Store).where(Store.id == sample_store.id).values(plan="free"))
        await test_db.commit()

        data = (await client.post(f"/api/v1/sync/{sample_competitor.id}")).json()

        assert data["skipped"] is True
        assert data["reason"] == "Sync is not available on your current plan"
