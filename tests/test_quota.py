"""Tests for discovery quota and daily sync allowance."""

from datetime import datetime, timedelta, timezone

from pricewatch.core.outcomes import OutcomeReason
from pricewatch.services.quota_service import QuotaService

NOW = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)


class TestDiscoveryQuota:
    """Tests for the monthly discovery quota."""

    async def test_created_on_first_use(self, test_db, sample_store):
        quota = await QuotaService(test_db).get_discovery_quota(sample_store.id, "PRO", now=NOW)

        assert quota.persisted is True
        assert quota.month_key == "2026-10"
        assert quota.limit == 6000
        assert quota.used == 0
        assert quota.remaining == 6000

    async def test_consume_is_cumulative(self, test_db, sample_store):
        service = QuotaService(test_db)
        await service.get_discovery_quota(sample_store.id, "PRO", now=NOW)

        assert await service.consume_discovery_quota(sample_store.id, 100, now=NOW) is True
        assert await service.consume_discovery_quota(sample_store.id, 25, now=NOW) is True

        quota = await service.get_discovery_quota(sample_store.id, "PRO", now=NOW)
        assert quota.used == 125
        assert quota.remaining == 5875

    async def test_new_month_starts_fresh(self, test_db, sample_store):
        service = QuotaService(test_db)
        await service.get_discovery_quota(sample_store.id, "STARTER", now=NOW)
        await service.consume_discovery_quota(sample_store.id, 2000, now=NOW)

        exhausted = await service.get_discovery_quota(sample_store.id, "STARTER", now=NOW)
        assert exhausted.remaining == 0

        next_month = await service.get_discovery_quota(sample_store.id, "STARTER", now=NOW + timedelta(days=20))
        assert next_month.month_key == "2026-11"
        assert next_month.used == 0

    async def test_remaining_never_negative(self, test_db, sample_store):
        service = QuotaService(test_db)
        await service.get_discovery_quota(sample_store.id, "free_demo", now=NOW)
        await service.consume_discovery_quota(sample_store.id, 900, now=NOW)

        quota = await service.get_discovery_quota(sample_store.id, "free_demo", now=NOW)
        assert quota.used == 900
        assert quota.remaining == 0

    async def test_consume_without_row(self, test_db, sample_store):
        assert await QuotaService(test_db).consume_discovery_quota(sample_store.id, 5, now=NOW) is False

    async def test_zero_amount_is_noop(self, test_db, sample_store):
        assert await QuotaService(test_db).consume_discovery_quota(sample_store.id, 0, now=NOW) is True

    async def test_stores_are_independent(self, test_db, sample_store, other_store):
        service = QuotaService(test_db)
        await service.get_discovery_quota(sample_store.id, "PRO", now=NOW)
        await service.get_discovery_quota(other_store.id, "SCALE", now=NOW)
        await service.consume_discovery_quota(sample_store.id, 10, now=NOW)

        other = await service.get_discovery_quota(other_store.id, "SCALE", now=NOW)
        assert other.used == 0
        assert other.limit == 15000


class TestSyncAllowance:
    """Tests for the daily sync cap and cooldown."""

    async def test_free_plan_cannot_sync(self, test_db, sample_store):
        check = await QuotaService(test_db).check_sync_allowed(sample_store.id, "free_demo", None, now=NOW)

        assert check.allowed is False
        assert check.reason_code == OutcomeReason.SYNC_NOT_AVAILABLE
        assert check.limit == 0
        assert check.next_allowed_at is None

    async def test_first_sync_allowed(self, test_db, sample_store):
        check = await QuotaService(test_db).check_sync_allowed(sample_store.id, "PRO", None, now=NOW)

        assert check.allowed is True
        assert check.today_count == 0
        assert check.remaining == 2

    async def test_reserve_increments(self, test_db, sample_store):
        service = QuotaService(test_db)
        assert await service.reserve_sync_run(sample_store.id, 2, now=NOW) is True
        assert await service.reserve_sync_run(sample_store.id, 2, now=NOW + timedelta(minutes=5)) is True
        assert await service.get_today_sync_count(sample_store.id, now=NOW) == 2

    async def test_reserve_stops_at_cap(self, test_db, sample_store):
        service = QuotaService(test_db)
        await service.reserve_sync_run(sample_store.id, 2, now=NOW)
        await service.reserve_sync_run(sample_store.id, 2, now=NOW)

        assert await service.reserve_sync_run(sample_store.id, 2, now=NOW) is False
        assert await service.get_today_sync_count(sample_store.id, now=NOW) == 2

    async def test_reserve_on_free_plan(self, test_db, sample_store):
        assert await QuotaService(test_db).reserve_sync_run(sample_store.id, 0, now=NOW) is False
        assert await QuotaService(test_db).get_today_sync_count(sample_store.id, now=NOW) == 0

    async def test_count_resets_at_utc_midnight(self, test_db, sample_store):
        service = QuotaService(test_db)
        await service.reserve_sync_run(sample_store.id, 2, now=NOW)

        tomorrow = datetime(2026, 10, 19, 0, 30, tzinfo=timezone.utc)
        assert await service.get_today_sync_count(sample_store.id, now=tomorrow) == 0

    async def test_daily_cap(self, test_db, sample_store):
        service = QuotaService(test_db)
        await service.reserve_sync_run(sample_store.id, 2, now=NOW)
        await service.reserve_sync_run(sample_store.id, 2, now=NOW)

        check = await service.check_sync_allowed(sample_store.id, "PRO", None, now=NOW)

        assert check.allowed is False
        assert check.reason_code == OutcomeReason.DAILY_LIMIT_REACHED
        assert check.reason == "Daily sync limit reached (2/2)"
        assert check.remaining == 0
        assert check.next_allowed_at == datetime(2026, 10, 19, tzinfo=timezone.utc)

    async def test_cooldown_not_elapsed(self, test_db, sample_store):
        last = NOW - timedelta(hours=1)
        check = await QuotaService(test_db).check_sync_allowed(sample_store.id, "PRO", last, now=NOW)

        assert check.allowed is False
        assert check.reason_code == OutcomeReason.COOLDOWN_NOT_ELAPSED
        assert check.next_allowed_at == last + timedelta(hours=12)
        assert check.remaining == 2
        assert check.reason.startswith("Sync already ran recently")

    async def test_cooldown_elapsed(self, test_db, sample_store):
        last = NOW - timedelta(hours=6, minutes=1)
        check = await QuotaService(test_db).check_sync_allowed(sample_store.id, "SCALE", last, now=NOW)
        assert check.allowed is True

    async def test_naive_last_sync_treated_as_utc(self, test_db, sample_store):
        last = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        check = await QuotaService(test_db).check_sync_allowed(sample_store.id, "PRO", last, now=NOW)

        assert check.allowed is False
        assert check.next_allowed_at == NOW + timedelta(hours=11)
