"""Run discovery or sync for one competitor outside the API.

Intended as the cron entry point; limits and cooldowns are reported, not
treated as failures, so the exit status is non-zero only on real errors.

Usage:
    python scripts/run_discovery.py --store <uuid> --competitor <uuid>
    python scripts/run_discovery.py --store <uuid> --competitor <uuid> --sync
"""

import argparse
import asyncio
import sys
import uuid

import structlog

from pricewatch.core.exceptions import PriceWatchException
from pricewatch.db.session import async_session_factory, engine
from pricewatch.services.discovery_service import DiscoveryService
from pricewatch.services.sync_service import SyncService

logger = structlog.get_logger(__name__)


async def run(store_id: uuid.UUID, competitor_id: uuid.UUID, sync: bool) -> int:
    try:
        return await _run(store_id, competitor_id, sync)
    finally:
        await engine.dispose()


async def _run(store_id: uuid.UUID, competitor_id: uuid.UUID, sync: bool) -> int:
    async with async_session_factory() as session:
        try:
            if sync:
                result = await SyncService(session).run_sync(competitor_id, store_id=store_id)
                if result.skipped:
                    print(f"Sync skipped: {result.reason}")
                    if result.next_allowed_at:
                        print(f"Next allowed at: {result.next_allowed_at.isoformat()}")
                else:
                    print(
                        f"Sync done: {result.matched} candidates, {result.auto_confirmed} auto-confirmed, "
                        f"{result.refreshed} prices refreshed"
                    )
            else:
                result = await DiscoveryService(session).run_discovery(store_id, competitor_id)
                if result.success:
                    print(
                        f"Discovery done: {result.products_scraped} products staged, "
                        f"{result.candidates_built} candidates, quota remaining {result.quota_remaining}"
                    )
                else:
                    print(f"Discovery unsuccessful ({result.reason.value}): {result.error}")
        except PriceWatchException as e:
            logger.error("run_failed", competitor_id=str(competitor_id), error=e.message)
            print(f"Error: {e.message}")
            return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description="Run discovery or sync for a competitor")
    parser.add_argument("--store", required=True, type=uuid.UUID, help="Store id")
    parser.add_argument("--competitor", required=True, type=uuid.UUID, help="Competitor id")
    parser.add_argument("--sync", action="store_true", help="Run a plan-gated sync instead of discovery")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.store, args.competitor, args.sync)))


if __name__ == "__main__":
    main()
