"""Per-domain request pacing for competitor storefronts."""

import asyncio
import time
from typing import Dict, Optional

from pricewatch.config import settings


class TokenBucket:
    """Token bucket that starts full and refills continuously.

    Args:
        rate: Tokens added per second (1.0 = 60 requests per minute)
        capacity: Largest burst allowed after an idle period
    """

    def __init__(self, rate: float, capacity: float):
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self.updated_at = time.monotonic()
        self._lock = asyncio.Lock()

    def _top_up(self) -> None:
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.updated_at) * self.rate)
        self.updated_at = now

    async def acquire(self, tokens: float = 1.0) -> None:
        async with self._lock:
            self._top_up()
            while self.tokens < tokens:
                await asyncio.sleep((tokens - self.tokens) / self.rate)
                self._top_up()
            self.tokens -= tokens


class DomainRateLimiter:
    """One bucket per domain, all sharing the configured requests-per-minute."""

    def __init__(self, default_rpm: Optional[int] = None):
        self.default_rpm = default_rpm or settings.SCRAPER_RATE_LIMIT_RPM
        self._buckets: Dict[str, TokenBucket] = {}

    def _get_bucket(self, domain: str) -> TokenBucket:
        bucket = self._buckets.get(domain)
        if bucket is None:
            # bursts of a tenth of the per-minute allowance, never below 2
            bucket = TokenBucket(rate=self.default_rpm / 60.0, capacity=max(2.0, self.default_rpm / 10.0))
            self._buckets[domain] = bucket
        return bucket

    async def acquire(self, domain: str, tokens: float = 1.0) -> None:
        await self._get_bucket(domain).acquire(tokens)
