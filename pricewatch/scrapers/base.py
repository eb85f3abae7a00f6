"""Scraper contract shared by every scraping strategy.

Each strategy is one flat implementation of ``BaseScraper.scrape``. Strategies
never raise to their caller: fetch and parse failures are logged and degrade
to an empty or partial list.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from urllib.parse import urlparse

import httpx
import structlog

from pricewatch.config import settings


class ScrapeStrategy(str, Enum):
    """Tag naming which scraping strategy handles a URL."""

    PLATFORM_JSON = "platform_json"
    GENERIC = "generic"
    DETAIL_PAGE = "detail_page"


@dataclass
class RawItem:
    """A competitor listing as scraped, before validation or persistence."""

    name: str
    url: str
    price: Optional[Decimal] = None
    currency: str = "USD"
    external_id: Optional[str] = None
    sku: Optional[str] = None
    metadata: dict = field(default_factory=dict)


class BaseScraper(ABC):
    """One scraping strategy.

    Shared collaborators are injected by the factory: a per-domain rate
    limiter, the rendering proxy client and, optionally, an HTTP client. When
    no HTTP client is injected a short-lived one is created per request.
    """

    strategy: ScrapeStrategy

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, rate_limiter=None, proxy=None):
        self.http_client = http_client
        self.rate_limiter = rate_limiter
        self.proxy = proxy
        self.logger = structlog.get_logger(scraper=self.strategy.value)

    @abstractmethod
    async def scrape(self, root_url: str) -> List[RawItem]:
        """Scrape competitor listings reachable from ``root_url``.

        Returns:
            List of RawItem, possibly empty. Never raises for fetch/parse errors.
        """

    async def _throttle(self, url: str) -> None:
        if self.rate_limiter:
            await self.rate_limiter.acquire(urlparse(url).netloc)

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        """GET a URL directly (not through the rendering proxy)."""
        await self._throttle(url)
        if self.http_client is not None:
            return await self.http_client.get(url, **kwargs)
        async with httpx.AsyncClient(
            timeout=settings.SCRAPER_TIMEOUT_SECONDS,
            follow_redirects=True,
        ) as client:
            return await client.get(url, **kwargs)
