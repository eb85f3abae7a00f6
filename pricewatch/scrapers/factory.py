"""Factory that builds scrapers and dispatches a URL to the right strategy."""

from typing import Dict, List, Optional, Type

import httpx
import structlog

from pricewatch.scrapers.base import BaseScraper, RawItem, ScrapeStrategy
from pricewatch.scrapers.adapters import DetailPageScraper, GenericListingScraper, PlatformJsonScraper
from pricewatch.scrapers.platform import classify
from pricewatch.scrapers.utils import DomainRateLimiter, RenderingProxyClient

logger = structlog.get_logger(__name__)


class ScraperFactory:
    """Creates configured scraper instances and runs the dispatch policy.

    Provides dependency injection of the shared rate limiter, rendering proxy
    client and (optionally) a shared HTTP client.
    """

    def __init__(
        self,
        rate_limiter: Optional[DomainRateLimiter] = None,
        proxy: Optional[RenderingProxyClient] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.rate_limiter = rate_limiter
        self.proxy = proxy or RenderingProxyClient(http_client=http_client)
        self.http_client = http_client
        self._registry: Dict[ScrapeStrategy, Type[BaseScraper]] = {}

    def register_scraper(self, strategy: ScrapeStrategy, scraper_class: Type[BaseScraper]) -> None:
        if not issubclass(scraper_class, BaseScraper):
            raise ValueError(f"Scraper class must inherit from BaseScraper: {scraper_class}")
        self._registry[strategy] = scraper_class
        logger.debug("scraper_registered", strategy=strategy.value, scraper=scraper_class.__name__)

    def create_scraper(self, strategy: ScrapeStrategy) -> BaseScraper:
        scraper_class = self._registry.get(strategy)
        if not scraper_class:
            raise ValueError(f"No scraper registered for strategy: {strategy.value}")
        return scraper_class(
            http_client=self.http_client,
            rate_limiter=self.rate_limiter,
            proxy=self.proxy,
        )

    async def scrape_competitor(self, url: str) -> List[RawItem]:
        """Scrape a competitor's listings with the strategy its URL calls for.

        A platform-JSON storefront that yields nothing falls through to the
        generic HTML scraper.
        """
        strategy = classify(url)
        logger.info("scrape_dispatch", url=url, strategy=strategy.value)

        if strategy == ScrapeStrategy.PLATFORM_JSON:
            items = await self.create_scraper(ScrapeStrategy.PLATFORM_JSON).scrape(url)
            if items:
                return items
            logger.info("platform_json_empty_fallback", url=url)

        return await self.create_scraper(ScrapeStrategy.GENERIC).scrape(url)

    async def scrape_product_page(self, url: str) -> Optional[RawItem]:
        """Scrape a single product page."""
        scraper = self.create_scraper(ScrapeStrategy.DETAIL_PAGE)
        items = await scraper.scrape(url)
        return items[0] if items else None


def build_default_factory() -> ScraperFactory:
    factory = ScraperFactory(rate_limiter=DomainRateLimiter())
    factory.register_scraper(ScrapeStrategy.PLATFORM_JSON, PlatformJsonScraper)
    factory.register_scraper(ScrapeStrategy.GENERIC, GenericListingScraper)
    factory.register_scraper(ScrapeStrategy.DETAIL_PAGE, DetailPageScraper)
    return factory


# Global factory instance
scraper_factory = build_default_factory()


def get_scraper_factory() -> ScraperFactory:
    """Get the global scraper factory instance."""
    return scraper_factory
