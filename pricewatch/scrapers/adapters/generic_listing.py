"""Generic paginated listing scraper for arbitrary storefronts."""

from typing import List, Optional, Set

from bs4 import BeautifulSoup, Tag

from pricewatch.config import settings
from pricewatch.core.exceptions import ProxyCreditsExhausted, TransientFetchError
from pricewatch.scrapers.base import BaseScraper, RawItem, ScrapeStrategy
from pricewatch.scrapers.extraction import (
    CONTAINER_SELECTORS,
    LISTING_ID_RULES,
    LISTING_NAME_RULES,
    LISTING_PRICE_RULES,
    LISTING_URL_RULES,
    first_value,
)
from pricewatch.scrapers.utils.normalizer import absolute_url, clean_text, normalize_url, parse_price


def page_url(root_url: str, page: int) -> str:
    """URL of listing page ``page`` (1-based)."""
    if page <= 1:
        return root_url
    separator = "&" if "?" in root_url else "?"
    return f"{root_url}{separator}page={page}"


class GenericListingScraper(BaseScraper):
    """Walks ``?page=N`` listing pages through the rendering proxy.

    Stops at the first of: page cap, item cap, a page matching no product
    container, a page yielding fewer than the minimum items, or the proxy
    running out of credits. A page that fails to fetch is skipped.
    """

    strategy = ScrapeStrategy.GENERIC

    def __init__(
        self,
        *args,
        max_pages: Optional[int] = None,
        max_items: Optional[int] = None,
        min_items_per_page: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.max_pages = max_pages or settings.LISTING_MAX_PAGES
        self.max_items = max_items or settings.LISTING_MAX_ITEMS
        self.min_items_per_page = min_items_per_page or settings.LISTING_MIN_ITEMS_PER_PAGE

    async def scrape(self, root_url: str) -> List[RawItem]:
        if self.proxy is None or not self.proxy.is_configured:
            self.logger.warning("rendering_proxy_not_configured", url=root_url)
            return []

        items: List[RawItem] = []
        seen_urls: Set[str] = set()

        for page in range(1, self.max_pages + 1):
            if len(items) >= self.max_items:
                break

            url = page_url(root_url, page)
            await self._throttle(url)
            try:
                html = await self.proxy.fetch_html(url, render_js=False)
            except ProxyCreditsExhausted as e:
                self.logger.error("rendering_proxy_credits_exhausted", url=url, status=e.status_code)
                break
            except TransientFetchError as e:
                self.logger.warning("listing_page_fetch_failed", url=url, page=page, error=e.message)
                continue

            page_items = self.parse_listing(html, url)
            if page_items is None:
                self.logger.info("listing_no_containers", url=url, page=page)
                break

            new_items = 0
            for item in page_items:
                if item.url in seen_urls:
                    continue
                seen_urls.add(item.url)
                items.append(item)
                new_items += 1

            self.logger.info("listing_page_scraped", url=url, page=page, found=len(page_items), new=new_items)

            if len(page_items) < self.min_items_per_page:
                break

        return items[: self.max_items]

    def parse_listing(self, html: str, url: str) -> Optional[List[RawItem]]:
        """Parse one listing page.

        Returns:
            Items found on the page, or None when no container selector matched.
        """
        soup = BeautifulSoup(html, "html.parser")

        containers: List[Tag] = []
        for selector in CONTAINER_SELECTORS:
            containers = soup.select(selector)
            if containers:
                break
        if not containers:
            return None

        items: List[RawItem] = []
        for container in containers:
            item = self._parse_container(container, url)
            if item:
                items.append(item)
        return items

    def _parse_container(self, container: Tag, page: str) -> Optional[RawItem]:
        name = clean_text(first_value(container, LISTING_NAME_RULES))
        link = absolute_url(page, first_value(container, LISTING_URL_RULES))
        if not name or not link:
            return None
        link = normalize_url(link)

        parsed = parse_price(None)
        for rule in LISTING_PRICE_RULES:
            candidate = parse_price(rule.extract(container))
            if candidate.amount is not None:
                parsed = candidate
                break

        return RawItem(
            name=name,
            url=link,
            price=parsed.amount,
            currency=parsed.currency,
            external_id=first_value(container, LISTING_ID_RULES),
        )
