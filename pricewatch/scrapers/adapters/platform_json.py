"""Hosted-storefront adapter using the public ``/products.json`` catalog endpoint."""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from pricewatch.config import settings
from pricewatch.scrapers.base import BaseScraper, RawItem, ScrapeStrategy
from pricewatch.scrapers.utils.normalizer import clean_text, url_origin
from pricewatch.scrapers.utils.user_agents import browser_headers


class PlatformJsonScraper(BaseScraper):
    """Reads the storefront's product catalog as JSON in a single request.

    Price and SKU come from the first variant of each product. Returns an
    empty list when the endpoint is missing or malformed; the factory then
    falls back to HTML scraping.
    """

    strategy = ScrapeStrategy.PLATFORM_JSON

    async def scrape(self, root_url: str) -> List[RawItem]:
        origin = url_origin(root_url)
        endpoint = f"{origin}/products.json"
        params = {"limit": settings.PLATFORM_JSON_PAGE_SIZE}

        try:
            response = await self._get(endpoint, params=params, headers=browser_headers())
        except httpx.HTTPError as e:
            self.logger.warning("platform_json_fetch_failed", url=endpoint, error=str(e))
            return []

        if response.status_code != 200:
            self.logger.warning("platform_json_bad_status", url=endpoint, status=response.status_code)
            return []

        try:
            payload = response.json()
        except ValueError as e:
            self.logger.warning("platform_json_not_json", url=endpoint, error=str(e))
            return []

        products = payload.get("products") if isinstance(payload, dict) else None
        if not isinstance(products, list):
            self.logger.warning("platform_json_no_products_key", url=endpoint)
            return []

        items: List[RawItem] = []
        for product in products:
            item = self._parse_product(product, origin)
            if item:
                items.append(item)

        self.logger.info("platform_json_scraped", url=endpoint, count=len(items))
        return items

    def _parse_product(self, product: Dict[str, Any], origin: str) -> Optional[RawItem]:
        if not isinstance(product, dict):
            return None

        name = clean_text(product.get("title"))
        handle = product.get("handle")
        if not name or not handle:
            return None

        variants = product.get("variants") or []
        first_variant = variants[0] if variants and isinstance(variants[0], dict) else {}

        return RawItem(
            name=name,
            url=f"{origin}/products/{handle}",
            price=_to_decimal(first_variant.get("price")),
            currency=settings.DEFAULT_CURRENCY,
            external_id=str(product["id"]) if product.get("id") is not None else None,
            sku=(first_variant.get("sku") or None),
            metadata={"vendor": product.get("vendor")} if product.get("vendor") else {},
        )


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None
