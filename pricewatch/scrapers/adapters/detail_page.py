"""Single product-page scraper used by the add-by-link flow and price refreshes."""

import json
from typing import Any, List, Optional

from bs4 import BeautifulSoup

from pricewatch.core.exceptions import BotBlockedError, TransientFetchError
from pricewatch.scrapers.base import BaseScraper, RawItem, ScrapeStrategy
from pricewatch.scrapers.extraction import (
    BOT_BLOCK_MARKERS,
    GENERIC_DETAIL_RULES,
    SITE_DETAIL_RULES,
    DetailRules,
    first_value,
)
from pricewatch.scrapers.utils.normalizer import clean_text, extract_domain, parse_price

# Cheapest first: plain proxy, then premium residential IPs.
FETCH_ATTEMPTS = (
    {"premium_proxy": False},
    {"premium_proxy": True},
)


def detect_bot_block(html: str) -> bool:
    lower = html.lower()
    return any(marker in lower for marker in BOT_BLOCK_MARKERS)


class DetailPageScraper(BaseScraper):
    """Extracts name and price from one product page.

    Parsers are tried in order: site-specific rules for known demo shops,
    schema.org Product data in LD+JSON, then generic heading/price rules.
    """

    strategy = ScrapeStrategy.DETAIL_PAGE

    async def scrape(self, root_url: str) -> List[RawItem]:
        item = await self.scrape_product(root_url)
        return [item] if item else []

    async def scrape_product(self, url: str) -> Optional[RawItem]:
        if self.proxy is None or not self.proxy.is_configured:
            self.logger.warning("rendering_proxy_not_configured", url=url)
            return None

        try:
            html = await self._fetch(url)
        except TransientFetchError as e:
            self.logger.warning("detail_page_fetch_failed", url=url, error=e.message)
            return None

        item = self.parse_product_page(html, url)
        if item is None:
            self.logger.warning("detail_page_no_product", url=url)
        return item

    async def _fetch(self, url: str) -> str:
        last_error: Optional[TransientFetchError] = None
        for attempt, options in enumerate(FETCH_ATTEMPTS, start=1):
            await self._throttle(url)
            try:
                html = await self.proxy.fetch_html(url, render_js=False, **options)
            except TransientFetchError as e:
                self.logger.info("detail_page_attempt_failed", url=url, attempt=attempt, error=e.message)
                last_error = e
                continue
            if detect_bot_block(html):
                self.logger.info("detail_page_bot_blocked", url=url, attempt=attempt)
                last_error = BotBlockedError(url, "bot or captcha wall detected")
                continue
            return html
        raise last_error

    def parse_product_page(self, html: str, url: str) -> Optional[RawItem]:
        soup = BeautifulSoup(html, "html.parser")
        domain = extract_domain(url) or ""

        for site, rules in SITE_DETAIL_RULES.items():
            if domain == site or domain.endswith("." + site):
                item = _apply_rules(soup, rules, url)
                if item:
                    return item

        item = _from_ld_json(soup, url)
        if item and item.price is not None:
            return item

        generic = _apply_rules(soup, GENERIC_DETAIL_RULES, url)
        if item and generic:
            # LD+JSON had the name but no offer price
            generic.name = item.name
        return generic or item


def _apply_rules(soup: BeautifulSoup, rules: DetailRules, url: str) -> Optional[RawItem]:
    name = clean_text(first_value(soup, rules.name))
    if not name:
        return None

    parsed = parse_price(None)
    for rule in rules.price:
        candidate = parse_price(rule.extract(soup))
        if candidate.amount is not None:
            parsed = candidate
            break

    currency = first_value(soup, rules.currency) if rules.currency else None
    return RawItem(
        name=name,
        url=url,
        price=parsed.amount,
        currency=(currency or parsed.currency).upper(),
    )


def _from_ld_json(soup: BeautifulSoup, url: str) -> Optional[RawItem]:
    for script in soup.select("script[type='application/ld+json']"):
        try:
            data = json.loads(script.string or "")
        except ValueError:
            continue
        product = _find_product_node(data)
        if not product:
            continue

        name = clean_text(str(product.get("name") or ""))
        if not name:
            continue

        offer = product.get("offers") or {}
        if isinstance(offer, list):
            offer = offer[0] if offer else {}
        if isinstance(offer, dict) and "price" not in offer and "lowPrice" in offer:
            offer = {**offer, "price": offer["lowPrice"]}

        raw_price = offer.get("price") if isinstance(offer, dict) else None
        parsed = parse_price(str(raw_price)) if raw_price is not None else parse_price(None)
        currency = offer.get("priceCurrency") if isinstance(offer, dict) else None

        return RawItem(
            name=name,
            url=url,
            price=parsed.amount,
            currency=(currency or parsed.currency).upper(),
            sku=str(product["sku"]) if product.get("sku") else None,
        )
    return None


def _find_product_node(data: Any) -> Optional[dict]:
    """Locate a schema.org Product in an LD+JSON document (object, list or @graph)."""
    if isinstance(data, list):
        for entry in data:
            found = _find_product_node(entry)
            if found:
                return found
        return None
    if not isinstance(data, dict):
        return None

    node_type = data.get("@type")
    types = node_type if isinstance(node_type, list) else [node_type]
    if "Product" in types:
        return data
    if "@graph" in data:
        return _find_product_node(data["@graph"])
    return None
