"""Ordered extraction rules for HTML listing and product pages.

Rules are plain data: each table is tried top to bottom and the first rule
that yields a usable value wins. Adding support for a new storefront layout
means adding a row, not a code path.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from bs4 import Tag


@dataclass(frozen=True)
class ExtractionRule:
    """Read text (or one attribute) of the first node matching ``selector``.

    A ``selector`` of None targets the context node itself.
    """

    selector: Optional[str]
    attribute: Optional[str] = None

    def extract(self, context: Tag) -> Optional[str]:
        node = context if self.selector is None else context.select_one(self.selector)
        if node is None:
            return None
        if self.attribute:
            value = node.get(self.attribute)
            if isinstance(value, list):
                value = " ".join(value)
        else:
            value = node.get_text(" ", strip=True)
        value = (value or "").strip()
        return value or None


@dataclass(frozen=True)
class DetailRules:
    name: Sequence[ExtractionRule]
    price: Sequence[ExtractionRule]
    currency: Sequence[ExtractionRule] = ()


def first_value(context: Tag, rules: Sequence[ExtractionRule]) -> Optional[str]:
    for rule in rules:
        value = rule.extract(context)
        if value:
            return value
    return None


# --- Listing pages ---------------------------------------------------------

# A page whose markup matches none of these is treated as the end of the listing.
CONTAINER_SELECTORS: Tuple[str, ...] = (
    "[data-product-id]",
    "[data-product]",
    "article.product_pod",
    ".product-item",
    ".product-card",
    ".product-tile",
    ".product-grid-item",
    ".product",
    ".thumbnail",
)

LISTING_NAME_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule(".product-title"),
    ExtractionRule(".product-name"),
    ExtractionRule(".card-title"),
    ExtractionRule("a.title", "title"),
    ExtractionRule("a.title"),
    ExtractionRule("h2 a"),
    ExtractionRule("h3 a[title]", "title"),
    ExtractionRule("h3 a"),
    ExtractionRule("h2"),
    ExtractionRule("h3"),
    ExtractionRule("a[title]", "title"),
    ExtractionRule(None, "data-product-name"),
)

LISTING_URL_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule("a.title[href]", "href"),
    ExtractionRule("a[href]", "href"),
    ExtractionRule(None, "href"),
)

LISTING_PRICE_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule(".price"),
    ExtractionRule(".product-price"),
    ExtractionRule(".price_color"),
    ExtractionRule("[data-price]", "data-price"),
    ExtractionRule("[data-product-price]", "data-product-price"),
    ExtractionRule(".price__current"),
    ExtractionRule("[itemprop=price]", "content"),
    ExtractionRule(None, "data-price"),
)

LISTING_ID_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule(None, "data-product-id"),
    ExtractionRule(None, "data-product"),
    ExtractionRule("[data-product-id]", "data-product-id"),
)


# --- Product detail pages --------------------------------------------------

SITE_DETAIL_RULES: Dict[str, DetailRules] = {
    "webscraper.io": DetailRules(
        name=(
            ExtractionRule(".caption h4 a"),
            ExtractionRule("h4 a.title"),
            ExtractionRule("h4.title"),
        ),
        price=(
            ExtractionRule(".caption h4.price"),
            ExtractionRule(".price"),
        ),
    ),
    "books.toscrape.com": DetailRules(
        name=(ExtractionRule("div.product_main h1"),),
        price=(ExtractionRule("p.price_color"),),
    ),
}

GENERIC_DETAIL_RULES = DetailRules(
    name=(
        ExtractionRule("h1[class*=product]"),
        ExtractionRule("h1[class*=title]"),
        ExtractionRule(".product-title"),
        ExtractionRule(".product-name"),
        ExtractionRule("h1"),
        ExtractionRule("meta[property='og:title']", "content"),
        ExtractionRule("meta[name='twitter:title']", "content"),
    ),
    price=(
        ExtractionRule("[itemprop=price]", "content"),
        ExtractionRule("[itemprop=price]"),
        ExtractionRule(".price"),
        ExtractionRule("[data-price]", "data-price"),
        ExtractionRule(".product-price"),
        ExtractionRule("[data-product-price]", "data-product-price"),
        ExtractionRule("meta[property='product:price:amount']", "content"),
        ExtractionRule("meta[property='og:price:amount']", "content"),
    ),
    currency=(
        ExtractionRule("[itemprop=priceCurrency]", "content"),
        ExtractionRule("meta[property='product:price:currency']", "content"),
        ExtractionRule("meta[property='og:price:currency']", "content"),
    ),
)

BOT_BLOCK_MARKERS: Tuple[str, ...] = (
    "captcha",
    "access denied",
    "verify you are human",
    "please verify",
    "are you a robot",
    "just a moment",
    "checking your browser",
    "cf-browser-verification",
)
