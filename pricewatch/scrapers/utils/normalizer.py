"""Price, text and URL normalization for scraped listings."""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional
from urllib.parse import parse_qs, urlencode, urljoin, urlparse, urlunparse

from pricewatch.config import settings

# Checked in order; multi-character symbols first so "Kč" is not read as a stray letter.
CURRENCY_SYMBOLS = (
    ("Kč", "CZK"),
    ("zł", "PLN"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("$", "USD"),
)

CURRENCY_CODES = ("USD", "EUR", "GBP", "CZK", "PLN", "CAD", "AUD")

_PRICE_LIKE_NAME = re.compile(r"^\s*(?:[$€£]|Kč|zł)?\s*\d+(?:[.,]\d+)*\s*(?:[$€£]|Kč|zł)?\s*$")
_WHITESPACE = re.compile(r"\s+")

TRACKING_PARAMS = frozenset([
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "ref",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
])


@dataclass(frozen=True)
class ParsedPrice:
    """Result of price parsing. ``amount`` is None when nothing parseable was found."""

    amount: Optional[Decimal]
    currency: str


class PriceNormalizer:
    """Locale-tolerant price parsing.

    Handles both separator conventions:
    - "$1,299.50" -> 1299.50 USD
    - "1.299,50 €" -> 1299.50 EUR
    - "12,50 €" -> 12.50 EUR
    - "1 299 Kč" -> 1299 CZK
    """

    @staticmethod
    def detect_currency(raw: str) -> str:
        for symbol, code in CURRENCY_SYMBOLS:
            if symbol in raw:
                return code
        upper = raw.upper()
        for code in CURRENCY_CODES:
            if code in upper:
                return code
        return settings.DEFAULT_CURRENCY

    @staticmethod
    def clean_price_string(raw: str) -> Optional[Decimal]:
        """Parse a price string into a Decimal.

        Only digits, ``,``, ``.`` and ``-`` are kept. When both separators are
        present the later one is the decimal point; a lone comma is a decimal
        point. A price range ("10.00 - 12.00") yields its lower bound.

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None

        cleaned = re.sub(r"[^\d,.\-]", "", raw)
        if not cleaned:
            return None

        # Range: keep the first bound, preserving a leading minus sign
        if "-" in cleaned[1:]:
            cleaned = cleaned[0] + cleaned[1:].split("-", 1)[0]

        has_comma = "," in cleaned
        has_dot = "." in cleaned
        if has_comma and has_dot:
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif has_comma:
            cleaned = cleaned.replace(",", ".")

        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None


def parse_price(raw: Optional[str]) -> ParsedPrice:
    """Parse free-form price text into an amount and an ISO currency code.

    Unparseable or empty text yields ``amount=None`` (never zero).
    """
    if not raw:
        return ParsedPrice(amount=None, currency=settings.DEFAULT_CURRENCY)
    return ParsedPrice(
        amount=PriceNormalizer.clean_price_string(raw),
        currency=PriceNormalizer.detect_currency(raw),
    )


def looks_like_price(name: Optional[str]) -> bool:
    """True when a scraped "name" is really just a price (e.g. "$ 19.99")."""
    if not name:
        return False
    return bool(_PRICE_LIKE_NAME.match(name))


def clean_text(value: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def extract_domain(url: str) -> Optional[str]:
    """Hostname of a URL without a leading ``www.``."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def url_origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def absolute_url(page_url: str, href: Optional[str]) -> Optional[str]:
    """Resolve a scraped href against the origin of the page it came from."""
    if not href:
        return None
    href = href.strip()
    if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return None
    return urljoin(url_origin(page_url) + "/", href)


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters and the fragment.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query, keep_blank_values=True)

    filtered_params = {
        k: v for k, v in query_params.items() if k not in TRACKING_PARAMS
    }
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, "")
    )
