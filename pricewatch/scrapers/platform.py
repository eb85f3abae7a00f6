"""Platform classifier: picks the scraping strategy for a competitor URL."""

from urllib.parse import urlparse

from pricewatch.scrapers.base import ScrapeStrategy

PLATFORM_HOST_SUFFIXES = ("myshopify.com",)
PLATFORM_PATH_MARKERS = ("/collections", "/products")


def classify(url: str) -> ScrapeStrategy:
    """Classify a URL as a platform-JSON storefront or a generic site.

    A hosted-storefront hostname, or a path containing ``/collections`` or
    ``/products``, selects PLATFORM_JSON. Anything else, including a URL that
    cannot be parsed, is GENERIC.
    """
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        path = parsed.path.lower()
    except (ValueError, AttributeError, TypeError):
        return ScrapeStrategy.GENERIC

    if not host:
        return ScrapeStrategy.GENERIC
    if host.endswith(PLATFORM_HOST_SUFFIXES):
        return ScrapeStrategy.PLATFORM_JSON
    if any(marker in path for marker in PLATFORM_PATH_MARKERS):
        return ScrapeStrategy.PLATFORM_JSON
    return ScrapeStrategy.GENERIC
