"""Which competitor URLs are accepted."""

from urllib.parse import urlparse

from pricewatch.core.exceptions import ValidationError
from pricewatch.scrapers.utils.normalizer import extract_domain

# Marketplace hosts that forbid scraping and defeat the listing parsers
BLOCKED_HOST_LABELS = ("amazon", "amzn")


def is_amazon_url(url: str) -> bool:
    domain = extract_domain(url or "")
    if not domain:
        return False
    labels = domain.split(".")
    return any(label in BLOCKED_HOST_LABELS for label in labels[:-1])


def validate_competitor_url(url: str) -> str:
    """Return the trimmed URL or raise ValidationError.

    Only absolute http(s) URLs with a host are accepted, and Amazon is refused.
    """
    url = (url or "").strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise ValidationError(f"Invalid URL: {url}")

    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValidationError(f"Invalid URL: {url}")
    if is_amazon_url(url):
        raise ValidationError("Amazon is not supported.")
    return url
