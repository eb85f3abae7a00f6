"""Scraping strategy implementations."""

from pricewatch.scrapers.adapters.detail_page import DetailPageScraper
from pricewatch.scrapers.adapters.generic_listing import GenericListingScraper
from pricewatch.scrapers.adapters.platform_json import PlatformJsonScraper

__all__ = [
    "DetailPageScraper",
    "GenericListingScraper",
    "PlatformJsonScraper",
]
