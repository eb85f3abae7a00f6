"""Competitor scraping: URL classification, strategies and dispatch."""

from pricewatch.scrapers.base import BaseScraper, RawItem, ScrapeStrategy
from pricewatch.scrapers.platform import classify

__all__ = [
    "BaseScraper",
    "RawItem",
    "ScrapeStrategy",
    "classify",
]
