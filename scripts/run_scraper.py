"""Manual scraper runner for testing and debugging storefront parsing.

Shows what a competitor URL scrapes to without touching the database.

Usage:
    python scripts/run_scraper.py --url https://shop.example.com/collections/all
    python scripts/run_scraper.py --url https://books.toscrape.com --limit 5
    python scripts/run_scraper.py --url https://shop.example.com/products/mug --product
"""

import argparse
import asyncio
from decimal import Decimal
from typing import Optional

from pricewatch.scrapers.factory import build_default_factory
from pricewatch.scrapers.platform import classify
from pricewatch.services.staging_service import is_valid_item


async def run_scraper(url: str, limit: int = 10, product: bool = False):
    """Scrape a URL and display the results.

    Args:
        url: Listing root URL, or a single product page with ``product=True``
        limit: Maximum number of items to display (default: 10)
        product: Use the detail-page scraper instead of listing discovery
    """
    factory = build_default_factory()
    mode = "detail page" if product else classify(url).value

    print(f"\n{'='*70}")
    print(f"  Scraping {url}")
    print(f"{'='*70}")
    print(f"  Strategy: {mode}")
    print(f"  Rendering proxy: {'configured' if factory.proxy.is_configured else 'NOT configured'}")
    print(f"{'='*70}\n")

    if product:
        item = await factory.scrape_product_page(url)
        items = [item] if item else []
    else:
        items = await factory.scrape_competitor(url)

    if not items:
        print("No products found.\n")
        return

    valid = [item for item in items if is_valid_item(item)]
    print(f"Found {len(items)} items ({len(valid)} would be staged)\n")

    for i, item in enumerate(items[:limit], 1):
        marker = "" if is_valid_item(item) else "  [rejected]"
        print(f"[{i}] {item.name}{marker}")
        print(f"    Price: {_format_price(item.price, item.currency)}")
        if item.sku:
            print(f"    SKU: {item.sku}")
        print(f"    URL: {item.url[:80]}")
        print()

    priced = [item for item in items if item.price is not None]
    print(f"{'='*70}")
    print(f"  Summary")
    print(f"{'='*70}")
    print(f"  Total items: {len(items)}")
    print(f"  With price: {len(priced)}")
    print(f"  Displayed: {min(limit, len(items))}")
    print(f"{'='*70}\n")


def _format_price(price: Optional[Decimal], currency: str) -> str:
    if price is None:
        return "n/a"
    if currency == "USD":
        return f"${price:,.2f}"
    if currency == "EUR":
        return f"€{price:,.2f}"
    if currency == "GBP":
        return f"£{price:,.2f}"
    return f"{price:,.2f} {currency}"


def main():
    """Parse arguments and run the scraper."""
    parser = argparse.ArgumentParser(
        description="Preview what a competitor URL scrapes to",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_scraper.py --url https://shop.example.com/collections/all
  python scripts/run_scraper.py --url https://books.toscrape.com --limit 5
        """,
    )
    parser.add_argument("--url", required=True, help="Competitor listing or product URL")
    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of items to display (default: 10)",
    )
    parser.add_argument(
        "--product",
        action="store_true",
        help="Treat the URL as a single product page",
    )

    args = parser.parse_args()
    asyncio.run(run_scraper(args.url, args.limit, args.product))


if __name__ == "__main__":
    main()
