"""Command-line interface for the catalog pipeline."""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

__all__ = ["main", "parse_args", "show_stats"]

from petfood.config import (
    CATEGORY_URLS,
    DEFAULT_MAX_PRODUCTS,
    SNAPSHOT_PATH,
)
from petfood.logging_config import setup_logging
from petfood.pipeline import run_full_update_sync
from petfood.prices import update_prices_sync
from petfood.scraper import scrape_one
from petfood.snapshot import export_snapshot_to_csv, load_snapshot


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Veterinary pet food catalog scraper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full update of both categories (30 products each)
  python -m petfood.cli

  # Dog foods only, up to 10 products, without touching the snapshot
  python -m petfood.cli --category dog --max-products 10 --no-save

  # Refresh retailer prices for mapped products in the existing snapshot
  python -m petfood.cli --update-prices

  # Inspect what the extractors read from one product page
  python -m petfood.cli --scrape-one https://www.1800petmeds.com/...

  # Export the snapshot to CSV
  python -m petfood.cli --export-csv data/products.csv

  # Show snapshot statistics
  python -m petfood.cli --stats
        """,
    )

    # Scrape options
    parser.add_argument(
        "--category",
        choices=list(CATEGORY_URLS.keys()),
        help=f"Scrape only this category (default: all). Choices: {list(CATEGORY_URLS.keys())}",
    )
    parser.add_argument(
        "--max-products",
        type=int,
        default=DEFAULT_MAX_PRODUCTS,
        help=f"Maximum product links per category (default: {DEFAULT_MAX_PRODUCTS})",
    )
    parser.add_argument(
        "--force-update",
        action="store_true",
        help="Force a full update",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Scrape and normalize but don't write the snapshot",
    )

    # Storage
    parser.add_argument(
        "--snapshot",
        default=SNAPSHOT_PATH,
        help=f"Snapshot JSON path (default: {SNAPSHOT_PATH})",
    )

    # Other operations
    parser.add_argument(
        "--update-prices",
        action="store_true",
        help="Reconcile retailer prices for the existing snapshot and exit",
    )
    parser.add_argument(
        "--scrape-one",
        metavar="URL",
        help="Scrape a single product page and print the extracted record",
    )
    parser.add_argument(
        "--export-csv",
        metavar="PATH",
        help="Export the snapshot to a CSV file",
    )

    # Info commands
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show snapshot statistics and exit",
    )
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="List available categories and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output to the console",
    )

    return parser.parse_args(argv)


def show_stats(snapshot_path: str) -> None:
    """Display snapshot statistics."""
    snapshot = load_snapshot(snapshot_path)

    print(f"\n{'='*50}")
    print(f"Snapshot: {snapshot_path}")
    print(f"{'='*50}")

    if snapshot is None:
        print("\nNo snapshot yet")
        print()
        return

    print(f"\nTotal products: {snapshot.total_products}")
    print(f"Last updated: {snapshot.last_updated}")
    if snapshot.last_price_update:
        print(f"Last price update: {snapshot.last_price_update}")

    print("\nProducts by category:")
    for category in CATEGORY_URLS.keys():
        print(f"  {category}: {snapshot.categories.get(category, 0)}")

    synthetic = sum(1 for e in snapshot.products if e.price.synthetic)
    print(f"\nPlaceholder prices: {synthetic}")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    # Handle info commands
    if args.list_categories:
        print("Available categories:")
        for key, url in CATEGORY_URLS.items():
            print(f"  {key}: {url}")
        return 0

    if args.stats:
        show_stats(args.snapshot)
        return 0

    if args.export_csv:
        snapshot = load_snapshot(args.snapshot)
        if snapshot is None:
            print(f"No snapshot at {args.snapshot}")
            return 1
        export_snapshot_to_csv(snapshot, args.export_csv, species=args.category)
        return 0

    if args.scrape_one:
        product = asyncio.run(scrape_one(args.scrape_one))
        print(json.dumps(product.to_dict(), indent=2, ensure_ascii=False))
        return 0

    if args.update_prices:
        stats = update_prices_sync(args.snapshot)
        print(f"\nPrice update: {stats['updated']} updated, {stats['unchanged']} unchanged, "
              f"{stats['errors']} errors ({stats['processed']} processed)")
        return 0

    # Full update
    result = run_full_update_sync(
        category=args.category,
        max_products=args.max_products,
        force_update=args.force_update,
        save_to_file=not args.no_save,
        snapshot_path=args.snapshot,
    )

    if not result.success:
        print(f"\n{result.error}: {result.details}")
        return 1

    stats = result.statistics
    print(f"\nProducts: {stats['totalProducts']} "
          f"(dog: {stats['dogProducts']}, cat: {stats['catProducts']})")
    print(f"Processing time: {stats['processingTimeMs']} ms")
    if not args.no_save:
        print(f"Snapshot saved to: {args.snapshot}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
