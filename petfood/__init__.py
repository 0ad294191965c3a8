"""Veterinary pet food catalog scraper package."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from petfood.config import (
    CATEGORY_URLS,
    SNAPSHOT_PATH,
    CatalogConfig,
    default_catalog_config,
)
from petfood.fetcher import FetchError, HttpError, create_client, fetch_page
from petfood.models import CatalogEntry, CatalogSnapshot, ExtractedProduct, PriceInfo
from petfood.normalize import AggregationError, normalize
from petfood.pipeline import run_full_update, run_full_update_sync
from petfood.prices import reconcile, update_prices
from petfood.scraper import build_product, scrape_category, scrape_one
from petfood.snapshot import load_snapshot, save_snapshot

__all__ = [
    # Version
    "__version__",
    # Config
    "CATEGORY_URLS",
    "SNAPSHOT_PATH",
    "CatalogConfig",
    "default_catalog_config",
    # Models
    "CatalogEntry",
    "CatalogSnapshot",
    "ExtractedProduct",
    "PriceInfo",
    # Errors
    "AggregationError",
    "FetchError",
    "HttpError",
    # Core functions
    "create_client",
    "fetch_page",
    "build_product",
    "scrape_one",
    "scrape_category",
    "normalize",
    "run_full_update",
    "run_full_update_sync",
    "reconcile",
    "update_prices",
    "load_snapshot",
    "save_snapshot",
]
