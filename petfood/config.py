"""Configuration and constants for the catalog pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from dotenv import load_dotenv

__all__ = [
    "BASE_URL",
    "SOURCE_NAME",
    "CATEGORY_URLS",
    "ALLOWED_DOMAINS",
    "HEADERS",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "MAX_REDIRECTS",
    "CONCURRENCY_LIMIT",
    "BATCH_DELAY",
    "PRICE_UPDATE_DELAY",
    "DEFAULT_MAX_PRODUCTS",
    "MIN_PLAUSIBLE_PRICE",
    "MAX_PLAUSIBLE_PRICE",
    "SNAPSHOT_PATH",
    "SNAPSHOT_VERSION",
    "PRICE_DISCLAIMER",
    "BRAND_COLORS",
    "DEFAULT_BRAND_COLOR",
    "FALLBACK_PRICE_RANGES",
    "RETAILER_URLS",
    "PRODUCT_MAPPINGS",
    "CatalogConfig",
    "default_catalog_config",
]

_PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

BASE_URL = "https://www.1800petmeds.com"
SOURCE_NAME = "1800petmeds.com"

# Category listing pages scraped for each species
CATEGORY_URLS: Dict[str, str] = {
    "dog": "https://www.1800petmeds.com/category/dog/food-c00005",
    "cat": "https://www.1800petmeds.com/category/cat/food-c00010",
}

# Domains product links may point to
ALLOWED_DOMAINS = frozenset({
    "www.1800petmeds.com",
    "1800petmeds.com",
    "www.wag.com",
    "wag.com",
})

# Browser-like headers to avoid trivial bot blocking
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

# Hard per-attempt timeout (seconds)
REQUEST_TIMEOUT = float(os.getenv("PETFOOD_REQUEST_TIMEOUT", "30"))

# Retry settings for network-level failures
MAX_RETRIES = int(os.getenv("PETFOOD_MAX_RETRIES", "3"))
RETRY_DELAY = 1.0  # Fixed delay between attempts (seconds)
MAX_REDIRECTS = 10

# Batch orchestration
CONCURRENCY_LIMIT = 5  # Concurrent product fetches per batch
BATCH_DELAY = 1.0  # Pause between batches (seconds)

# Price reconciler rate limit between entries (seconds)
PRICE_UPDATE_DELAY = float(os.getenv("PETFOOD_PRICE_UPDATE_DELAY", "2.0"))

DEFAULT_MAX_PRODUCTS = int(os.getenv("PETFOOD_MAX_PRODUCTS", "30"))

# Prices outside this open interval are treated as noise
MIN_PLAUSIBLE_PRICE = 5.0
MAX_PLAUSIBLE_PRICE = 500.0

# Output
SNAPSHOT_PATH = os.getenv("PETFOOD_SNAPSHOT_PATH", "data/products.json")
SNAPSHOT_VERSION = "2.0"
PRICE_DISCLAIMER = (
    "Prices are estimates based on available data and may vary by location, "
    "retailer, and current promotions. Always consult your veterinarian and "
    "check with retailers for current pricing."
)


# =============================================================================
# Fallback tables
# =============================================================================

BRAND_COLORS: Dict[str, str] = {
    "Hill's Prescription Diet": "#2E7D32",
    "Royal Canin Veterinary Diet": "#FF6B35",
    "Purina Pro Plan Veterinary Diets": "#1976D2",
    "Blue Buffalo": "#0D47A1",
    "Wellness": "#388E3C",
}
DEFAULT_BRAND_COLOR = "#87A96B"

# Synthesized price bounds per species (inclusive)
FALLBACK_PRICE_RANGES: Dict[str, Tuple[int, int]] = {
    "dog": (50, 150),
    "cat": (40, 120),
}

# Retailer product page templates, keyed by source name
RETAILER_URLS: Dict[str, str] = {
    "1800petmeds": "https://www.1800petmeds.com/{slug}",
    "wag": "https://www.wag.com/{slug}",
}

# Catalog entry id -> retailer slugs
PRODUCT_MAPPINGS: Dict[str, Dict[str, str]] = {
    # Hill's Prescription Diet
    "hills-kd-dog-dry": {
        "1800petmeds": "hills-prescription-diet-k-d-kidney-care-dry-dog-food",
        "wag": "hills-prescription-diet-kd-kidney-care-dry-dog-food",
    },
    "hills-kd-dog-wet": {
        "1800petmeds": "hills-prescription-diet-k-d-kidney-care-canned-dog-food",
        "wag": "hills-prescription-diet-kd-kidney-care-wet-dog-food",
    },
    "hills-wd-dog-dry": {
        "1800petmeds": "hills-prescription-diet-w-d-multi-benefit-dry-dog-food",
        "wag": "hills-prescription-diet-wd-weight-management-dry-dog-food",
    },
    "hills-id-dog-dry": {
        "1800petmeds": "hills-prescription-diet-i-d-digestive-care-dry-dog-food",
        "wag": "hills-prescription-diet-id-digestive-care-dry-dog-food",
    },
    "hills-zd-dog-dry": {
        "1800petmeds": "hills-prescription-diet-z-d-skin-food-sensitivities-dry-dog-food",
        "wag": "hills-prescription-diet-zd-food-sensitivities-dry-dog-food",
    },
    "hills-cd-cat-dry": {
        "1800petmeds": "hills-prescription-diet-c-d-multicare-urinary-care-dry-cat-food",
        "wag": "hills-prescription-diet-cd-multicare-urinary-care-dry-cat-food",
    },
    "hills-yd-cat-dry": {
        "1800petmeds": "hills-prescription-diet-y-d-thyroid-care-dry-cat-food",
        "wag": "hills-prescription-diet-yd-thyroid-care-dry-cat-food",
    },
    # Royal Canin
    "rc-renal-dog-dry": {
        "1800petmeds": "royal-canin-veterinary-diet-renal-support-a-dry-dog-food",
        "wag": "royal-canin-veterinary-diet-renal-support-dry-dog-food",
    },
    "rc-urinary-dog-dry": {
        "1800petmeds": "royal-canin-veterinary-diet-urinary-so-dry-dog-food",
        "wag": "royal-canin-veterinary-diet-urinary-so-dry-dog-food",
    },
    # Purina Pro Plan
    "ppvd-en-dog-dry": {
        "1800petmeds": "purina-pro-plan-veterinary-diets-en-gastroenteric-dry-dog-food",
        "wag": "purina-pro-plan-veterinary-diets-en-gastroenteric-dry-dog-food",
    },
    "ppvd-om-dog-dry": {
        "1800petmeds": "purina-pro-plan-veterinary-diets-om-overweight-management-dry-dog-food",
        "wag": "purina-pro-plan-veterinary-diets-om-overweight-management-dry-dog-food",
    },
}


def _freeze(table: Mapping) -> Mapping:
    return MappingProxyType(dict(table))


@dataclass(frozen=True)
class CatalogConfig:
    """Immutable fallback tables handed to the normalizer and reconciler.

    Tests build their own instance instead of patching module constants.
    """

    brand_colors: Mapping[str, str] = field(default_factory=lambda: _freeze(BRAND_COLORS))
    default_brand_color: str = DEFAULT_BRAND_COLOR
    price_ranges: Mapping[str, Tuple[int, int]] = field(
        default_factory=lambda: _freeze(FALLBACK_PRICE_RANGES)
    )
    product_mappings: Mapping[str, Mapping[str, str]] = field(
        default_factory=lambda: _freeze({k: _freeze(v) for k, v in PRODUCT_MAPPINGS.items()})
    )
    retailer_urls: Mapping[str, str] = field(default_factory=lambda: _freeze(RETAILER_URLS))
    source: str = SOURCE_NAME
    home_url: str = BASE_URL
    version: str = SNAPSHOT_VERSION
    price_disclaimer: str = PRICE_DISCLAIMER


def default_catalog_config() -> CatalogConfig:
    """Get the catalog configuration built from the module tables."""
    return CatalogConfig()
