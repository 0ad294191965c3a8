"""Normalize per-category scrape results into a catalog snapshot."""

import base64
import random
from html import escape
from typing import Any, Dict, List, Optional, Sequence

from petfood.config import CatalogConfig, default_catalog_config
from petfood.logging_config import get_logger
from petfood.models import (
    CatalogEntry,
    CatalogSnapshot,
    ExtractedProduct,
    PriceInfo,
    utc_timestamp,
)

__all__ = [
    "AggregationError",
    "SYNTHETIC_PRICE_NOTE",
    "generate_placeholder_image",
    "synthesize_price",
    "default_feeding_guide",
    "normalize_products",
    "normalize",
]

logger = get_logger("normalize")

SYNTHETIC_PRICE_NOTE = (
    "No retailer price found - placeholder estimate, not an observed price"
)

_SPECIES_ICONS = {"dog": "🐕", "cat": "🐱"}

_PLACEHOLDER_SVG = """<svg width="300" height="240" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="bg" x1="0%" y1="0%" x2="100%" y2="100%">
      <stop offset="0%" style="stop-color:#F5E6D3;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#FEFEFE;stop-opacity:1" />
    </linearGradient>
  </defs>
  <rect width="300" height="240" fill="url(#bg)"/>
  <circle cx="150" cy="80" r="35" fill="{color}" opacity="0.9"/>
  <text x="150" y="90" text-anchor="middle" fill="white" font-family="Arial, sans-serif" font-size="24" font-weight="bold">{icon}</text>
  <text x="150" y="130" text-anchor="middle" fill="#3C2415" font-family="Arial, sans-serif" font-size="16" font-weight="600">{brand}</text>
  <text x="150" y="155" text-anchor="middle" fill="#2D5016" font-family="Arial, sans-serif" font-size="14" font-weight="500">{food_type} FOOD</text>
  <text x="150" y="180" text-anchor="middle" fill="{color}" font-family="Arial, sans-serif" font-size="12" font-weight="500">VETERINARY DIET</text>
  <text x="150" y="200" text-anchor="middle" fill="#87A96B" font-family="Arial, sans-serif" font-size="11">{species} NUTRITION</text>
</svg>"""


class AggregationError(Exception):
    """Raised when no category produced a scrape result at all."""


def generate_placeholder_image(
    species: str,
    food_type: str,
    brand: str,
    config: Optional[CatalogConfig] = None,
) -> str:
    """Build an SVG data URI standing in for a missing product photo.

    The output depends only on the arguments and the colour table, so the
    same product always gets the same placeholder.
    """
    config = config or default_catalog_config()
    color = config.brand_colors.get(brand, config.default_brand_color)
    brand_short = brand.split(" ")[0] if brand else ""

    svg = _PLACEHOLDER_SVG.format(
        color=color,
        icon=_SPECIES_ICONS.get(species, "🐾"),
        brand=escape(brand_short),
        food_type=escape((food_type or "dry").upper()),
        species=escape(species.upper()),
    )
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def synthesize_price(
    species: str,
    rng: random.Random,
    config: Optional[CatalogConfig] = None,
) -> PriceInfo:
    """Placeholder price for a product nothing could be scraped for.

    Always flagged ``synthetic`` so consumers can tell it from real data.
    """
    config = config or default_catalog_config()
    low, high = config.price_ranges[species]
    return PriceInfo(
        estimate=float(rng.randint(low, high)),
        note=SYNTHETIC_PRICE_NOTE,
        synthetic=True,
    )


def default_feeding_guide(species: str) -> str:
    return (
        "Consult your veterinarian for precise feeding amounts based on "
        f"your {species}'s weight, age, and activity level."
    )


def _to_entry(
    product: ExtractedProduct,
    entry_id: str,
    species: str,
    rng: random.Random,
    config: CatalogConfig,
) -> CatalogEntry:
    food_type = product.type if product.type in ("dry", "wet") else "dry"
    brand = product.brand or ""
    return CatalogEntry(
        id=entry_id,
        source_id=product.id,
        brand=brand,
        name=product.name or "",
        description=product.description,
        species=species,
        targeted_conditions=list(product.targeted_conditions),
        type=food_type,
        bag_sizes=list(product.bag_sizes),
        features=list(product.features),
        analysis=dict(product.nutritional_analysis),
        feeding_guide=product.feeding_guide or default_feeding_guide(species),
        image=product.image or generate_placeholder_image(species, food_type, brand, config),
        price=product.price or synthesize_price(species, rng, config),
        link=product.link or config.home_url,
    )


def normalize_products(
    products_by_species: Sequence[tuple],
    config: Optional[CatalogConfig] = None,
    rng: Optional[random.Random] = None,
) -> List[CatalogEntry]:
    """Assign ``product-<n>`` ids across species lists in the given order.

    Args:
        products_by_species: (species, products) pairs; ids run through
            them in order starting at 1
    """
    config = config or default_catalog_config()
    rng = rng or random.Random()
    entries: List[CatalogEntry] = []
    counter = 1

    for species, products in products_by_species:
        for product in products or []:
            if not product.is_usable:
                continue
            entries.append(_to_entry(product, f"product-{counter}", species, rng, config))
            counter += 1

    return entries


def normalize(
    dog_products: Optional[Sequence[ExtractedProduct]],
    cat_products: Optional[Sequence[ExtractedProduct]],
    config: Optional[CatalogConfig] = None,
    rng: Optional[random.Random] = None,
    scrape_metadata: Optional[Dict[str, Any]] = None,
) -> CatalogSnapshot:
    """Merge dog and cat scrape results into a new snapshot.

    A list of ``None`` marks a category whose scrape failed. One failed or
    empty category still yields a snapshot of the other; only when both
    failed is :class:`AggregationError` raised.
    """
    if dog_products is None and cat_products is None:
        raise AggregationError("Failed to scrape product data from both categories")

    config = config or default_catalog_config()
    entries = normalize_products(
        [("dog", dog_products), ("cat", cat_products)], config=config, rng=rng
    )

    counts = {
        "dog": sum(1 for e in entries if e.species == "dog"),
        "cat": sum(1 for e in entries if e.species == "cat"),
    }
    synthetic = sum(1 for e in entries if e.price.synthetic)
    if synthetic:
        logger.info(f"{synthetic} of {len(entries)} products use a placeholder price")

    return CatalogSnapshot(
        products=entries,
        last_updated=utc_timestamp(),
        categories=counts,
        source=config.source,
        price_disclaimer=config.price_disclaimer,
        version=config.version,
        scrape_metadata=scrape_metadata or {},
    )
