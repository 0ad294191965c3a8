"""Price reconciliation across retailers for an existing snapshot."""

import asyncio
from typing import Dict, Mapping, Optional, Sequence

import httpx

from petfood.config import (
    PRICE_UPDATE_DELAY,
    SNAPSHOT_PATH,
    CatalogConfig,
    default_catalog_config,
)
from petfood.extractors import RegexRule, is_plausible_price, summarize_prices
from petfood.fetcher import create_client, fetch_page
from petfood.logging_config import get_logger, log_scrape_event
from petfood.models import (
    CatalogEntry,
    Page,
    PriceInfo,
    PriceObservation,
    utc_timestamp,
)
from petfood.snapshot import PathLike, load_snapshot, save_snapshot

__all__ = [
    "RETAILER_PRICE_RULES",
    "find_lowest_price",
    "scrape_retailer_price",
    "retailer_slugs_for",
    "reconcile",
    "apply_observation",
    "update_prices",
    "update_prices_sync",
]

logger = get_logger("prices")

_CENTS = r"([0-9]+\.[0-9]{2})"

# Per-retailer price patterns, tried in order
RETAILER_PRICE_RULES: Mapping[str, Sequence[RegexRule]] = {
    "1800petmeds": (
        RegexRule(r'"price":\s*"' + _CENTS + '"'),
        RegexRule(r'price["\s]*:\s*["\s]*\$?' + _CENTS),
        RegexRule(r"\$\s*" + _CENTS),
    ),
    "wag": (
        RegexRule(r'"price":\s*' + _CENTS),
        RegexRule(r'data-price["\s]*=["\s]*' + _CENTS),
        RegexRule(r"\$\s*" + _CENTS),
    ),
}


def find_lowest_price(html: str, rules: Sequence[RegexRule]) -> Optional[float]:
    """Lowest plausible price from the first rule that finds any."""
    page = Page(html)
    for rule in rules:
        prices = [p for p in map(float, rule.find(page)) if is_plausible_price(p)]
        if prices:
            return min(prices)
    return None


async def scrape_retailer_price(
    retailer: str,
    slug: str,
    client: httpx.AsyncClient,
    config: CatalogConfig,
) -> Optional[float]:
    """Lowest price on one retailer's product page; None on any failure."""
    url = config.retailer_urls[retailer].format(slug=slug)
    try:
        html = await fetch_page(url, client=client)
    except Exception as e:
        logger.error(f"{retailer} scraping error for {slug}: {e}")
        return None

    rules = RETAILER_PRICE_RULES.get(retailer, RETAILER_PRICE_RULES["1800petmeds"])
    price = find_lowest_price(html, rules)
    if price is None:
        logger.info(f"No price found on {url}")
    return price


def retailer_slugs_for(entry: CatalogEntry, config: CatalogConfig) -> Mapping[str, str]:
    """Retailer slugs mapped to an entry, by catalog id then by source slug."""
    mapping = config.product_mappings.get(entry.id)
    if mapping is None and entry.source_id:
        mapping = config.product_mappings.get(entry.source_id)
    return mapping or {}


async def reconcile(
    entry: CatalogEntry,
    client: Optional[httpx.AsyncClient] = None,
    config: Optional[CatalogConfig] = None,
) -> Optional[PriceObservation]:
    """Average the lowest price of every retailer mapped to ``entry``.

    Returns None when the entry has no mapping or no retailer yielded a
    price; the entry's own price is left alone either way.
    """
    config = config or default_catalog_config()
    slugs = {
        retailer: slug
        for retailer, slug in retailer_slugs_for(entry, config).items()
        if retailer in config.retailer_urls
    }
    if not slugs:
        return None

    if client is None:
        async with create_client() as own_client:
            return await reconcile(entry, own_client, config)

    retailers = list(slugs)
    results = await asyncio.gather(
        *(scrape_retailer_price(r, slugs[r], client, config) for r in retailers)
    )
    sources: Dict[str, float] = {r: p for r, p in zip(retailers, results) if p is not None}
    if not sources:
        return None

    average = round(sum(sources.values()) / len(sources), 2)
    return PriceObservation(sources=sources, average=average)


def apply_observation(entry: CatalogEntry, observation: PriceObservation) -> None:
    """Merge a reconciled observation into ``entry.price`` in place."""
    price = entry.price
    if price.synthetic:
        scraped = summarize_prices(list(observation.sources.values())) or PriceInfo()
        price.estimate = scraped.estimate
        price.range = scraped.range
        price.note = scraped.note
        price.synthetic = False
    price.average = observation.average
    price.sources = dict(observation.sources)
    price.last_updated = observation.last_updated


async def update_prices(
    snapshot_path: PathLike = SNAPSHOT_PATH,
    client: Optional[httpx.AsyncClient] = None,
    config: Optional[CatalogConfig] = None,
    delay: float = PRICE_UPDATE_DELAY,
) -> Dict[str, int]:
    """Reconcile prices for every mapped entry of the snapshot on disk.

    Entries are visited one at a time with ``delay`` seconds between
    successive reconciliations. Failures leave that entry's price as it was.

    Returns:
        Counts of processed, updated, unchanged and failed entries
    """
    config = config or default_catalog_config()
    stats = {"processed": 0, "updated": 0, "unchanged": 0, "errors": 0}

    snapshot = load_snapshot(snapshot_path)
    if snapshot is None or not snapshot.products:
        logger.info("No products found to update")
        return stats

    if client is None:
        async with create_client() as own_client:
            return await update_prices(snapshot_path, own_client, config, delay)

    logger.info(f"Starting price update for {len(snapshot.products)} products")
    reconciled_any = False

    for entry in snapshot.products:
        stats["processed"] += 1
        if not retailer_slugs_for(entry, config):
            logger.debug(f"No mapping found for product: {entry.id}")
            stats["unchanged"] += 1
            continue

        if reconciled_any:
            await asyncio.sleep(delay)
        reconciled_any = True

        try:
            observation = await reconcile(entry, client, config)
        except Exception as e:
            logger.error(f"Error updating {entry.id}: {e}")
            stats["errors"] += 1
            continue

        if observation is None:
            logger.info(f"No price data found for {entry.id}")
            stats["unchanged"] += 1
            continue

        apply_observation(entry, observation)
        stats["updated"] += 1
        logger.info(f"Updated pricing for {entry.id}: ${observation.average}")

    snapshot.last_price_update = utc_timestamp()
    save_snapshot(snapshot, snapshot_path)

    log_scrape_event("price_update", {
        "message": f"Price update completed: {stats['updated']} updated, {stats['errors']} errors",
        **stats,
    })
    return stats


def update_prices_sync(snapshot_path: PathLike = SNAPSHOT_PATH, **kwargs) -> Dict[str, int]:
    """Blocking wrapper around :func:`update_prices` for the CLI."""
    return asyncio.run(update_prices(snapshot_path, **kwargs))
