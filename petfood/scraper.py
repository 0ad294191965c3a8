"""Core scraping logic: product records, category links and batch runs."""

import asyncio
import logging
import re
from typing import Any, Callable, List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from petfood.config import (
    ALLOWED_DOMAINS,
    BATCH_DELAY,
    CATEGORY_URLS,
    CONCURRENCY_LIMIT,
    DEFAULT_MAX_PRODUCTS,
)
from petfood.extractors import (
    extract_bag_sizes,
    extract_brand,
    extract_conditions,
    extract_description,
    extract_feeding_guide,
    extract_features,
    extract_images,
    extract_name,
    extract_nutritional_analysis,
    extract_price,
    infer_food_type,
    infer_species,
)
from petfood.fetcher import create_client, fetch_page
from petfood.logging_config import get_logger, log_scrape_event
from petfood.models import CategoryResult, ExtractedProduct, Page
from petfood.url_validation import (
    URLValidationError,
    product_id_from_url,
    resolve_url,
    sanitize_url,
    validate_url,
)

__all__ = [
    "build_product",
    "scrape_one",
    "extract_product_links",
    "discover_product_links",
    "scrape_product",
    "scrape_links",
    "scrape_category",
    "scrape_category_result",
]

logger = get_logger("scraper")

# Anchor whose visible text mentions dog/cat/pet food
_ANCHOR_RE = re.compile(r'<a[^>]+href="([^"]+)"[^>]*>((?:(?!</a>).)*?)</a>', re.IGNORECASE | re.DOTALL)
_ANCHOR_TEXT_RE = re.compile(r"(?:dog|cat|pet).*?food", re.IGNORECASE | re.DOTALL)
_HREF_RE = re.compile(r'<a[^>]+href="([^"]+)"', re.IGNORECASE)
# Last path segment names food/diet/nutrition
_PRODUCT_PATH_RE = re.compile(r"/[^/]*(?:food|diet|nutrition)[^/]*$", re.IGNORECASE)


def _safe(field_name: str, url: str, func: Callable[[], Any], default: Any) -> Any:
    try:
        return func()
    except Exception as e:
        logger.warning(f"Extraction of {field_name} failed for {url}: {e}")
        return default


def build_product(html: str, url: str) -> ExtractedProduct:
    """Build one product record from a product page.

    Never raises: a field whose extractor fails keeps its unset value, so
    callers always get a (possibly partial) record back.
    """
    link = sanitize_url(url)
    page = Page(html, link)
    product = ExtractedProduct(link=link)

    product.id = _safe("id", link, lambda: product_id_from_url(link), None)
    product.name = _safe("name", link, lambda: extract_name(page), None)
    product.brand = _safe("brand", link, lambda: extract_brand(page, product.name), None)
    product.images = _safe("images", link, lambda: extract_images(page), [])
    product.image = product.images[0] if product.images else None
    product.price = _safe("price", link, lambda: extract_price(page), None)
    product.bag_sizes = _safe("bag_sizes", link, lambda: extract_bag_sizes(page), [])
    product.species = _safe("species", link, lambda: infer_species(page, product.name), "unknown")
    product.type = _safe("type", link, lambda: infer_food_type(page, product.name), "unknown")
    product.targeted_conditions = _safe(
        "targeted_conditions", link, lambda: extract_conditions(page, product.name), []
    )
    product.features = _safe("features", link, lambda: extract_features(page), [])
    product.description = _safe("description", link, lambda: extract_description(page), None)
    product.feeding_guide = _safe("feeding_guide", link, lambda: extract_feeding_guide(page), None)
    product.nutritional_analysis = _safe(
        "nutritional_analysis", link, lambda: extract_nutritional_analysis(page), {}
    )

    return product


async def scrape_one(url: str, client: Optional[httpx.AsyncClient] = None) -> ExtractedProduct:
    """Fetch and build a single product page outside of a batch run.

    Fetch errors propagate to the caller.
    """
    html = await fetch_page(url, client=client)
    return build_product(html, url)


def extract_product_links(html: str, base_url: str, max_links: Optional[int] = None) -> List[str]:
    """Extract candidate product page URLs from a category page.

    Relative links are made absolute, links off the retailer's domains are
    dropped, and order of first appearance is kept.
    """
    candidates: List[str] = []
    for match in _ANCHOR_RE.finditer(html):
        if _ANCHOR_TEXT_RE.search(match.group(2)):
            candidates.append(match.group(1))
    for match in _HREF_RE.finditer(html):
        href = match.group(1)
        if _PRODUCT_PATH_RE.search(urlparse(resolve_url(href, base_url)).path):
            candidates.append(href)

    seen = set()
    links: List[str] = []
    for href in candidates:
        try:
            link = validate_url(resolve_url(href, base_url), allowed_domains=ALLOWED_DOMAINS)
        except URLValidationError as e:
            logger.debug(f"Skipping link {href!r}: {e}")
            continue
        if link in seen:
            continue
        seen.add(link)
        links.append(link)

    return links if max_links is None else links[:max_links]


async def discover_product_links(
    category_url: str,
    max_links: int = DEFAULT_MAX_PRODUCTS,
    client: Optional[httpx.AsyncClient] = None,
) -> List[str]:
    """Fetch a category listing page and return its product links.

    Only the given page is scanned; pagination is not followed. Fetch
    failures propagate.
    """
    html = await fetch_page(category_url, client=client)
    links = extract_product_links(html, category_url, max_links)
    logger.info(f"Found {len(links)} product links on {category_url}")
    return links


async def scrape_product(
    link: str,
    client: Optional[httpx.AsyncClient] = None,
    category: Optional[str] = None,
) -> Optional[ExtractedProduct]:
    """Fetch and build one product; failures are logged and give None."""
    try:
        html = await fetch_page(link, client=client)
        return build_product(html, link)
    except Exception as e:
        logger.error(f"Error scraping product {link}: {e}")
        log_scrape_event("product_error", {
            "url": link,
            "error": str(e),
            "category": category,
        }, level=logging.ERROR)
        return None


async def scrape_links(
    links: Sequence[str],
    client: Optional[httpx.AsyncClient] = None,
    category: Optional[str] = None,
    concurrency: int = CONCURRENCY_LIMIT,
    batch_delay: float = BATCH_DELAY,
) -> List[ExtractedProduct]:
    """Scrape product links in sequential batches of concurrent fetches.

    A batch only starts once every fetch of the previous one has settled.
    Unusable records (no name or no brand) are dropped.
    """
    products: List[ExtractedProduct] = []
    total = len(links)

    for start in range(0, total, concurrency):
        batch = links[start:start + concurrency]
        logger.info(f"  Batch {start // concurrency + 1}: {len(batch)} products ({start + len(batch)}/{total})")

        results = await asyncio.gather(
            *(scrape_product(link, client, category) for link in batch)
        )
        for product in results:
            if product is None:
                continue
            if product.is_usable:
                products.append(product)
            else:
                logger.debug(f"Dropping unusable record {product.link} (name={product.name!r}, brand={product.brand!r})")

        if start + concurrency < total:
            await asyncio.sleep(batch_delay)

    return products


async def scrape_category_result(
    category: str,
    max_products: int = DEFAULT_MAX_PRODUCTS,
    client: Optional[httpx.AsyncClient] = None,
    category_url: Optional[str] = None,
    concurrency: int = CONCURRENCY_LIMIT,
    batch_delay: float = BATCH_DELAY,
) -> CategoryResult:
    """Scrape a category and report how many links were found and used.

    Link discovery failures propagate; per-product failures do not.
    """
    if category_url is None:
        if category not in CATEGORY_URLS:
            raise ValueError(f"Unknown category {category!r}. Available: {list(CATEGORY_URLS)}")
        category_url = CATEGORY_URLS[category]

    if client is None:
        async with create_client() as own_client:
            return await scrape_category_result(
                category, max_products, own_client, category_url, concurrency, batch_delay
            )

    logger.info(f"Scraping category {category}: {category_url}")
    log_scrape_event("category_start", {
        "category": category,
        "url": category_url,
        "max_products": max_products,
    })

    links = await discover_product_links(category_url, max_products, client=client)
    products = await scrape_links(
        links, client, category=category, concurrency=concurrency, batch_delay=batch_delay
    ) if links else []

    logger.info(f"  Category {category} complete: {len(products)} usable of {len(links)} links")
    log_scrape_event("category_complete", {
        "category": category,
        "links_found": len(links),
        "products_scraped": len(products),
    })

    return CategoryResult(category=category, products=products, links_found=len(links))


async def scrape_category(
    category: str,
    max_products: int = DEFAULT_MAX_PRODUCTS,
    client: Optional[httpx.AsyncClient] = None,
    **kwargs: Any,
) -> List[ExtractedProduct]:
    """Scrape up to ``max_products`` usable products from a category.

    Args:
        category: 'dog' or 'cat' (a key of CATEGORY_URLS)
        max_products: Cap on product links taken from the listing page
        client: Shared AsyncClient

    Returns:
        Usable product records; empty when the listing had no links
    """
    result = await scrape_category_result(category, max_products, client, **kwargs)
    return result.products
