"""Full catalog update: back up, scrape both species, normalize, persist.

A run moves through ``PipelineState`` in order. Anything that goes wrong
before the snapshot is written ends the run in ``FAILED`` and leaves the
previous snapshot in place.
"""

import asyncio
import random
import time
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from petfood.config import (
    CATEGORY_URLS,
    DEFAULT_MAX_PRODUCTS,
    SNAPSHOT_PATH,
    CatalogConfig,
    default_catalog_config,
)
from petfood.fetcher import create_client
from petfood.logging_config import get_logger, log_scrape_event
from petfood.models import CategoryResult, RunResult
from petfood.normalize import AggregationError, normalize
from petfood.scraper import scrape_category_result
from petfood.snapshot import PathLike, backup_snapshot, save_snapshot

__all__ = [
    "PipelineState",
    "run_full_update",
    "run_full_update_sync",
]

logger = get_logger("pipeline")


class PipelineState(str, Enum):
    IDLE = "idle"
    BACKING_UP = "backing_up"
    SCRAPING = "scraping"
    NORMALIZING = "normalizing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def _enter(state: PipelineState, **data: Any) -> PipelineState:
    logger.info(f"Pipeline state -> {state.value}")
    log_scrape_event("pipeline_state", {"state": state.value, **data})
    return state


async def _scrape_safely(
    category: str,
    max_products: int,
    client: httpx.AsyncClient,
    **kwargs: Any,
) -> CategoryResult:
    """Scrape a category, turning a failure into a result with an error."""
    try:
        return await scrape_category_result(category, max_products, client, **kwargs)
    except Exception as e:
        logger.error(f"Error scraping {category} category: {e}")
        return CategoryResult(category=category, error=str(e))


async def run_full_update(
    category: Optional[str] = None,
    max_products: int = DEFAULT_MAX_PRODUCTS,
    force_update: bool = False,
    save_to_file: bool = True,
    snapshot_path: PathLike = SNAPSHOT_PATH,
    client: Optional[httpx.AsyncClient] = None,
    config: Optional[CatalogConfig] = None,
    rng: Optional[random.Random] = None,
    **scrape_kwargs: Any,
) -> RunResult:
    """Scrape fresh data and replace the catalog snapshot.

    Args:
        category: Restrict the run to 'dog' or 'cat' (default: both)
        max_products: Product link cap per category
        force_update: Accepted for callers; every run is a full update
        save_to_file: Write the snapshot, or only return it
        snapshot_path: Snapshot file to replace
        client: Shared AsyncClient (created if omitted)
        config: Fallback tables for normalization
        rng: Random source for placeholder prices

    Returns:
        RunResult with statistics and the snapshot, or the error on failure
    """
    started = time.monotonic()
    parameters = {
        "category": category or "all",
        "maxProducts": max_products,
        "forceUpdate": force_update,
        "saveToFile": save_to_file,
    }

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    if client is None:
        async with create_client() as own_client:
            return await run_full_update(
                category, max_products, force_update, save_to_file, snapshot_path,
                own_client, config, rng, **scrape_kwargs,
            )

    state = _enter(PipelineState.IDLE, **parameters)
    try:
        if category is not None and category not in CATEGORY_URLS:
            raise ValueError(f"Invalid category {category!r}. Use one of {list(CATEGORY_URLS)}")
        categories: List[str] = [category] if category else list(CATEGORY_URLS)

        if save_to_file:
            state = _enter(PipelineState.BACKING_UP)
            backup_snapshot(snapshot_path)

        state = _enter(PipelineState.SCRAPING, categories=categories)
        results = await asyncio.gather(
            *(_scrape_safely(c, max_products, client, **scrape_kwargs) for c in categories)
        )
        by_category: Dict[str, CategoryResult] = {r.category: r for r in results}
        # Every requested category failed: nothing to replace the snapshot with
        if all(r.failed for r in results):
            failures = ", ".join(f"{r.category}: {r.error}" for r in results)
            raise AggregationError(f"Category scraping failed ({failures})")

        state = _enter(PipelineState.NORMALIZING)

        def products_for(species: str):
            result = by_category.get(species)
            if result is None:
                return []
            return None if result.failed else result.products

        snapshot = normalize(
            products_for("dog"),
            products_for("cat"),
            config=config or default_catalog_config(),
            rng=rng,
        )
        for species, result in by_category.items():
            snapshot.scrape_metadata[f"{species}ScrapeResult"] = result.metadata(
                used=snapshot.categories.get(species, 0)
            )

        if save_to_file:
            state = _enter(PipelineState.PERSISTING)
            save_snapshot(snapshot, snapshot_path)

    except Exception as e:
        _enter(PipelineState.FAILED, failed_in=state.value, error=str(e))
        logger.error(f"Database update failed during {state.value}: {e}")
        return RunResult(
            success=False,
            processing_time_ms=elapsed_ms(),
            parameters=parameters,
            error="Database update failed",
            details=str(e),
        )

    statistics = {
        "totalProducts": snapshot.total_products,
        "dogProducts": snapshot.categories.get("dog", 0),
        "catProducts": snapshot.categories.get("cat", 0),
        "processingTimeMs": elapsed_ms(),
        "lastUpdated": snapshot.last_updated,
    }
    _enter(PipelineState.DONE, **statistics)
    return RunResult(
        success=True,
        processing_time_ms=statistics["processingTimeMs"],
        parameters=parameters,
        statistics=statistics,
        snapshot=snapshot,
    )


def run_full_update_sync(**kwargs: Any) -> RunResult:
    """Blocking wrapper around :func:`run_full_update` for the CLI."""
    return asyncio.run(run_full_update(**kwargs))
