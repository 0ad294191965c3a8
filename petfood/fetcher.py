"""Page fetching with retry, redirect following and a hard timeout."""

import asyncio
from typing import Optional
from urllib.parse import urljoin

import httpx

from petfood.config import (
    HEADERS,
    MAX_REDIRECTS,
    MAX_RETRIES,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
)
from petfood.logging_config import get_logger

__all__ = [
    "FetchError",
    "TransportError",
    "FetchTimeoutError",
    "HttpError",
    "create_client",
    "fetch_page",
]

logger = get_logger("fetcher")


class FetchError(Exception):
    """Base class for page fetch failures."""


class TransportError(FetchError):
    """DNS or connection failure that persisted through all retries."""


class FetchTimeoutError(FetchError):
    """A single attempt exceeded the hard timeout."""


class HttpError(FetchError):
    """Server answered with a status that is neither success nor a redirect."""

    def __init__(self, status: int, url: str, reason: str = ""):
        self.status = status
        self.url = url
        message = f"HTTP {status}"
        if reason:
            message += f": {reason}"
        super().__init__(f"{message} ({url})")


def create_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Create an AsyncClient with browser-like headers.

    Redirects are left to ``fetch_page`` so that they share its retry budget.
    """
    return httpx.AsyncClient(
        headers=HEADERS,
        follow_redirects=False,
        timeout=REQUEST_TIMEOUT,
        transport=transport,
    )


async def _get_once(client: httpx.AsyncClient, url: str, timeout: float) -> httpx.Response:
    try:
        return await asyncio.wait_for(client.get(url), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchTimeoutError(f"Request timeout after {timeout:g}s: {url}") from e


async def fetch_page(
    url: str,
    retries: int = MAX_RETRIES,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = REQUEST_TIMEOUT,
    retry_delay: float = RETRY_DELAY,
    _redirects: int = 0,
) -> str:
    """Fetch a page's text.

    Args:
        url: Absolute URL to fetch
        retries: Extra attempts after a network error or timeout
        client: Shared AsyncClient (a temporary one is created if omitted)
        timeout: Hard limit for each attempt, in seconds
        retry_delay: Fixed pause between attempts, in seconds

    Returns:
        Response body as text

    Raises:
        HttpError: Non-success status, or too many redirects
        TransportError: Network failure after all retries
        FetchTimeoutError: Last attempt timed out
    """
    if client is None:
        async with create_client() as own_client:
            return await fetch_page(url, retries, own_client, timeout, retry_delay, _redirects)

    attempt = 0
    while True:
        try:
            response = await _get_once(client, url, timeout)
            break
        except (httpx.TransportError, FetchTimeoutError) as e:
            if attempt >= retries:
                logger.error(f"Giving up on {url} after {attempt + 1} attempts: {e}")
                if isinstance(e, FetchTimeoutError):
                    raise
                raise TransportError(f"Failed to fetch {url}: {e}") from e
            attempt += 1
            logger.warning(f"Retrying request to {url} (retry {attempt}/{retries}): {e}")
            await asyncio.sleep(retry_delay)

    status = response.status_code
    if 200 <= status < 300:
        return response.text

    location = response.headers.get("location")
    if 300 <= status < 400 and location:
        if _redirects >= MAX_REDIRECTS:
            raise HttpError(status, url, f"more than {MAX_REDIRECTS} redirects")
        target = urljoin(url, location)
        logger.debug(f"Following {status} redirect {url} -> {target}")
        return await fetch_page(target, retries, client, timeout, retry_delay, _redirects + 1)

    raise HttpError(status, url, response.reason_phrase)
