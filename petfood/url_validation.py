"""URL resolution and validation utilities.

Scraped hrefs arrive relative, protocol-relative, or absolute; everything
that leaves this module is an absolute http(s) URL.
"""

import re
from typing import Optional, Set
from urllib.parse import urljoin, urlparse

from petfood.config import ALLOWED_DOMAINS, BASE_URL

__all__ = [
    "URLValidationError",
    "sanitize_url",
    "resolve_url",
    "validate_url",
    "is_safe_url",
    "product_id_from_url",
]


class URLValidationError(Exception):
    """Raised when URL validation fails."""
    pass


# Dangerous URL schemes to reject
DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}

# Trailing path segment of a product page, without "-product" or ".html"
_SLUG_RE = re.compile(r"/([^/]+?)(?:-product)?(?:\.html?)?$", re.IGNORECASE)


def sanitize_url(url: str) -> str:
    """Sanitize a URL by stripping whitespace and control characters."""
    if not url:
        return ""

    url = url.strip()
    url = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)
    return url.replace("%00", "")


def resolve_url(href: str, base_url: str = BASE_URL) -> str:
    """Resolve a scraped href against the page it was found on.

    Protocol-relative links ("//cdn...") get https; root-relative and
    relative links are joined onto ``base_url``.
    """
    href = sanitize_url(href)
    if not href:
        return ""
    if href.startswith("//"):
        return "https:" + href
    return urljoin(base_url, href)


def validate_url(
    url: str,
    allowed_domains: Optional[Set[str]] = None,
    require_https: bool = False,
) -> str:
    """Validate a URL for safety.

    Args:
        url: URL to validate
        allowed_domains: Set of allowed domains (default: ALLOWED_DOMAINS).
            Pass an empty set to allow any domain.
        require_https: Whether to require HTTPS scheme

    Returns:
        Validated URL

    Raises:
        URLValidationError: If URL is invalid or from untrusted domain
    """
    if not url:
        raise URLValidationError("URL is empty")

    url = sanitize_url(url)
    parsed = urlparse(url)

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if require_https and scheme != "https":
        raise URLValidationError(f"URL must use HTTPS, got: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme!r}")

    domain = (parsed.hostname or "").lower()
    if not domain:
        raise URLValidationError("URL has no domain")

    domains_to_check = ALLOWED_DOMAINS if allowed_domains is None else allowed_domains
    if domains_to_check and domain not in domains_to_check:
        raise URLValidationError(f"URL domain '{domain}' not in allowed domains")

    url_lower = url.lower()
    for pattern in (r"\.\./", r"%2e%2e", r"<script", r"javascript:"):
        if re.search(pattern, url_lower):
            raise URLValidationError(f"URL contains suspicious pattern: {pattern}")

    return url


def is_safe_url(url: str, allowed_domains: Optional[Set[str]] = None) -> bool:
    """Check if a URL is safe without raising exceptions."""
    try:
        validate_url(url, allowed_domains=allowed_domains)
        return True
    except URLValidationError:
        return False


def product_id_from_url(url: str) -> Optional[str]:
    """Derive a product slug from its page URL.

    >>> product_id_from_url("https://www.1800petmeds.com/hills-kd-dry-dog-food-product.html")
    'hills-kd-dry-dog-food'
    """
    if not url:
        return None
    path = urlparse(sanitize_url(url)).path.rstrip("/")
    match = _SLUG_RE.search(path)
    if not match:
        return None
    return match.group(1) or None
