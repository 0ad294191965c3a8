"""Tests for URL resolution and validation."""

import pytest

from petfood.url_validation import (
    URLValidationError,
    is_safe_url,
    product_id_from_url,
    resolve_url,
    sanitize_url,
    validate_url,
)

BASE = "https://www.1800petmeds.com/category/dog/food-c00005"


class TestResolveUrl:
    """Test href resolution."""

    @pytest.mark.parametrize("href,expected", [
        ("/hills-kd.html", "https://www.1800petmeds.com/hills-kd.html"),
        ("//cdn.example.com/kd.jpg", "https://cdn.example.com/kd.jpg"),
        ("https://www.wag.com/kd", "https://www.wag.com/kd"),
        ("kd.html", "https://www.1800petmeds.com/category/dog/kd.html"),
        ("", ""),
    ])
    def test_resolve(self, href, expected):
        assert resolve_url(href, BASE) == expected

    def test_sanitize_strips_control_characters(self):
        assert sanitize_url("  https://www.1800petmeds.com/a\x00b%00 ") == "https://www.1800petmeds.com/ab"


class TestValidateUrl:
    """Test URL safety checks."""

    def test_allowed_domain(self):
        url = "https://www.1800petmeds.com/hills-kd.html"

        assert validate_url(url) == url

    @pytest.mark.parametrize("url", [
        "",
        "javascript:alert(1)",
        "ftp://www.1800petmeds.com/file",
        "https://evil.example.com/dog-food",
        "https://www.1800petmeds.com/../etc/passwd",
    ])
    def test_rejected(self, url):
        with pytest.raises(URLValidationError):
            validate_url(url)

    def test_empty_allowed_set_means_any_domain(self):
        assert is_safe_url("https://cdn.example.com/kd.jpg", allowed_domains=set())
        assert not is_safe_url("https://cdn.example.com/kd.jpg")

    def test_require_https(self):
        with pytest.raises(URLValidationError):
            validate_url("http://www.1800petmeds.com/", require_https=True)


class TestProductIdFromUrl:
    """Test product slugs."""

    @pytest.mark.parametrize("url,expected", [
        ("https://www.1800petmeds.com/hills-kd-dry-dog-food-product.html", "hills-kd-dry-dog-food"),
        ("https://www.1800petmeds.com/royal-canin-renal.html", "royal-canin-renal"),
        ("https://www.wag.com/kd-dog/", "kd-dog"),
        ("https://www.1800petmeds.com/", None),
        ("", None),
    ])
    def test_slug(self, url, expected):
        assert product_id_from_url(url) == expected
