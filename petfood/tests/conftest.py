"""Shared sample pages and a mocked HTTP client factory."""

import httpx
import pytest

from petfood.fetcher import create_client

KD_URL = "https://www.1800petmeds.com/hills-kd-dry-dog-food-product.html"
CD_URL = "https://www.1800petmeds.com/hills-cd-dry-cat-food-product.html"

KD_HTML = """<html>
<head>
  <title>Hill's Prescription Diet k/d Kidney Care Dry Dog Food</title>
  <meta name="description" content="Therapeutic dry food for dogs with kidney disease.">
  <meta property="og:image" content="/images/hills-kd.jpg">
</head>
<body>
  <h1 class="product-title">Hill's Prescription Diet k/d Kidney Care Dry Dog Food</h1>
  <div class="sizes">
    <button>8.5 lb bag</button>
    <button>27.5 lb bag</button>
  </div>
  <span class="amount">$52.99</span>
  <span class="amount">$54.99</span>
  <ul>
    <li>Clinically tested nutrition to support kidney function</li>
    <li>Short</li>
  </ul>
  <p>Specially formulated for dogs with kidney disease.</p>
  <table>
    <tr><td>Crude Protein</td><td>14.0%</td></tr>
    <tr><td>Crude Fat</td><td>18.0%</td></tr>
  </table>
  <div class="feeding-guide">Feed 2 cups daily for an adult dog of average size.</div>
</body>
</html>"""

CD_HTML = """<html>
<head><title>Hill's Prescription Diet c/d Multicare Urinary Care Dry Cat Food</title></head>
<body>
  <h1 class="product-title">Hill's Prescription Diet c/d Multicare Urinary Care Dry Cat Food</h1>
  <span class="amount">$45.99</span>
</body>
</html>"""

DOG_LISTING_HTML = """<html><body>
  <a href="/hills-kd-dry-dog-food-product.html">Hill's k/d Dry Dog Food</a>
  <a href="/missing-dog-food-product.html">Discontinued Dog Food</a>
  <a href="/about">About us</a>
</body></html>"""

CAT_LISTING_HTML = """<html><body>
  <a href="/hills-cd-dry-cat-food-product.html">Hill's c/d Dry Cat Food</a>
</body></html>"""


@pytest.fixture
def kd_html():
    return KD_HTML


@pytest.fixture
def cd_html():
    return CD_HTML


@pytest.fixture
def make_client():
    """Build an AsyncClient whose requests are answered by ``handler``."""
    def factory(handler):
        return create_client(transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def catalog_handler():
    """Answer the dog/cat listings and their product pages like the live site."""
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/category/dog/food-c00005":
            return httpx.Response(200, text=DOG_LISTING_HTML)
        if path == "/category/cat/food-c00010":
            return httpx.Response(200, text=CAT_LISTING_HTML)
        if path == "/hills-kd-dry-dog-food-product.html":
            return httpx.Response(200, text=KD_HTML)
        if path == "/hills-cd-dry-cat-food-product.html":
            return httpx.Response(200, text=CD_HTML)
        return httpx.Response(404)
    return handler
