"""Tests for product records, link discovery and category scraping."""

import asyncio

import httpx
import pytest

from petfood.config import BATCH_DELAY, CONCURRENCY_LIMIT
from petfood.fetcher import HttpError
from petfood.scraper import (
    build_product,
    extract_product_links,
    scrape_category,
    scrape_category_result,
    scrape_links,
    scrape_one,
    scrape_product,
)

from conftest import KD_URL

DOG_CATEGORY = "https://www.1800petmeds.com/category/dog/food-c00005"


class TestBuildProduct:
    """Test building a product record from a page."""

    def test_full_record(self, kd_html):
        product = build_product(kd_html, KD_URL)

        assert product.link == KD_URL
        assert product.id == "hills-kd-dry-dog-food"
        assert product.name == "Hill's Prescription Diet k/d Kidney Care Dry Dog Food"
        assert product.brand == "Hill's Prescription Diet"
        assert product.image == "https://www.1800petmeds.com/images/hills-kd.jpg"
        assert product.price.estimate == 52.99
        assert product.species == "dog"
        assert product.type == "dry"
        assert product.targeted_conditions == ["kidney disease"]
        assert product.availability == "in-stock"
        assert product.is_usable

    def test_empty_page_gives_partial_record(self):
        product = build_product("", KD_URL)

        assert product.name is None
        assert product.brand is None
        assert product.price is None
        assert product.species == "unknown"
        assert product.type == "unknown"
        assert not product.is_usable

    def test_failing_extractor_keeps_default(self, kd_html, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("broken rule")

        monkeypatch.setattr("petfood.scraper.extract_price", boom)

        product = build_product(kd_html, KD_URL)

        assert product.price is None
        assert product.brand == "Hill's Prescription Diet"

    def test_to_dict_uses_camel_case(self, kd_html):
        data = build_product(kd_html, KD_URL).to_dict()

        assert data["bagSizes"] == ["8.5 lb", "27.5 lb"]
        assert data["targetedConditions"] == ["kidney disease"]
        assert data["price"]["range"] == "$52.99 - $54.99"


class TestExtractProductLinks:
    """Test product link discovery on a listing page."""

    LISTING = """
    <a href="/hills-kd-dry-dog-food-product.html">Hill's k/d Dog Food</a>
    <a href="/about">About us</a>
    <a href="https://evil.example.com/cat-food">Cat Food</a>
    <a href="/royal-canin-renal-diet.html">Royal Canin Renal</a>
    <a href="//www.1800petmeds.com/hills-kd-dry-dog-food-product.html">Dog Food again</a>
    """

    def test_links_resolved_filtered_and_deduplicated(self):
        links = extract_product_links(self.LISTING, DOG_CATEGORY)

        assert links == [
            "https://www.1800petmeds.com/hills-kd-dry-dog-food-product.html",
            "https://www.1800petmeds.com/royal-canin-renal-diet.html",
        ]

    def test_root_level_product_path_matched_without_food_wording(self):
        listing = """
        <a href="/royal-canin-renal-diet.html">Royal Canin Renal</a>
        <a href="/about?ref=dog-food">About</a>
        <a href="/purina-pro-plan-nutrition">Pro Plan</a>
        """

        assert extract_product_links(listing, DOG_CATEGORY) == [
            "https://www.1800petmeds.com/royal-canin-renal-diet.html",
            "https://www.1800petmeds.com/purina-pro-plan-nutrition",
        ]

    def test_max_links(self):
        links = extract_product_links(self.LISTING, DOG_CATEGORY, max_links=1)

        assert links == ["https://www.1800petmeds.com/hills-kd-dry-dog-food-product.html"]

    def test_no_links(self):
        assert extract_product_links("<p>Nothing to see</p>", DOG_CATEGORY) == []


class TestScrapeCategory:
    """Test batch scraping against a mocked site."""

    @pytest.mark.asyncio
    async def test_category_result_counts_links_and_products(self, make_client, catalog_handler):
        async with make_client(catalog_handler) as client:
            result = await scrape_category_result("dog", client=client, batch_delay=0)

        assert result.category == "dog"
        assert result.links_found == 2
        assert [p.id for p in result.products] == ["hills-kd-dry-dog-food"]
        assert not result.failed

    @pytest.mark.asyncio
    async def test_scrape_category_returns_products(self, make_client, catalog_handler):
        async with make_client(catalog_handler) as client:
            products = await scrape_category("cat", client=client, batch_delay=0)

        assert len(products) == 1
        assert products[0].brand == "Hill's Prescription Diet"
        assert products[0].species == "cat"

    @pytest.mark.asyncio
    async def test_empty_listing_gives_no_products(self, make_client):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, text="<p>Out of stock</p>")

        async with make_client(handler) as client:
            products = await scrape_category("dog", client=client)

        assert products == []
        assert requested == [DOG_CATEGORY]

    @pytest.mark.asyncio
    async def test_listing_failure_propagates(self, make_client):
        async with make_client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(HttpError):
                await scrape_category_result("dog", client=client)

    @pytest.mark.asyncio
    async def test_unknown_category(self):
        with pytest.raises(ValueError):
            await scrape_category("bird")

    @pytest.mark.asyncio
    async def test_failed_link_gives_none(self, make_client, catalog_handler):
        async with make_client(catalog_handler) as client:
            product = await scrape_product(
                "https://www.1800petmeds.com/missing-dog-food-product.html", client
            )

        assert product is None

    @pytest.mark.asyncio
    async def test_unusable_records_dropped_from_batches(self, make_client):
        def handler(request):
            if request.url.path == "/nameless-dog-food.html":
                return httpx.Response(200, text="<p>Royal Canin</p>")
            return httpx.Response(200, text="<h1>Royal Canin Renal Dry Dog Food</h1>")

        links = [
            "https://www.1800petmeds.com/nameless-dog-food.html",
            "https://www.1800petmeds.com/renal-dog-food.html",
            "https://www.1800petmeds.com/renal-dog-food-2.html",
        ]
        async with make_client(handler) as client:
            products = await scrape_links(links, client, concurrency=2, batch_delay=0)

        assert [p.link for p in products] == links[1:]


    @pytest.mark.asyncio
    async def test_batches_run_five_at_a_time_with_pause_between(self, monkeypatch):
        real_sleep = asyncio.sleep
        in_flight = 0
        peak = 0
        pauses = []

        async def fake_fetch(url, client=None, **kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            for _ in range(3):
                await real_sleep(0)
            in_flight -= 1
            return "<h1>Royal Canin Renal Dry Dog Food</h1>"

        async def record_sleep(delay):
            pauses.append((delay, in_flight))
            await real_sleep(0)

        monkeypatch.setattr("petfood.scraper.fetch_page", fake_fetch)
        monkeypatch.setattr(asyncio, "sleep", record_sleep)

        links = [f"https://www.1800petmeds.com/renal-dog-food-{i}.html" for i in range(12)]
        products = await scrape_links(links)

        assert len(products) == 12
        assert peak == CONCURRENCY_LIMIT == 5
        assert pauses == [(BATCH_DELAY, 0), (BATCH_DELAY, 0)]
        assert BATCH_DELAY == 1.0


class TestScrapeOne:
    """Test single product scraping."""

    @pytest.mark.asyncio
    async def test_scrape_one(self, make_client, catalog_handler):
        async with make_client(catalog_handler) as client:
            product = await scrape_one(KD_URL, client=client)

        assert product.name == "Hill's Prescription Diet k/d Kidney Care Dry Dog Food"

    @pytest.mark.asyncio
    async def test_scrape_one_propagates_http_errors(self, make_client, catalog_handler):
        async with make_client(catalog_handler) as client:
            with pytest.raises(HttpError):
                await scrape_one("https://www.1800petmeds.com/gone.html", client=client)
