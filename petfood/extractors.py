"""Field extractors for retailer product pages.

Each field is read by an ordered tuple of rules. Structured rules (JSON-LD,
tagged elements) come before loose text sweeps, so the tuple order is the
priority. Single-valued fields take the first rule that yields a value;
multi-valued fields take the ordered union of every rule.
"""

import json
import re
from dataclasses import dataclass
from html import unescape
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from petfood.config import BASE_URL, MAX_PLAUSIBLE_PRICE, MIN_PLAUSIBLE_PRICE
from petfood.models import Page, PriceInfo
from petfood.url_validation import is_safe_url, resolve_url

__all__ = [
    "RegexRule",
    "SelectorRule",
    "JsonLdRule",
    "first_match",
    "all_matches",
    "NAME_RULES",
    "BRAND_RULES",
    "IMAGE_RULES",
    "PRICE_RULES",
    "BAG_SIZE_RULES",
    "SPECIES_RULES",
    "FOOD_TYPE_RULES",
    "FEATURE_RULES",
    "DESCRIPTION_RULES",
    "FEEDING_GUIDE_RULES",
    "CONDITION_KEYWORDS",
    "CONDITION_SYNONYMS",
    "ANALYSIS_FIELDS",
    "SCRAPED_PRICE_NOTE",
    "MAX_BAG_SIZES",
    "MAX_CONDITIONS",
    "MAX_FEATURES",
    "MAX_IMAGES",
    "extract_name",
    "extract_brand",
    "extract_images",
    "extract_image",
    "extract_prices",
    "is_plausible_price",
    "summarize_prices",
    "extract_price",
    "extract_bag_sizes",
    "infer_species",
    "infer_food_type",
    "extract_conditions",
    "extract_features",
    "extract_description",
    "extract_feeding_guide",
    "extract_nutritional_analysis",
]

MAX_BAG_SIZES = 5
MAX_CONDITIONS = 4
MAX_FEATURES = 4
MAX_IMAGES = 5
FEATURE_MIN_LENGTH = 20
FEATURE_MAX_LENGTH = 200

SCRAPED_PRICE_NOTE = "Estimated pricing - actual prices may vary by location and retailer"

PageLike = Union[Page, str]


def _as_page(source: PageLike) -> Page:
    return source if isinstance(source, Page) else Page(source)


def _clean(text: str) -> str:
    """Unescape entities and collapse whitespace."""
    return re.sub(r"\s+", " ", unescape(text)).strip()


# =============================================================================
# Rule types
# =============================================================================

@dataclass(frozen=True)
class RegexRule:
    """Pattern swept over raw markup, the product name, or both.

    A match yields the capture group, or ``value`` when the rule only
    tests for presence (brand and keyword inference).
    """

    pattern: str
    target: str = "html"  # "html", "name" or "all"
    value: Optional[str] = None
    flags: int = re.IGNORECASE

    def find(self, page: Page, name: Optional[str] = None) -> List[str]:
        if self.target == "name":
            text = name or ""
        elif self.target == "all":
            text = f"{page.html} {name or ''}"
        else:
            text = page.html

        if self.value is not None:
            return [self.value] if re.search(self.pattern, text, self.flags) else []
        return [m.group(1) for m in re.finditer(self.pattern, text, self.flags)]


@dataclass(frozen=True)
class SelectorRule:
    """CSS selector over the parsed page; reads an attribute or the text."""

    selector: str
    attr: Optional[str] = None

    def find(self, page: Page, name: Optional[str] = None) -> List[str]:
        values = []
        for el in page.soup.select(self.selector):
            raw = el.get(self.attr) if self.attr else el.get_text(" ", strip=True)
            if isinstance(raw, list):
                raw = " ".join(raw)
            if raw:
                values.append(str(raw))
        return values


def _json_ld_products(page: Page) -> List[dict]:
    products = []
    for script in page.soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            continue

        stack = list(data) if isinstance(data, list) else [data]
        while stack:
            item = stack.pop(0)
            if not isinstance(item, dict):
                continue
            if isinstance(item.get("@graph"), list):
                stack.extend(item["@graph"])
            types = item.get("@type")
            types = types if isinstance(types, list) else [types]
            if "Product" in types:
                products.append(item)
    return products


def _flatten(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [v for item in value for v in _flatten(item)]
    if isinstance(value, dict):
        return _flatten(value.get("url") or value.get("name"))
    if isinstance(value, bool):
        return []
    return [str(value)]


@dataclass(frozen=True)
class JsonLdRule:
    """Dotted key path inside embedded schema.org Product JSON-LD."""

    path: str

    def find(self, page: Page, name: Optional[str] = None) -> List[str]:
        values: List[str] = []
        for product in _json_ld_products(page):
            nodes = [product]
            for key in self.path.split("."):
                next_nodes = []
                for node in nodes:
                    child = node.get(key) if isinstance(node, dict) else None
                    if isinstance(child, list):
                        next_nodes.extend(child)
                    elif child is not None:
                        next_nodes.append(child)
                nodes = next_nodes
            for node in nodes:
                values.extend(_flatten(node))
        return values


Rule = Union[RegexRule, SelectorRule, JsonLdRule]


def first_match(rules: Sequence[Rule], page: Page, name: Optional[str] = None) -> Optional[str]:
    """Value of the first rule that matches, cleaned; None if none does."""
    for rule in rules:
        for raw in rule.find(page, name):
            value = _clean(raw)
            if value:
                return value
    return None


def all_matches(rules: Sequence[Rule], page: Page, name: Optional[str] = None) -> List[str]:
    """Ordered, de-duplicated union of every rule's cleaned values."""
    seen = set()
    values: List[str] = []
    for rule in rules:
        for raw in rule.find(page, name):
            value = _clean(raw)
            if value and value not in seen:
                seen.add(value)
                values.append(value)
    return values


# =============================================================================
# Rule tables
# =============================================================================

NAME_RULES: Tuple[Rule, ...] = (
    JsonLdRule("name"),
    RegexRule(r'<h1[^>]*class="[^"]*product[^"]*title[^"]*"[^>]*>([^<]+)</h1>'),
    RegexRule(r"<h1[^>]*>([^<]+(?:Dog|Cat|Pet).*?Food[^<]*)</h1>"),
    RegexRule(r"<title>([^<]+(?:Dog|Cat|Pet).*?Food[^<]*)"),
    RegexRule(r'"name":\s*"([^"]+)"'),
)

_APOS = r"(?:'|&#39;|&#x27;|&rsquo;|’)?"

BRAND_RULES: Tuple[RegexRule, ...] = (
    RegexRule(rf"Hill{_APOS}s\s*Prescription\s*Diet", target="all", value="Hill's Prescription Diet"),
    RegexRule(r"Royal\s*Canin(?:\s*Veterinary\s*Diet)?", target="all", value="Royal Canin Veterinary Diet"),
    RegexRule(
        r"Purina\s*Pro\s*Plan(?:\s*Veterinary\s*Diets)?",
        target="all",
        value="Purina Pro Plan Veterinary Diets",
    ),
    RegexRule(r"Science\s*Diet", target="all", value="Hill's Science Diet"),
    RegexRule(r"Blue\s*Buffalo", target="all", value="Blue Buffalo"),
    # Capitalised only; lowercase "wellness" is common page copy
    RegexRule(r"\bWellness\b", target="all", value="Wellness", flags=0),
)

IMAGE_RULES: Tuple[Rule, ...] = (
    SelectorRule('meta[property="og:image"]', attr="content"),
    JsonLdRule("image"),
    RegexRule(r'<img[^>]+class="[^"]*product[^"]*image[^"]*"[^>]+src="([^"]+)"'),
    RegexRule(r'<img[^>]+src="([^"]+)"[^>]*class="[^"]*product[^"]*image[^"]*"'),
    RegexRule(r'<img[^>]+src="([^"]+)"[^>]*alt="[^"]*(?:dog|cat|pet)[^"]*food[^"]*"'),
    RegexRule(r'"image":\s*"([^"]+)"'),
)

PRICE_RULES: Tuple[Rule, ...] = (
    JsonLdRule("offers.price"),
    JsonLdRule("offers.lowPrice"),
    SelectorRule('[itemprop="price"]', attr="content"),
    RegexRule(r"\$\s*([0-9]+\.?[0-9]*)"),
    RegexRule(r'"price":\s*"?([0-9]+\.?[0-9]*)"?'),
    RegexRule(r"price[^0-9<]{0,30}([0-9]+(?:\.[0-9]+)?)"),
)

BAG_SIZE_RULES: Tuple[Rule, ...] = (
    RegexRule(r"\b([0-9]+\s*x\s*[0-9]+(?:\.[0-9]+)?\s*(?:oz|ounce|lb|pound)s?\s*(?:cans?|bags?))\b"),
    RegexRule(r"\b([0-9]+(?:\.[0-9]+)?\s*(?:lb|pound|kg|kilogram|oz|ounce)s?)\b"),
)

SPECIES_RULES: Tuple[RegexRule, ...] = (
    RegexRule(r"\b(?:dog|dogs|puppy|canine)\b", target="name", value="dog"),
    RegexRule(r"\b(?:cat|cats|kitten|feline)\b", target="name", value="cat"),
    RegexRule(r"canine", value="dog"),
    RegexRule(r"feline", value="cat"),
)

FOOD_TYPE_RULES: Tuple[RegexRule, ...] = (
    RegexRule(r"\bdry\b", target="name", value="dry"),
    RegexRule(r"\b(?:wet|canned|can|cans|stew|pouch)\b", target="name", value="wet"),
    RegexRule(r"kibble", value="dry"),
    RegexRule(r"canned", value="wet"),
)

FEATURE_RULES: Tuple[Rule, ...] = (
    RegexRule(r"<li[^>]*>([^<]+(?:nutrition|support|health|benefit|formula|ingredient)[^<]*)</li>"),
    RegexRule(r"<p[^>]*>([^<]+(?:clinically|proven|formulated|designed|helps|supports)[^<]*)</p>"),
)

DESCRIPTION_RULES: Tuple[Rule, ...] = (
    SelectorRule('meta[name="description"]', attr="content"),
    SelectorRule('meta[property="og:description"]', attr="content"),
    JsonLdRule("description"),
    RegexRule(r'<p[^>]*class="[^"]*description[^"]*"[^>]*>([^<]+)</p>'),
)

FEEDING_GUIDE_RULES: Tuple[Rule, ...] = (
    RegexRule(r'<(?:p|div|section)[^>]*class="[^"]*feeding[^"]*"[^>]*>\s*([^<]{20,})<'),
    RegexRule(r"Feeding\s+(?:Guide|Instructions)\s*:?\s*(?:</[^>]+>\s*)+<p[^>]*>([^<]+)</p>"),
)

CONDITION_KEYWORDS: Tuple[str, ...] = (
    "kidney disease", "renal", "urinary", "digestive", "gastrointestinal",
    "diabetes", "weight management", "obesity", "hepatic", "liver",
    "joint", "arthritis", "mobility", "skin", "food sensitivities",
    "allergies", "dental", "critical care", "hyperthyroidism",
    "pancreatitis", "heart", "cardiac",
)

CONDITION_SYNONYMS: Mapping[str, str] = {
    "renal": "kidney disease",
    "gastrointestinal": "digestive",
    "obesity": "weight management",
    "arthritis": "joint",
    "cardiac": "heart",
}

# Output key -> labels used for it on guaranteed-analysis tables
ANALYSIS_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "protein": ("Crude Protein", "Protein"),
    "fat": ("Crude Fat", "Fat"),
    "fiber": ("Crude Fiber", "Crude Fibre", "Fiber"),
    "moisture": ("Moisture",),
    "phosphorus": ("Phosphorus",),
    "sodium": ("Sodium",),
}


# =============================================================================
# Extractors
# =============================================================================

def extract_name(source: PageLike) -> Optional[str]:
    return first_match(NAME_RULES, _as_page(source))


def extract_brand(
    source: PageLike,
    name: Optional[str] = None,
    rules: Sequence[RegexRule] = BRAND_RULES,
) -> Optional[str]:
    """Canonical brand of the first brand rule found in the page or name."""
    return first_match(rules, _as_page(source), name)


def extract_images(source: PageLike, base_url: str = BASE_URL) -> List[str]:
    """Absolute product image URLs, best candidate first."""
    page = _as_page(source)
    base = page.url or base_url
    images: List[str] = []
    for raw in all_matches(IMAGE_RULES, page):
        url = resolve_url(raw, base)
        if url and url not in images and is_safe_url(url, allowed_domains=set()):
            images.append(url)
        if len(images) >= MAX_IMAGES:
            break
    return images


def extract_image(source: PageLike, base_url: str = BASE_URL) -> Optional[str]:
    images = extract_images(source, base_url)
    return images[0] if images else None


def is_plausible_price(price: float) -> bool:
    return MIN_PLAUSIBLE_PRICE < price < MAX_PLAUSIBLE_PRICE


def _parse_prices(values: Iterable[str]) -> List[float]:
    prices = []
    for value in values:
        try:
            price = float(value.replace(",", ""))
        except ValueError:
            continue
        if is_plausible_price(price):
            prices.append(price)
    return prices


def extract_prices(source: PageLike) -> List[float]:
    """Sorted, de-duplicated plausible prices found anywhere on the page."""
    page = _as_page(source)
    found: List[str] = []
    for rule in PRICE_RULES:
        found.extend(rule.find(page))
    return sorted(set(_parse_prices(found)))


def _format_price(price: float) -> str:
    return f"${price:.2f}"


def summarize_prices(prices: Sequence[float]) -> Optional[PriceInfo]:
    """Collapse a cluster of prices into estimate, average and range.

    >>> summarize_prices([54.99, 52.99]).range
    '$52.99 - $54.99'
    """
    unique = sorted(set(p for p in prices if is_plausible_price(p)))
    if not unique:
        return None

    low, high = unique[0], unique[-1]
    price_range = _format_price(low) if low == high else f"{_format_price(low)} - {_format_price(high)}"
    return PriceInfo(
        estimate=low,
        range=price_range,
        average=round(sum(unique) / len(unique), 2),
        note=SCRAPED_PRICE_NOTE,
    )


def extract_price(source: PageLike) -> Optional[PriceInfo]:
    return summarize_prices(extract_prices(source))


def extract_bag_sizes(source: PageLike) -> List[str]:
    return all_matches(BAG_SIZE_RULES, _as_page(source))[:MAX_BAG_SIZES]


def infer_species(source: PageLike, name: Optional[str] = None) -> str:
    """'dog', 'cat' or 'unknown'; the product name outranks page-wide hints."""
    return first_match(SPECIES_RULES, _as_page(source), name) or "unknown"


def infer_food_type(source: PageLike, name: Optional[str] = None) -> str:
    """'dry', 'wet' or 'unknown'."""
    return first_match(FOOD_TYPE_RULES, _as_page(source), name) or "unknown"


def extract_conditions(
    source: PageLike,
    name: Optional[str] = None,
    keywords: Sequence[str] = CONDITION_KEYWORDS,
    synonyms: Mapping[str, str] = CONDITION_SYNONYMS,
    limit: int = MAX_CONDITIONS,
) -> List[str]:
    """Condition tags mentioned in the page or name.

    A synonym is only kept together with its canonical tag; when the pair
    does not fit under ``limit`` the pair is skipped.
    """
    text = f"{_as_page(source).html} {name or ''}".lower()
    tags: List[str] = []
    for keyword in keywords:
        if keyword.lower() not in text or keyword in tags:
            continue
        group = [t for t in (keyword, synonyms.get(keyword)) if t and t not in tags]
        if len(tags) + len(group) > limit:
            continue
        tags.extend(group)
    return tags


def extract_features(source: PageLike) -> List[str]:
    features = [
        f for f in all_matches(FEATURE_RULES, _as_page(source))
        if FEATURE_MIN_LENGTH < len(f) < FEATURE_MAX_LENGTH
    ]
    return features[:MAX_FEATURES]


def extract_description(source: PageLike) -> Optional[str]:
    return first_match(DESCRIPTION_RULES, _as_page(source))


def extract_feeding_guide(source: PageLike) -> Optional[str]:
    return first_match(FEEDING_GUIDE_RULES, _as_page(source))


def extract_nutritional_analysis(
    source: PageLike,
    fields: Mapping[str, Tuple[str, ...]] = ANALYSIS_FIELDS,
) -> Dict[str, str]:
    """Guaranteed-analysis percentages keyed by nutrient.

    Labels for a nutrient are tried in order; the first labelled percentage
    wins. Nutrients without a match are left out.
    """
    page = _as_page(source)
    analysis: Dict[str, str] = {}
    for key, labels in fields.items():
        rules = [
            RegexRule(rf"\b{re.escape(label)}\b[^0-9%]{{0,60}}?([0-9]+(?:\.[0-9]+)?)\s*%")
            for label in labels
        ]
        value = first_match(rules, page)
        if value:
            analysis[key] = f"{value}%"
    return analysis
