"""Data models for scraped and normalized products."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

__all__ = [
    "Page",
    "PriceInfo",
    "ExtractedProduct",
    "CatalogEntry",
    "CatalogSnapshot",
    "PriceObservation",
    "CategoryResult",
    "RunResult",
    "utc_timestamp",
]


def utc_timestamp() -> str:
    """Current UTC time in ISO-8601 with a trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Page:
    """Raw markup of one fetched page plus the URL it came from."""

    html: str
    url: str = ""

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")


@dataclass
class PriceInfo:
    """Pricing attached to a product.

    Scraped prices carry estimate/range/average; reconciled prices carry
    average/sources/last_updated. ``synthetic`` marks a placeholder estimate
    made up by the normalizer when no price was found at all.
    """

    estimate: Optional[float] = None
    range: Optional[str] = None
    average: Optional[float] = None
    note: Optional[str] = None
    synthetic: bool = False
    sources: Optional[Dict[str, float]] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key, value in (
            ("estimate", self.estimate),
            ("range", self.range),
            ("average", self.average),
            ("note", self.note),
            ("sources", self.sources),
            ("lastUpdated", self.last_updated),
        ):
            if value is not None:
                data[key] = value
        if self.synthetic:
            data["synthetic"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceInfo":
        return cls(
            estimate=data.get("estimate"),
            range=data.get("range"),
            average=data.get("average"),
            note=data.get("note"),
            synthetic=bool(data.get("synthetic", False)),
            sources=data.get("sources"),
            last_updated=data.get("lastUpdated"),
        )


@dataclass
class ExtractedProduct:
    """One retailer product page, as far as the extractors could read it.

    Every field is optional; the record is usable downstream only when both
    name and brand were found.
    """

    link: str
    id: Optional[str] = None
    name: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    images: List[str] = field(default_factory=list)
    price: Optional[PriceInfo] = None
    bag_sizes: List[str] = field(default_factory=list)
    species: str = "unknown"
    targeted_conditions: List[str] = field(default_factory=list)
    type: str = "unknown"
    features: List[str] = field(default_factory=list)
    nutritional_analysis: Dict[str, str] = field(default_factory=dict)
    feeding_guide: Optional[str] = None
    availability: str = "in-stock"
    last_updated: str = field(default_factory=utc_timestamp)

    @property
    def is_usable(self) -> bool:
        return bool(self.name) and bool(self.brand)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "features": list(self.features),
            "image": self.image,
            "images": list(self.images),
            "price": self.price.to_dict() if self.price else None,
            "bagSizes": list(self.bag_sizes),
            "species": self.species,
            "targetedConditions": list(self.targeted_conditions),
            "type": self.type,
            "nutritionalAnalysis": dict(self.nutritional_analysis),
            "feedingGuide": self.feeding_guide,
            "link": self.link,
            "availability": self.availability,
            "lastUpdated": self.last_updated,
        }


@dataclass
class CatalogEntry:
    """A normalized product as persisted in the snapshot."""

    id: str
    brand: str
    name: str
    species: str
    type: str
    image: str
    price: PriceInfo
    feeding_guide: str
    link: str
    source_id: Optional[str] = None
    description: Optional[str] = None
    targeted_conditions: List[str] = field(default_factory=list)
    bag_sizes: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    analysis: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "brand": self.brand,
            "name": self.name,
            "description": self.description,
            "species": self.species,
            "targetedConditions": list(self.targeted_conditions),
            "type": self.type,
            "bagSizes": list(self.bag_sizes),
            "features": list(self.features),
            "analysis": dict(self.analysis),
            "feedingGuide": self.feeding_guide,
            "image": self.image,
            "price": self.price.to_dict(),
            "link": self.link,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogEntry":
        return cls(
            id=data["id"],
            source_id=data.get("sourceId"),
            brand=data.get("brand", ""),
            name=data.get("name", ""),
            description=data.get("description"),
            species=data.get("species", "dog"),
            targeted_conditions=list(data.get("targetedConditions") or []),
            type=data.get("type", "dry"),
            bag_sizes=list(data.get("bagSizes") or []),
            features=list(data.get("features") or []),
            analysis=dict(data.get("analysis") or {}),
            feeding_guide=data.get("feedingGuide", ""),
            image=data.get("image", ""),
            price=PriceInfo.from_dict(data.get("price") or {}),
            link=data.get("link", ""),
        )


@dataclass
class CatalogSnapshot:
    """The complete persisted catalog document."""

    products: List[CatalogEntry]
    last_updated: str
    categories: Dict[str, int]
    source: str
    price_disclaimer: str
    version: str
    scrape_metadata: Dict[str, Any] = field(default_factory=dict)
    last_price_update: Optional[str] = None

    @property
    def total_products(self) -> int:
        return len(self.products)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "products": [p.to_dict() for p in self.products],
            "lastUpdated": self.last_updated,
            "totalProducts": self.total_products,
            "categories": dict(self.categories),
            "source": self.source,
            "priceDisclaimer": self.price_disclaimer,
            "version": self.version,
            "scrapeMetadata": self.scrape_metadata,
        }
        if self.last_price_update:
            data["lastPriceUpdate"] = self.last_price_update
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogSnapshot":
        return cls(
            products=[CatalogEntry.from_dict(p) for p in data.get("products", [])],
            last_updated=data.get("lastUpdated", ""),
            categories=dict(data.get("categories") or {}),
            source=data.get("source", ""),
            price_disclaimer=data.get("priceDisclaimer", ""),
            version=data.get("version", ""),
            scrape_metadata=dict(data.get("scrapeMetadata") or {}),
            last_price_update=data.get("lastPriceUpdate"),
        )


@dataclass
class PriceObservation:
    """Per-retailer lowest prices for one catalog entry and their mean."""

    sources: Dict[str, float]
    average: float
    last_updated: str = field(default_factory=utc_timestamp)


@dataclass
class CategoryResult:
    """Outcome of scraping one category listing."""

    category: str
    products: List[ExtractedProduct] = field(default_factory=list)
    links_found: int = 0
    timestamp: str = field(default_factory=utc_timestamp)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def metadata(self, used: int) -> Dict[str, Any]:
        return {
            "linksFound": self.links_found,
            "totalFound": len(self.products),
            "used": used,
            "timestamp": self.timestamp,
            "error": self.error,
        }


@dataclass
class RunResult:
    """What a pipeline run reports back to whoever triggered it."""

    success: bool
    processing_time_ms: int
    parameters: Dict[str, Any] = field(default_factory=dict)
    statistics: Dict[str, Any] = field(default_factory=dict)
    snapshot: Optional[CatalogSnapshot] = None
    error: Optional[str] = None
    details: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "processingTimeMs": self.processing_time_ms,
            "timestamp": self.timestamp,
            "parameters": self.parameters,
        }
        if self.success:
            data["statistics"] = self.statistics
            if self.snapshot is not None:
                data["database"] = self.snapshot.to_dict()
        else:
            data["error"] = self.error
            data["details"] = self.details
        return data
