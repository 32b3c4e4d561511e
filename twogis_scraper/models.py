"""Core data models shared by the 2GIS scraping pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

MODE_LIST = "list"
MODE_FULL = "full"
MODE_FULL_WITH_REVIEWS = "full-with-reviews"
SCRAPING_MODES = (MODE_LIST, MODE_FULL, MODE_FULL_WITH_REVIEWS)

SOURCE_STATE = "state"
SOURCE_INTERCEPTED = "intercepted"


@dataclass(frozen=True)
class ScrapeOptions:
    """Per-run configuration, built once from caller input and never mutated."""

    query: Optional[str] = None
    org_id: Optional[str] = None
    from_list: Optional[str] = None
    delay_ms: int = 2000
    max_records: int = 50
    max_retries: int = 3
    headless: bool = True
    mode: str = MODE_FULL
    max_reviews: int = 100

    @property
    def target_label(self) -> str:
        return self.from_list or self.org_id or self.query or ""


@dataclass(slots=True)
class RawItem:
    """Unmodified payload extracted for one target, kept for offline re-extraction."""

    item: Dict[str, Any]
    source: str
    url: Optional[str] = None
    full_data: Optional[Dict[str, Any]] = field(default=None, repr=False)

    def to_audit_dict(self) -> Dict[str, Any]:
        data: Any = self.full_data
        if self.source == SOURCE_STATE:
            profile = ((self.full_data or {}).get("data") or {}).get("entity", {}).get("profile")
            if profile:
                data = {"meta": (self.full_data or {}).get("meta"), "result": {"items": [self.item]}}
        return {"source": self.source, "url": self.url, "data": data}


@dataclass(slots=True)
class Review:
    id: str
    text: str
    rating: int
    date_created: str
    date_edited: Optional[str] = None
    author: Optional[str] = None
    author_id: Optional[str] = None
    comments_count: Optional[int] = None
    source: Optional[str] = None
    likes: Optional[int] = None
    dislikes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(slots=True)
class OrganizationRecord:
    """Normalized organization. Everything but name, address and rubrics is optional."""

    name: str
    address: str = ""
    rubrics: List[str] = field(default_factory=list)
    firm_id: Optional[str] = None
    description: Optional[str] = None
    address_comment: Optional[str] = None
    postcode: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    timezone: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    schedule: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    review_summary: Optional[Dict[str, Any]] = None
    type: Optional[str] = None
    coordinates: Optional[Dict[str, float]] = None
    nearest_metro: Optional[List[Dict[str, Any]]] = None
    payment_methods: Optional[List[str]] = None
    features: Optional[List[str]] = None
    org_name: Optional[str] = None
    org_id: Optional[str] = None
    branch_count: Optional[int] = None
    photo_count: Optional[int] = None
    has_photos: Optional[bool] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    reviews: Optional[List[Review]] = None

    def to_dict(self) -> Dict[str, Any]:
        entry = {key: value for key, value in asdict(self).items() if value is not None}
        if self.reviews is not None:
            entry["reviews"] = [review.to_dict() for review in self.reviews]
        return entry
