from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


def business_key(name: str | None, address: str | None) -> str:
    """Dedup identity of a business: trimmed, case-insensitive name + address."""
    return f"{(name or '').strip()}|||{(address or '').strip()}".lower()


@dataclass
class JobPosting:
    title: str
    url: str
    source: str
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    description: Optional[str] = None
    keywords_matched: list[str] = field(default_factory=list)
    posted_at: Optional[datetime] = None

    @property
    def is_persistable(self) -> bool:
        return bool(self.title and self.title.strip() and self.url and self.url.strip())

    def to_row(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "company": self.company or None,
            "location": self.location or None,
            "salary": self.salary or None,
            "description": self.description or None,
            "url": self.url,
            "source": self.source or "unknown",
            "keywords_matched": list(self.keywords_matched),
            "posted_at": self.posted_at,
        }


@dataclass
class ProspectBusiness:
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    category: Optional[str] = None
    maps_url: Optional[str] = None
    website_url: Optional[str] = None
    website_score: Optional[int] = None
    website_issues: list[str] = field(default_factory=list)
    location_query: Optional[str] = None

    @property
    def has_website(self) -> bool:
        return self.website_url is not None

    @property
    def key(self) -> str:
        return business_key(self.name, self.address)

    def to_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address or None,
            "phone": self.phone or None,
            "rating": self.rating,
            "review_count": self.review_count,
            "category": self.category or None,
            "google_maps_url": self.maps_url or None,
            "has_website": self.has_website,
            "website_url": self.website_url,
            "website_score": self.website_score,
            "website_issues": list(self.website_issues) or None,
            "location_query": self.location_query,
        }
