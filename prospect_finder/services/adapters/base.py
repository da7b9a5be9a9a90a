"""Shared pieces of the job-board adapters.

Every adapter satisfies :class:`PlatformAdapter`. The per-board code only knows
how to build a search URL and parse a result page; :class:`JobCollector` does the
bookkeeping common to all of them (canonical URL dedup, keyword matching, the
seed-keyword fallback and the "empty and errored" report).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Protocol
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import Tag

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.fetcher import HttpFetcher
from prospect_finder.services.keywords import keywords_for_title
from prospect_finder.services.records import JobPosting
from prospect_finder.utils.text_processing import clean_text

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    jobs: list[JobPosting] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class RawListing:
    """One result card as read off a listing page, before keyword matching."""

    title: str
    url: str
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    posted_at: Optional[datetime] = None


class PlatformAdapter(Protocol):
    platform: JobPlatform
    source: str

    async def scrape(self, keywords: list[str], location: Optional[str] = None, page: int = 1) -> ScrapeResult: ...

    def set_keep_alive(self, keep_alive: bool) -> None: ...

    async def close(self) -> None: ...


def absolute_url(href: str, base_url: str) -> str:
    if href.startswith("//"):
        return f"https:{href}"
    return urljoin(base_url.rstrip("/") + "/", href)


def canonical_url(url: str, keep_params: Iterable[str] = ()) -> str:
    """Drop the fragment and every query parameter not listed in *keep_params*."""
    parts = urlsplit(url)
    keep = set(keep_params)
    query = urlencode([(k, v) for k, v in parse_qsl(parts.query) if k in keep])
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def text_of(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    return clean_text(node.get_text(" ")) or None


def first_text(card: Tag, *selectors: str) -> Optional[str]:
    """Text of the first selector that yields non-empty text."""
    for selector in selectors:
        text = text_of(card.select_one(selector))
        if text:
            return text
    return None


class JobCollector:
    """Accumulates one adapter call's postings, deduplicated by canonical URL."""

    def __init__(self, source: str, keywords: list[str], default_location: Optional[str] = None):
        self.source = source
        self.keywords = keywords
        self.default_location = default_location
        self.jobs: list[JobPosting] = []
        self.failures: list[str] = []
        self._seen: set[str] = set()

    def add(self, listing: RawListing, seed: str) -> bool:
        title = clean_text(listing.title)
        url = (listing.url or "").strip()
        if not title or not url or url in self._seen:
            return False
        self._seen.add(url)
        self.jobs.append(
            JobPosting(
                title=title,
                url=url,
                source=self.source,
                company=listing.company,
                location=listing.location or self.default_location,
                salary=listing.salary,
                keywords_matched=keywords_for_title(title, self.keywords, seed),
                posted_at=listing.posted_at,
            )
        )
        return True

    def add_all(self, listings: Iterable[RawListing], seed: str) -> int:
        return sum(1 for listing in listings if self.add(listing, seed))

    def record_failure(self, context: str, error: Exception) -> None:
        logger.warning("%s: %s failed: %s", self.source, context, error)
        self.failures.append(f"{context}: {error}")

    def result(self, empty_message: Optional[str] = None) -> ScrapeResult:
        if self.jobs:
            return ScrapeResult(jobs=self.jobs)
        if self.failures:
            return ScrapeResult(jobs=[], error=self.failures[-1])
        return ScrapeResult(jobs=[], error=empty_message)


class HttpListingAdapter:
    """Adapter for boards whose result pages are plain server-rendered HTML.

    Subclasses provide ``search_urls`` and ``parse``; fetching goes through the
    injected :class:`HttpFetcher`.
    """

    platform: JobPlatform
    source: str
    base_url: str
    empty_message: Optional[str] = None

    def __init__(self, fetcher: HttpFetcher):
        self.fetcher = fetcher

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        raise NotImplementedError

    def parse(self, html: str) -> list[RawListing]:
        raise NotImplementedError

    def default_location(self, location: Optional[str]) -> Optional[str]:
        return location

    def set_keep_alive(self, keep_alive: bool) -> None:
        """Nothing to keep alive: every request is a standalone HTTP call."""

    async def close(self) -> None:
        return None

    async def fetch_listings(self, url: str) -> list[RawListing]:
        html = await self.fetcher.fetch_text(url)
        return self.parse(html)

    async def scrape(self, keywords: list[str], location: Optional[str] = None, page: int = 1) -> ScrapeResult:
        collector = JobCollector(self.source, keywords, self.default_location(location))
        for keyword in keywords:
            for url in self.search_urls(keyword, location, page):
                try:
                    listings = await self.fetch_listings(url)
                except Exception as e:
                    collector.record_failure(f'keyword "{keyword}" page {page}', e)
                    continue
                added = collector.add_all(listings, keyword)
                logger.info("%s: %d listings, %d new for '%s' (page %d)", self.source, len(listings), added, keyword, page)
        return collector.result(self.empty_message)
