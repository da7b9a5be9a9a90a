from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from bs4 import BeautifulSoup

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.adapters.base import (
    HttpListingAdapter,
    RawListing,
    absolute_url,
    canonical_url,
    first_text,
    parse_datetime,
    text_of,
)

logger = logging.getLogger(__name__)

BASE_URL = "https://www.actiris.brussels"
DEFAULT_LOCATION = "Brussels"


def _first_value(item: dict, *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if isinstance(value, dict):
            value = value.get("name") or value.get("label")
        if value:
            return value
    return None


def parse_actiris_offers(data: Any, base_url: str = BASE_URL) -> list[RawListing]:
    """Read listings out of the offers API payload (a bare list or a paged object)."""
    if isinstance(data, dict):
        items = data.get("items") or data.get("offers") or data.get("results") or data.get("data") or []
    else:
        items = data or []

    listings = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = _first_value(item, "title", "function", "jobTitle", "name")
        url = _first_value(item, "url", "link")
        offer_id = item.get("id") or item.get("reference")
        if not url and offer_id:
            url = f"{base_url}/en/citizens/job-offer/{offer_id}"
        if not title or not url:
            continue
        listings.append(
            RawListing(
                title=str(title),
                url=canonical_url(absolute_url(str(url), base_url)),
                company=_first_value(item, "employer", "company", "companyName"),
                location=_first_value(item, "location", "municipality", "city"),
                posted_at=parse_datetime(_first_value(item, "publicationDate", "publishedAt", "createdAt")),
            )
        )
    return listings


def parse_actiris_results(html: str, base_url: str = BASE_URL) -> list[RawListing]:
    soup = BeautifulSoup(html, "html.parser")
    listings = []
    for card in soup.select(".job-result, .offer-item, .job-listing, .views-row"):
        link = card.select_one("h3 a, h2 a, .job-title a, .offer-title a")
        title = text_of(link)
        if not title or not link.get("href"):
            continue
        listings.append(
            RawListing(
                title=title,
                url=canonical_url(absolute_url(link["href"], base_url)),
                company=first_text(card, ".employer", ".company", ".offer-company"),
                location=first_text(card, ".location", ".offer-location"),
            )
        )
    return listings


class ActirisAdapter(HttpListingAdapter):
    platform = JobPlatform.ACTIRIS
    source = JobPlatform.ACTIRIS.value
    base_url = BASE_URL

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        return [f"{self.base_url}/api/offers?{urlencode({'search': keyword, 'page': page})}"]

    def default_location(self, location: Optional[str]) -> Optional[str]:
        # Regional employment service: every offer is in the Brussels region
        return DEFAULT_LOCATION

    def html_url(self, api_url: str) -> str:
        query = parse_qs(urlsplit(api_url).query)
        params = {"search": query.get("search", [""])[0]}
        page = int(query.get("page", ["1"])[0])
        if page > 1:
            params["page"] = str(page - 1)
        return f"{self.base_url}/en/citizens/find-a-job/job-offers?{urlencode(params)}"

    def parse(self, html: str) -> list[RawListing]:
        return parse_actiris_results(html, self.base_url)

    async def fetch_listings(self, url: str) -> list[RawListing]:
        try:
            listings = parse_actiris_offers(await self.fetcher.fetch_json(url), self.base_url)
        except Exception as e:
            logger.info("Actiris API unavailable (%s), falling back to the HTML listing", e)
            listings = []
        if listings:
            return listings
        html = await self.fetcher.fetch_text(self.html_url(url))
        return self.parse(html)
