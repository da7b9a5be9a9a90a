from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.adapters.base import (
    HttpListingAdapter,
    RawListing,
    absolute_url,
    canonical_url,
    first_text,
    parse_datetime,
)

BASE_URL = "https://www.linkedin.com"
# The guest endpoint serves ten server-rendered cards per call
RESULTS_PER_CALL = 10
CALLS_PER_PAGE = 2


def _sanitize_job_title(title: str) -> str:
    text = (title or "").replace("\xa0", " ")
    text = re.sub(r"\s+", " ", text).strip()
    return re.sub(r"\s+with verification.*$", "", text, flags=re.IGNORECASE).strip()


def parse_linkedin_results(html: str, base_url: str = BASE_URL) -> list[RawListing]:
    """Parse the guest "see more jobs" HTML fragment into listings."""
    soup = BeautifulSoup(html, "html.parser")
    listings = []
    for card in soup.select(".base-search-card, .job-search-card"):
        title = _sanitize_job_title(first_text(card, "h3.base-search-card__title", ".base-search-card__title") or "")
        link = card.select_one("a.base-card__full-link, a.base-search-card__full-link")
        href = link.get("href") if link else None
        if not title or not href:
            continue
        time_el = card.select_one("time")
        listings.append(
            RawListing(
                title=title,
                # Tracking params (refId, trackingId, position...) change on every call
                url=canonical_url(absolute_url(href, base_url)),
                company=first_text(card, "h4.base-search-card__subtitle a", "h4.base-search-card__subtitle"),
                location=first_text(card, ".job-search-card__location"),
                posted_at=parse_datetime(time_el.get("datetime")) if time_el else None,
            )
        )
    return listings


class LinkedInAdapter(HttpListingAdapter):
    platform = JobPlatform.LINKEDIN
    source = JobPlatform.LINKEDIN.value
    base_url = BASE_URL
    empty_message = "LinkedIn: no results found, anti-bot measures may limit access"

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        first = (page - 1) * RESULTS_PER_CALL * CALLS_PER_PAGE
        urls = []
        for offset in range(CALLS_PER_PAGE):
            params = {"keywords": keyword}
            if location:
                params["location"] = location
            params["start"] = str(first + offset * RESULTS_PER_CALL)
            urls.append(f"{self.base_url}/jobs-guest/jobs/api/seeMoreJobPostings/search?{urlencode(params)}")
        return urls

    def parse(self, html: str) -> list[RawListing]:
        return parse_linkedin_results(html, self.base_url)
