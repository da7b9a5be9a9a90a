from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from bs4 import BeautifulSoup

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.adapters.base import (
    HttpListingAdapter,
    RawListing,
    absolute_url,
    canonical_url,
    first_text,
    text_of,
)
from prospect_finder.utils.text_processing import slugify

BASE_URL = "https://www.jobat.be"


def parse_jobat_results(html: str, base_url: str = BASE_URL) -> list[RawListing]:
    soup = BeautifulSoup(html, "html.parser")
    listings = []
    for card in soup.select(".jobResults-card"):
        link = card.select_one("h2.jobTitle a")
        title = text_of(link)
        href = (link.get("href") if link else None) or card.get("data-id")
        if not title or not href:
            continue
        listings.append(
            RawListing(
                title=title,
                url=canonical_url(absolute_url(href, base_url)),
                company=first_text(card, ".jobCard-company a", ".jobCard-company"),
                location=first_text(card, ".jobCard-location"),
            )
        )
    return listings


class JobatAdapter(HttpListingAdapter):
    platform = JobPlatform.JOBAT
    source = JobPlatform.JOBAT.value
    base_url = BASE_URL

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        url = f"{self.base_url}/en/jobs/results/{quote(slugify(keyword))}"
        return [f"{url}?page={page}" if page > 1 else url]

    def parse(self, html: str) -> list[RawListing]:
        return parse_jobat_results(html, self.base_url)
