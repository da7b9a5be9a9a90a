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
    text_of,
)
from prospect_finder.utils.text_processing import slugify

BASE_URL = "https://be.jobsora.com"


def parse_jobsora_results(html: str, base_url: str = BASE_URL) -> list[RawListing]:
    soup = BeautifulSoup(html, "html.parser")
    listings = []
    for card in soup.select("article.c-job-item"):
        link = card.select_one("h2.c-job-item__title a")
        title = text_of(link)
        href = (link.get("href") if link else None) or card.get("data-href")
        if not title or not href:
            continue
        # Company first, then location
        info = [text_of(item) for item in card.select(".c-job-item__info-item")]
        listings.append(
            RawListing(
                title=title,
                url=canonical_url(absolute_url(href, base_url)),
                company=info[0] if len(info) > 0 else None,
                location=info[1] if len(info) > 1 else None,
            )
        )
    return listings


class JobsoraAdapter(HttpListingAdapter):
    platform = JobPlatform.JOBSORA
    source = JobPlatform.JOBSORA.value
    base_url = BASE_URL

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        url = f"{self.base_url}/emplois-{quote(slugify(keyword))}"
        return [f"{url}?page={page}" if page > 1 else url]

    def default_location(self, location: Optional[str]) -> Optional[str]:
        return location or "Belgium"

    def parse(self, html: str) -> list[RawListing]:
        return parse_jobsora_results(html, self.base_url)
