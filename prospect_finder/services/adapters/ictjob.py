from __future__ import annotations

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
    text_of,
)

BASE_URL = "https://www.ictjob.be"


def parse_ictjob_results(html: str, base_url: str = BASE_URL) -> list[RawListing]:
    soup = BeautifulSoup(html, "html.parser")
    listings = []
    for card in soup.select(".search-item.clearfix"):
        # "Create a job alert" teaser rendered as a result row
        if "create-job-alert-search-item" in (card.get("class") or []):
            continue
        link = card.select_one("a.search-item-link")
        if link is None or not link.get("href"):
            continue
        title = first_text(link, "h2.job-title") or text_of(link)
        if not title:
            continue
        listings.append(
            RawListing(
                title=title,
                url=canonical_url(absolute_url(link["href"], base_url)),
                company=first_text(card, "span.job-company"),
                location=first_text(
                    card,
                    "span.job-location span[itemprop='addressLocality']",
                    "span.job-location",
                ),
            )
        )
    return listings


class ICTJobAdapter(HttpListingAdapter):
    platform = JobPlatform.ICTJOB
    source = JobPlatform.ICTJOB.value
    base_url = BASE_URL

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        params = {"q": keyword}
        if location:
            params["location"] = location
        if page > 1:
            params["page"] = str(page)
        return [f"{self.base_url}/en/search-it-jobs?{urlencode(params)}"]

    def parse(self, html: str) -> list[RawListing]:
        return parse_ictjob_results(html, self.base_url)
