"""Indeed renders its result list client side, so this adapter drives a browser."""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from bs4 import BeautifulSoup, Tag

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.adapters.base import (
    HttpListingAdapter,
    RawListing,
    ScrapeResult,
    absolute_url,
    canonical_url,
    first_text,
    text_of,
)
from prospect_finder.services.browser import BrowserFactory, BrowserSession, launch_browser
from prospect_finder.services.fetcher import HttpFetcher

logger = logging.getLogger(__name__)

BASE_URL = "https://be.indeed.com"
RESULTS_PER_PAGE = 10
RESULT_SELECTOR = ".job_seen_beacon, .jobsearch-ResultsList, .tapItem, .result"
# Query parameters that identify a posting; everything else is tracking
POSTING_PARAMS = ("jk", "vjk", "ad")


def _job_key(card: Tag) -> Optional[str]:
    node = card.select_one("a[data-jk]")
    if node is not None:
        return node.get("data-jk")
    if card.get("data-jk"):
        return card.get("data-jk")
    parent = card.find_parent(attrs={"data-jk": True})
    return parent.get("data-jk") if parent is not None else None


def parse_indeed_results(html: str, base_url: str = BASE_URL) -> list[RawListing]:
    soup = BeautifulSoup(html, "html.parser")
    listings = []
    for card in soup.select(".job_seen_beacon, .tapItem, .resultContent"):
        title_el = (
            card.select_one("h2.jobTitle a")
            or card.select_one("h2.jobTitle span[title]")
            or card.select_one("a[data-jk]")
            or card.select_one(".jobTitle a")
        )
        title = text_of(title_el)
        if not title:
            continue

        jk = _job_key(card)
        if jk:
            url = f"{base_url}/viewjob?jk={jk}"
        else:
            link = title_el if title_el.name == "a" else title_el.find_parent("a")
            if link is None or not link.get("href"):
                continue
            url = canonical_url(absolute_url(link["href"], base_url), keep_params=POSTING_PARAMS)

        listings.append(
            RawListing(
                title=title,
                url=url,
                company=first_text(card, "[data-testid='company-name']", ".companyName", ".company"),
                location=first_text(card, "[data-testid='text-location']", ".companyLocation"),
                salary=first_text(
                    card,
                    "[data-testid='attribute_snippet_testid']",
                    ".salary-snippet-container",
                    ".salaryText",
                ),
            )
        )
    return listings


class IndeedAdapter(HttpListingAdapter):
    platform = JobPlatform.INDEED
    source = JobPlatform.INDEED.value
    base_url = BASE_URL
    empty_message = "Indeed: no results, the site may block automated requests"

    def __init__(self, fetcher: HttpFetcher, browser_factory: Optional[BrowserFactory] = None):
        super().__init__(fetcher)
        self.browser_factory = browser_factory or launch_browser
        self.keep_alive = False
        self._session: Optional[BrowserSession] = None

    def search_urls(self, keyword: str, location: Optional[str], page: int) -> list[str]:
        params = {"q": keyword}
        if location:
            params["l"] = location
        params["sort"] = "date"
        if page > 1:
            params["start"] = str((page - 1) * RESULTS_PER_PAGE)
        return [f"{self.base_url}/jobs?{urlencode(params)}"]

    def parse(self, html: str) -> list[RawListing]:
        return parse_indeed_results(html, self.base_url)

    def set_keep_alive(self, keep_alive: bool) -> None:
        self.keep_alive = keep_alive

    async def _get_session(self) -> BrowserSession:
        if self._session is None:
            self._session = await self.browser_factory()
        return self._session

    async def fetch_listings(self, url: str) -> list[RawListing]:
        session = await self._get_session()
        await self.fetcher.pause()
        await session.navigate(url, timeout_ms=30000)
        if not await session.wait_for(RESULT_SELECTOR, timeout_ms=10000):
            logger.info("Indeed: no job cards at %s, the page may be a captcha", url)
            return []
        return self.parse(await session.content())

    async def scrape(self, keywords: list[str], location: Optional[str] = None, page: int = 1) -> ScrapeResult:
        try:
            return await super().scrape(keywords, location, page)
        finally:
            if not self.keep_alive:
                await self.close()

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()
