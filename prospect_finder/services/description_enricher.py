"""Fill in missing job descriptions by fetching each posting's own page."""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Iterable, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from prospect_finder.config import settings
from prospect_finder.services.browser import BrowserFactory, BrowserSession, launch_browser
from prospect_finder.services.fetcher import HttpFetcher
from prospect_finder.services.records import JobPosting
from prospect_finder.services.url_guard import ensure_public_url
from prospect_finder.utils.text_processing import clean_text, strip_tags

logger = logging.getLogger(__name__)

PLATFORM_SELECTORS: dict[str, list[str]] = {
    "linkedin": [".description__text", ".show-more-less-html__markup", ".jobs-description__content"],
    "indeed": ["#jobDescriptionText", ".jobsearch-jobDescriptionText", '[data-testid="jobDescriptionText"]'],
    "ictjob": [".job-description", ".job-info", ".vacancy-description"],
    "jobat": [".job-description", ".vacancy-description", ".job-detail__description"],
    "actiris": [".field--name-field-description", ".job-description", ".offer-description"],
    "jobsora": [".job-description", ".vacancy-description", ".description"],
}

GENERIC_SELECTORS = [
    '[class*="description"]',
    '[class*="job-detail"]',
    '[class*="vacancy"]',
    "article",
    "main",
    '[role="main"]',
]

NOISE_SELECTOR = "script, style, nav, footer, header, .navbar, .footer"

PLATFORM_HOSTS = [
    ("linkedin", ("linkedin.com",)),
    ("indeed", ("indeed.com", "indeed.be")),
    ("ictjob", ("ictjob.be",)),
    ("jobat", ("jobat.be",)),
    ("actiris", ("actiris.brussels",)),
    ("jobsora", ("jobsora.com",)),
]

ACTIRIS_API_URL = "https://www.actiris.brussels/api/offers/{offer_id}"
INDEED_DESCRIPTION_SELECTOR = "#jobDescriptionText, .jobsearch-jobDescriptionText"


def detect_platform(url: str) -> Optional[str]:
    host = (urlparse(url).hostname or "").lower()
    for platform, domains in PLATFORM_HOSTS:
        if any(host == d or host.endswith("." + d) for d in domains):
            return platform
    return None


def extract_description(
    html: str,
    platform: Optional[str] = None,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> str:
    """Pick the description text out of a job page.

    Platform selectors first, then generic content containers, then the whole
    body truncated to *max_length*. Selector matches must be longer than
    *min_length* characters to count.
    """
    min_length = settings.description_min_length if min_length is None else min_length
    max_length = max_length or settings.description_max_length

    soup = BeautifulSoup(html, "html.parser")
    for node in soup.select(NOISE_SELECTOR):
        node.decompose()

    for selector in PLATFORM_SELECTORS.get(platform or "", []) + GENERIC_SELECTORS:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = clean_text(node.get_text(" "))
        if len(text) > min_length:
            return text

    body = soup.body or soup
    return clean_text(body.get_text(" "))[:max_length]


class DescriptionEnricher:
    """Fetch descriptions in small concurrent batches, each fetch under a hard timeout."""

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        browser_factory: Optional[BrowserFactory] = None,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
    ):
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpFetcher(delay_min=1.0, delay_max=3.0)
        self.browser_factory = browser_factory or launch_browser
        self.concurrency = concurrency or settings.enricher_concurrency
        self.timeout = timeout or settings.enricher_timeout
        self.min_length = settings.description_min_length if min_length is None else min_length
        self.max_length = max_length or settings.description_max_length
        # Rendering may use at most half of an item's deadline; the HTTP fallback gets the rest
        self.render_timeout = self.timeout / 2
        self._session: Optional[BrowserSession] = None
        # One page per session: rendered fetches take turns
        self._browser_lock = asyncio.Lock()

    async def aclose(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()
        if self._owns_fetcher:
            await self.fetcher.aclose()

    def _extract(self, html: str, platform: Optional[str]) -> str:
        return extract_description(html, platform, self.min_length, self.max_length)

    async def _render(self, url: str) -> str:
        """Render *url* on the shared page. Callers hold ``_browser_lock``."""
        if self._session is None:
            self._session = await self.browser_factory()
        budget_ms = int(self.render_timeout * 1000)
        await self._session.navigate(url, timeout_ms=budget_ms, wait_until="networkidle")
        await self._session.wait_for(INDEED_DESCRIPTION_SELECTOR, timeout_ms=min(budget_ms, 10000))
        return await self._session.content()

    async def _fetch_actiris(self, url: str) -> Optional[str]:
        match = re.search(r"/(\d+)", urlparse(url).path)
        if not match:
            return None
        api_url = ACTIRIS_API_URL.format(offer_id=match.group(1))
        try:
            await ensure_public_url(api_url)
            data = await self.fetcher.fetch_json(api_url)
        except Exception as e:
            logger.debug("Actiris offer API failed for %s: %s", url, e)
            return None
        if isinstance(data, dict) and data.get("description"):
            return strip_tags(str(data["description"]))
        return None

    async def fetch_description(self, url: str) -> str:
        """Fetch and extract one description. Blocked URLs raise :class:`BlockedUrlError`.

        Indeed postings render on the shared page, so concurrent callers hold ``_browser_lock``.
        """
        await ensure_public_url(url)
        platform = detect_platform(url)

        if platform == "indeed":
            try:
                html = await asyncio.wait_for(self._render(url), timeout=self.render_timeout)
                description = self._extract(html, platform)
                if len(description) > self.min_length:
                    return description
            except asyncio.TimeoutError:
                logger.warning("Rendering %s timed out after %.1fs, falling back to HTTP", url, self.render_timeout)
            except Exception as e:
                logger.warning("Rendering %s failed, falling back to HTTP: %s", url, e)

        if platform == "actiris":
            description = await self._fetch_actiris(url)
            if description:
                return description

        html = await self.fetcher.fetch_public(url)
        return self._extract(html, platform)

    async def _fetch_within_deadline(self, url: str) -> str:
        return await asyncio.wait_for(self.fetch_description(url), timeout=self.timeout)

    async def _enrich_one(self, job: JobPosting) -> bool:
        try:
            if detect_platform(job.url) == "indeed":
                # The deadline starts once the shared page is ours, not while queueing for it
                async with self._browser_lock:
                    description = await self._fetch_within_deadline(job.url)
            else:
                description = await self._fetch_within_deadline(job.url)
        except asyncio.TimeoutError:
            logger.warning("Description fetch timed out after %.0fs: %s", self.timeout, job.url)
            return False
        except Exception as e:
            logger.warning("Description fetch failed for %s: %s", job.url, e)
            return False

        if len(description) < self.min_length:
            return False
        job.description = description
        return True

    async def enrich(
        self,
        jobs: Iterable[JobPosting],
        on_batch: Optional[Callable[[int, int], Awaitable[None]]] = None,
    ) -> int:
        """Populate ``description`` in place for postings that lack one; returns how many were filled."""
        pending = [job for job in jobs if not job.description and job.url]
        enriched = 0
        for start in range(0, len(pending), self.concurrency):
            batch = pending[start:start + self.concurrency]
            results = await asyncio.gather(*(self._enrich_one(job) for job in batch), return_exceptions=True)
            enriched += sum(1 for result in results if result is True)
            logger.info(
                "Descriptions: %d/%d fetched after batch %d",
                enriched,
                len(pending),
                start // self.concurrency + 1,
            )
            if on_batch is not None:
                await on_batch(min(start + self.concurrency, len(pending)), len(pending))
        return enriched
