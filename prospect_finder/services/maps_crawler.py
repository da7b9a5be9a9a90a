"""Map-search crawler for local businesses.

The crawler drives one :class:`BrowserSession` through two stages: ``search``
loads a results feed and scrolls it until enough place links are collected, and
``extract`` opens one place and reads its detail pane. Deduplication, filtering
and progress reporting belong to the caller.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote

from prospect_finder.config import settings
from prospect_finder.services.browser import BrowserFactory, BrowserSession, launch_browser
from prospect_finder.services.records import ProspectBusiness
from prospect_finder.utils.text_processing import clean_text, parse_rating, parse_review_count

logger = logging.getLogger(__name__)

MAPS_SEARCH_URL = "https://www.google.com/maps/search/{query}"
DEFAULT_CATEGORY = "businesses"

CONSENT_SELECTORS = [
    'button[aria-label*="Accept all"]',
    'button[aria-label*="Tout accepter"]',
    'button[aria-label*="Accepter tout"]',
    '[aria-label*="Accept"]',
]
FEED_SELECTOR = '[role="feed"], .m6QErb.DxyBCb'
DETAIL_SELECTOR = "h1"

# Stop scrolling after this many batches in a row bring no new link
STALE_SCROLL_LIMIT = 2

PLACE_LINKS_SCRIPT = """() => Array.from(
    document.querySelectorAll('a[href*="/maps/place/"]'),
    (a) => a.href
)"""

PLACE_DETAILS_SCRIPT = """() => {
    const text = (el) => (el && el.textContent ? el.textContent.trim() : null);
    const name = text(document.querySelector("h1.DUwDvf"))
        || text(document.querySelector('[data-item-id="title"] h1'))
        || text(document.querySelector("h1"));
    if (!name) return null;

    const reviewEl = document.querySelector(
        'div.F7nice span[aria-label*="review"], div.F7nice span[aria-label*="avis"]'
    );
    let reviews = reviewEl ? reviewEl.getAttribute("aria-label") : null;
    if (!reviews) {
        const match = (text(document.querySelector("div.F7nice")) || "").match(/\\((\\d[\\d.,\\s]*)\\)/);
        reviews = match ? match[1] : null;
    }

    const addressEl = document.querySelector('button[data-item-id="address"]');
    const phoneEl = document.querySelector('button[data-item-id^="phone"]');
    const websiteEl = document.querySelector('a[data-item-id="authority"]');
    return {
        name,
        rating: text(document.querySelector('div.F7nice span[aria-hidden="true"]')),
        reviews,
        category: text(document.querySelector('button[jsaction*="category"]')),
        address: (addressEl && addressEl.getAttribute("aria-label")) || text(addressEl),
        phone: (phoneEl && phoneEl.getAttribute("aria-label")) || text(phoneEl),
        website: websiteEl ? websiteEl.href : null,
        url: window.location.href,
    };
}"""


def build_search_url(category: str, location: str) -> str:
    return MAPS_SEARCH_URL.format(query=quote(f"{category} near {location}"))


def _strip_label(value: Optional[str], *prefixes: str) -> Optional[str]:
    text = clean_text(value)
    for prefix in prefixes:
        if text.lower().startswith(prefix.lower()):
            text = text[len(prefix):].lstrip(" :").strip()
    return text or None


def _clean_phone(value: Optional[str]) -> Optional[str]:
    phone = _strip_label(value, "Phone", "Téléphone", "Numéro de téléphone")
    if not phone:
        return None
    phone = "".join(ch for ch in phone if ch.isdigit() or ch in "+ -").strip()
    return phone or None


def business_from_details(details: Optional[dict[str, Any]], category: str, location: str) -> Optional[ProspectBusiness]:
    """Turn the detail-pane payload into a record; ``None`` when there is no name."""
    if not details:
        return None
    name = clean_text(details.get("name"))
    if not name:
        return None
    return ProspectBusiness(
        name=name,
        address=_strip_label(details.get("address"), "Address", "Adresse"),
        phone=_clean_phone(details.get("phone")),
        rating=parse_rating(details.get("rating")),
        review_count=parse_review_count(details.get("reviews")),
        category=clean_text(details.get("category")) or category,
        maps_url=details.get("url") or None,
        website_url=details.get("website") or None,
        location_query=location,
    )


class BusinessCrawler:
    def __init__(
        self,
        browser_factory: Optional[BrowserFactory] = None,
        max_scroll_batches: Optional[int] = None,
        scroll_pause: Optional[float] = None,
        settle_delay: Optional[float] = None,
    ):
        self.browser_factory = browser_factory or launch_browser
        self.max_scroll_batches = max_scroll_batches or settings.max_scroll_batches
        self.scroll_pause = settings.maps_scroll_pause if scroll_pause is None else scroll_pause
        self.settle_delay = settings.maps_settle_delay if settle_delay is None else settle_delay
        self._session: Optional[BrowserSession] = None

    @property
    def session(self) -> BrowserSession:
        if self._session is None:
            raise RuntimeError("Crawler is not open")
        return self._session

    async def open(self) -> None:
        if self._session is None:
            self._session = await self.browser_factory()

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    async def __aenter__(self) -> "BusinessCrawler":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def dismiss_consent(self) -> bool:
        for selector in CONSENT_SELECTORS:
            if await self.session.click(selector):
                logger.debug("Dismissed consent dialog via %s", selector)
                await self._pause(self.settle_delay)
                return True
        return False

    async def search(self, category: str, location: str, target: int) -> list[str]:
        """Load the results feed for one category and collect place links.

        Scrolls in batches until *target* links are known, the scroll ceiling is
        hit, or two batches in a row add nothing. Navigation errors propagate.
        """
        url = build_search_url(category, location)
        logger.info("Searching maps: %s", url)
        await self.session.navigate(url, timeout_ms=settings.navigation_timeout_ms)
        await self._pause(self.settle_delay)
        await self.dismiss_consent()

        links: list[str] = []
        seen: set[str] = set()
        stale = 0
        for batch in range(self.max_scroll_batches):
            hrefs = await self.session.evaluate(PLACE_LINKS_SCRIPT) or []
            new = [h for h in hrefs if h and h not in seen]
            seen.update(new)
            links.extend(new)
            if len(links) >= target:
                break
            stale = 0 if new else stale + 1
            if stale >= STALE_SCROLL_LIMIT:
                logger.info("No new results after %d scroll batches", batch + 1)
                break
            await self.session.scroll(FEED_SELECTOR)
            await self._pause(self.scroll_pause)

        logger.info("Found %d place links for '%s'", len(links), category)
        return links

    async def extract(self, href: str, category: str, location: str) -> Optional[ProspectBusiness]:
        """Open one place and read its detail pane."""
        await self.session.navigate(href, timeout_ms=settings.navigation_timeout_ms)
        await self.session.wait_for(DETAIL_SELECTOR, timeout_ms=10000)
        await self._pause(self.settle_delay)
        details = await self.session.evaluate(PLACE_DETAILS_SCRIPT)
        return business_from_details(details, category, location)
