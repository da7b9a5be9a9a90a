"""HTTP fetch layer shared by the job adapters, the website analyzer and the enricher."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import urljoin

import httpx

from prospect_finder.config import settings
from prospect_finder.exceptions import FetchError
from prospect_finder.services.url_guard import ensure_public_url

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

# Headers that mimic a real browser for HTTP requests
HTTP_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5,fr;q=0.3",
    "Connection": "keep-alive",
}

REDIRECT_STATUSES = {301, 302, 303, 307, 308}


async def safe_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    max_redirects: int = 3,
    headers: Optional[dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> httpx.Response:
    """GET *url* following redirects by hand, re-checking every hop with the SSRF guard.

    Raises :class:`BlockedUrlError` when any hop points at a non-public address and
    :class:`FetchError` when the redirect chain is broken or too long.
    """
    current = url
    for _ in range(max_redirects + 1):
        await ensure_public_url(current)
        response = await client.get(
            current,
            headers=headers,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            follow_redirects=False,
        )
        if response.status_code in REDIRECT_STATUSES:
            location = response.headers.get("location")
            if not location:
                raise FetchError(current, f"Redirect with no Location header from {current}", response.status_code)
            current = urljoin(current, location)
            continue
        return response
    raise FetchError(url, f"Too many redirects (max {max_redirects}) fetching {url}")


class HttpFetcher:
    """Polite HTTP client: browser-like headers and a random pause before each request."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        delay_min: Optional[float] = None,
        delay_max: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.delay_min = settings.scrape_delay_min if delay_min is None else delay_min
        self.delay_max = settings.scrape_delay_max if delay_max is None else delay_max
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=HTTP_HEADERS,
            timeout=timeout or settings.http_timeout,
            follow_redirects=True,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_random_delay(self):
        if self.delay_max <= 0:
            return
        await asyncio.sleep(random.uniform(self.delay_min, self.delay_max))

    async def pause(self) -> None:
        await self._get_random_delay()

    async def _get(self, url: str, params: Optional[dict[str, Any]] = None, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        await self._get_random_delay()
        response = await self._client.get(url, params=params, headers=headers)
        logger.debug("GET %s -> %s (%d bytes)", response.url, response.status_code, len(response.content))
        if not response.is_success:
            raise FetchError(str(response.url), f"HTTP error! status: {response.status_code}", response.status_code)
        return response

    async def fetch_text(self, url: str, params: Optional[dict[str, Any]] = None) -> str:
        response = await self._get(url, params=params)
        return response.text

    async def fetch_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        response = await self._get(url, params=params, headers={"Accept": "application/json"})
        return response.json()

    async def fetch_public(self, url: str, max_redirects: int = 3, timeout: Optional[float] = None) -> str:
        """Fetch an arbitrary third-party URL through the SSRF guard."""
        await self._get_random_delay()
        response = await safe_get(self._client, url, max_redirects=max_redirects, timeout=timeout)
        if not response.is_success:
            raise FetchError(url, f"HTTP {response.status_code} fetching {url}", response.status_code)
        return response.text
