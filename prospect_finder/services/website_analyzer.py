"""Website quality analyzer.

Pure HTML/HTTP heuristics, no rendering: each failing check adds a fixed weight
to a 0-100 "needs redesign" score. A higher score means the business's current
website is a stronger argument for building a new one.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

import httpx
from bs4 import BeautifulSoup

from prospect_finder.config import settings
from prospect_finder.exceptions import BlockedUrlError, ProspectFinderError
from prospect_finder.services.fetcher import HTTP_HEADERS, safe_get
from prospect_finder.services.url_guard import ensure_public_url

logger = logging.getLogger(__name__)

DEPRECATED_TAGS = [
    "font",
    "center",
    "marquee",
    "blink",
    "frame",
    "frameset",
    "applet",
    "basefont",
    "big",
    "strike",
    "tt",
]

COPYRIGHT_PATTERN = re.compile(r"©\s*(\d{4})|copyright\s*(\d{4})", re.IGNORECASE)
INLINE_STYLE_RATIO = 0.15
LAYOUT_TABLE_LIMIT = 2

NO_HTTPS_ISSUE = "No HTTPS - site is not secure"
HTTP_FALLBACK_ISSUE = "HTTPS does not work - fell back to HTTP"

ANALYZER_HEADERS = {
    **HTTP_HEADERS,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "fr-BE,fr;q=0.9,en;q=0.8",
}


@dataclass
class ScoreBreakdown:
    has_https: bool = False
    has_viewport: bool = False
    has_mobile_optimization: bool = False
    copyright_year: Optional[int] = None
    has_deprecated_tags: bool = False
    has_modern_meta: bool = False
    load_time_ms: Optional[int] = None
    has_inline_styles: bool = False
    has_favicon: bool = False
    has_accessibility: bool = False


@dataclass
class WebsiteAnalysis:
    url: str
    score: int
    checks: ScoreBreakdown
    issues: list[str] = field(default_factory=list)


def normalize_url(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


def calculate_score(checks: ScoreBreakdown, current_year: Optional[int] = None) -> int:
    current_year = current_year or datetime.now().year
    score = 0

    if not checks.has_https:
        score += 20

    if not checks.has_viewport:
        score += 25
    elif not checks.has_mobile_optimization:
        score += 15

    if checks.has_deprecated_tags:
        score += 15

    if not checks.has_modern_meta:
        score += 10

    if checks.copyright_year:
        years_old = current_year - checks.copyright_year
        if years_old >= 5:
            score += 15
        elif years_old >= 3:
            score += 10
        elif years_old >= 2:
            score += 5

    if checks.has_inline_styles:
        score += 5

    if not checks.has_favicon:
        score += 5

    if not checks.has_accessibility:
        score += 5

    if checks.load_time_ms:
        if checks.load_time_ms > 8000:
            score += 10
        elif checks.load_time_ms > 5000:
            score += 5

    return min(100, score)


def _has_mobile_signals(html: str, soup: BeautifulSoup) -> bool:
    if "@media" in html and ("max-width" in html or "min-width" in html):
        return True
    if soup.select("img[srcset], picture source"):
        return True
    if any(marker in html for marker in ("display:flex", "display: flex", "display:grid", "display: grid", "flexbox")):
        return True
    if "bootstrap" in html or soup.select('[class*="col-"]'):
        return True
    return "tailwind" in html or bool(soup.select('[class*="sm:"], [class*="md:"], [class*="lg:"]'))


def score_html(
    html: str,
    url: str,
    load_time_ms: Optional[int] = None,
    issues: Optional[list[str]] = None,
    current_year: Optional[int] = None,
    final_url: Optional[str] = None,
) -> WebsiteAnalysis:
    """Run every content check against one fetched page.

    *issues* carries findings made while fetching (such as the HTTP fallback);
    the page checks append after them. HTTPS is judged on *final_url*, the last
    redirect hop, when it is given.
    """
    current_year = current_year or datetime.now().year
    issues = list(issues or [])
    checks = ScoreBreakdown(has_https=(final_url or url).startswith("https://"), load_time_ms=load_time_ms)
    if not checks.has_https and HTTP_FALLBACK_ISSUE not in issues:
        issues.insert(0, NO_HTTPS_ISSUE)

    soup = BeautifulSoup(html, "html.parser")

    viewport = soup.find("meta", attrs={"name": "viewport"})
    checks.has_viewport = bool(viewport and viewport.get("content"))
    if not checks.has_viewport:
        issues.append("No viewport meta tag - not mobile friendly")

    checks.has_mobile_optimization = checks.has_viewport and _has_mobile_signals(html, soup)
    if checks.has_viewport and not checks.has_mobile_optimization:
        issues.append("Limited mobile optimisation")
    elif not checks.has_viewport:
        issues.append("Probably not responsive")

    for tag in DEPRECATED_TAGS:
        if soup.find(tag) is not None:
            checks.has_deprecated_tags = True
            issues.append(f"Uses obsolete <{tag}> tag")
            break

    layout_tables = [t for t in soup.find_all("table") if t.find("th") is None and not t.get("role")]
    if len(layout_tables) > LAYOUT_TABLE_LIMIT:
        checks.has_deprecated_tags = True
        issues.append("Uses tables for page layout")

    description = soup.find("meta", attrs={"name": "description"})
    checks.has_modern_meta = bool(
        soup.select('meta[property^="og:"]')
        or soup.select('meta[name^="twitter:"]')
        or (description and description.get("content"))
    )
    if not checks.has_modern_meta:
        issues.append("No modern meta tags (weak SEO)")

    body = soup.body or soup
    match = COPYRIGHT_PATTERN.search(body.get_text(" "))
    if match:
        checks.copyright_year = int(match.group(1) or match.group(2))
        if current_year - checks.copyright_year >= 2:
            issues.append(f"Outdated copyright ({checks.copyright_year})")

    total_elements = len(soup.find_all(True))
    styled = len(soup.find_all(style=True))
    checks.has_inline_styles = total_elements > 0 and styled / total_elements > INLINE_STYLE_RATIO
    if checks.has_inline_styles:
        issues.append("Too many inline styles")

    checks.has_favicon = bool(
        soup.select('link[rel="icon"], link[rel="shortcut icon"], link[rel="apple-touch-icon"]')
    )
    if not checks.has_favicon:
        issues.append("No favicon")

    images = soup.find_all("img")
    with_alt = [img for img in images if img.has_attr("alt")]
    has_aria = bool(soup.select("[aria-label], [aria-labelledby], [role]"))
    checks.has_accessibility = has_aria or (len(images) > 0 and len(with_alt) / len(images) > 0.5)
    if not checks.has_accessibility and len(images) > 3:
        issues.append("Weak accessibility (missing alt text)")

    if load_time_ms and load_time_ms > 5000:
        issues.append(f"Slow load time ({round(load_time_ms / 1000)}s)")

    return WebsiteAnalysis(
        url=url,
        score=calculate_score(checks, current_year),
        checks=checks,
        issues=issues,
    )


class WebsiteAnalyzer:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
        batch_pause: Optional[float] = None,
        max_redirects: Optional[int] = None,
    ):
        self.timeout = timeout or settings.analyzer_timeout
        self.concurrency = concurrency or settings.analyzer_concurrency
        self.batch_pause = settings.analyzer_batch_pause if batch_pause is None else batch_pause
        self.max_redirects = settings.analyzer_max_redirects if max_redirects is None else max_redirects
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(headers=ANALYZER_HEADERS, timeout=self.timeout)

    async def __aenter__(self) -> "WebsiteAnalyzer":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _fetch(self, url: str) -> httpx.Response:
        return await safe_get(
            self._client,
            url,
            max_redirects=self.max_redirects,
            headers=ANALYZER_HEADERS,
            timeout=self.timeout,
        )

    async def analyze(self, url: str) -> Optional[WebsiteAnalysis]:
        """Score one website, or return None when it could not be assessed."""
        normalized = normalize_url(url)
        try:
            await ensure_public_url(normalized)
        except BlockedUrlError as e:
            logger.warning("Skipping website analysis: %s", e)
            return None

        issues: list[str] = []
        started = time.monotonic()
        try:
            try:
                response = await self._fetch(normalized)
            except (httpx.HTTPError, ProspectFinderError) as e:
                if not normalized.startswith("https://"):
                    logger.info("Website %s unreachable: %s", normalized, e)
                    return None
                http_url = "http://" + normalized[len("https://"):]
                logger.info("HTTPS failed for %s (%s), retrying over HTTP", normalized, e)
                try:
                    response = await self._fetch(http_url)
                except (httpx.HTTPError, ProspectFinderError) as e:
                    logger.info("Website %s unreachable: %s", http_url, e)
                    return None
                normalized = http_url
                issues.append(HTTP_FALLBACK_ISSUE)

            load_time_ms = int((time.monotonic() - started) * 1000)
            if not response.is_success:
                logger.info("Website %s answered HTTP %d", normalized, response.status_code)
                return None

            return score_html(response.text, normalized, load_time_ms, issues, final_url=str(response.url))
        except Exception as e:
            logger.error("Website analysis failed for %s: %s", url, e)
            return None

    async def analyze_many(self, urls: Iterable[Optional[str]]) -> dict[str, Optional[WebsiteAnalysis]]:
        """Analyze in windows of ``concurrency`` URLs, pausing briefly between windows."""
        valid = list(dict.fromkeys(u for u in urls if u))
        results: dict[str, Optional[WebsiteAnalysis]] = {}
        for start in range(0, len(valid), self.concurrency):
            batch = valid[start:start + self.concurrency]
            analyses = await asyncio.gather(*(self.analyze(u) for u in batch))
            results.update(zip(batch, analyses))
            if start + self.concurrency < len(valid) and self.batch_pause > 0:
                await asyncio.sleep(self.batch_pause)
        return results
