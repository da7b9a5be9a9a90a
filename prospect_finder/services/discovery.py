"""Discovery entry points: job aggregation and business prospecting.

Both runs report through a :class:`ProgressReporter`, which makes progress an
optional sink: the HTTP layer streams it, batch callers just await the result.
Each run is the single owner of its dedup sets and browser sessions.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union

from prospect_finder.config import settings
from prospect_finder.models import ScrapeStatus
from prospect_finder.schemas.progress import ProgressPhase
from prospect_finder.schemas.search import BusinessDiscoveryConfig, JobDiscoveryConfig, JobPlatform
from prospect_finder.services.adapters import JOB_PLATFORMS, PlatformAdapter, get_adapter_for_platform
from prospect_finder.services.browser import BrowserFactory
from prospect_finder.services.description_enricher import DescriptionEnricher
from prospect_finder.services.fetcher import HttpFetcher
from prospect_finder.services.keywords import expand_keywords
from prospect_finder.services.maps_crawler import DEFAULT_CATEGORY, BusinessCrawler
from prospect_finder.services.progress import ProgressReporter
from prospect_finder.services.rate_limit import RateGate
from prospect_finder.services.records import JobPosting, ProspectBusiness, business_key
from prospect_finder.services.store import BusinessSink, JobSink, RunLog
from prospect_finder.services.website_analyzer import WebsiteAnalyzer

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[JobPlatform], PlatformAdapter]


@dataclass
class DiscoveryResult:
    items: list = field(default_factory=list)
    items_found: int = 0
    total_found: int = 0
    errors: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


def sort_businesses(businesses: list[ProspectBusiness]) -> list[ProspectBusiness]:
    """Best prospects first.

    No website beats any website (more reviews first); among websites the worst
    score comes first and unassessed sites come last. Ties go to review count.
    """

    def sort_key(business: ProspectBusiness) -> tuple:
        reviews = business.review_count or 0
        if not business.has_website:
            return (0, 0, -reviews)
        if business.website_score is None:
            return (2, 0, -reviews)
        return (1, -business.website_score, -reviews)

    return sorted(businesses, key=sort_key)


def _platform_name(platform: JobPlatform) -> str:
    return JOB_PLATFORMS[platform]["name"]


def _source_error(name: str, message: str) -> str:
    return message if message.startswith(f"{name}:") else f"{name}: {message}"


def _open_log(store: Optional[RunLog], type: str, source: str) -> Optional[int]:
    if store is None:
        return None
    try:
        return store.start_log(type, source)
    except Exception as e:
        logger.error("Could not open scrape log: %s", e)
        return None


def _close_log(
    store: Optional[RunLog],
    log_id: Optional[int],
    status: ScrapeStatus,
    items_found: int = 0,
    errors: Optional[list[str]] = None,
) -> None:
    if store is None or log_id is None:
        return
    try:
        store.finish_log(log_id, status, items_found, "; ".join(errors) if errors else None)
    except Exception as e:
        logger.error("Could not close scrape log %s: %s", log_id, e)


def _persist_in_batches(save: Callable[[list], int], items: list, batch_size: int, errors: list[str]) -> int:
    """Write *items* in fixed-size batches; a failed batch is recorded and skipped."""
    saved = 0
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        try:
            saved += save(batch)
        except Exception as e:
            number = start // batch_size + 1
            logger.error("Saving batch %d failed: %s", number, e)
            errors.append(f"Saving batch {number} failed: {e}")
    return saved


async def discover_jobs(
    config: Union[JobDiscoveryConfig, dict[str, Any]],
    *,
    reporter: Optional[ProgressReporter] = None,
    store: Optional[JobSink] = None,
    gate: Optional[RateGate] = None,
    adapter_factory: Optional[AdapterFactory] = None,
    enricher: Optional[DescriptionEnricher] = None,
    fetcher: Optional[HttpFetcher] = None,
    browser_factory: Optional[BrowserFactory] = None,
    max_pages: Optional[int] = None,
    budget_seconds: Optional[float] = None,
) -> DiscoveryResult:
    """Search every platform for the expanded keywords and collect new postings.

    Invalid configs raise ``pydantic.ValidationError`` (or ``ValueError``) before
    any network activity.
    """
    if not isinstance(config, JobDiscoveryConfig):
        config = JobDiscoveryConfig.model_validate(config)
    keywords = expand_keywords(config.keywords)
    max_pages = max_pages or settings.max_pages
    budget_seconds = budget_seconds or settings.run_budget_seconds
    deadline = time.monotonic() + budget_seconds
    reporter = reporter or ProgressReporter()

    own_fetcher = fetcher is None and adapter_factory is None
    if adapter_factory is None:
        fetcher = fetcher or HttpFetcher()
        adapter_factory = lambda p: get_adapter_for_platform(p, fetcher=fetcher, browser_factory=browser_factory)  # noqa: E731

    platforms = config.platforms
    errors: list[str] = []
    accepted: list[JobPosting] = []
    adapters: dict[JobPlatform, PlatformAdapter] = {}
    log_id = _open_log(store, "jobs", ",".join(p.value for p in platforms))

    try:
        await reporter.emit(
            ProgressPhase.INIT,
            0,
            f"Searching {len(platforms)} platform(s) for {len(keywords)} keyword(s)",
            total=config.max_results,
        )

        seen: set[str] = set()
        if store is not None:
            since = datetime.now() - timedelta(days=settings.existing_job_window_days)
            seen.update(store.existing_job_urls(since))
            logger.info("Loaded %d known job URLs", len(seen))

        steps = max_pages * len(platforms)
        try:
            for page in range(1, max_pages + 1):
                new_this_pass = 0
                for index, platform in enumerate(platforms):
                    if len(accepted) >= config.max_results:
                        break
                    if time.monotonic() >= deadline:
                        errors.append("Run budget exhausted, stopping early")
                        break

                    name = _platform_name(platform)
                    step = (page - 1) * len(platforms) + index
                    await reporter.emit(
                        ProgressPhase.SCRAPING,
                        step / steps * 80,
                        f"Searching {name} (page {page})...",
                        current=len(accepted),
                        total=config.max_results,
                        item=platform.value,
                    )

                    if gate is not None and not await gate(platform.value):
                        errors.append(f"{name}: too many requests")
                        continue

                    adapter = adapters.get(platform)
                    if adapter is None:
                        adapter = adapters[platform] = adapter_factory(platform)
                        adapter.set_keep_alive(True)

                    try:
                        result = await adapter.scrape(keywords, config.location, page)
                    except Exception as e:
                        logger.error("%s scrape failed: %s", name, e)
                        errors.append(_source_error(name, str(e)))
                        await reporter.emit(
                            ProgressPhase.SCRAPING,
                            step / steps * 80,
                            f"{name} failed: {e}",
                            current=len(accepted),
                            total=config.max_results,
                            item=platform.value,
                        )
                        continue

                    if result.error and not result.jobs and page == 1:
                        errors.append(_source_error(name, result.error))

                    added = 0
                    for job in result.jobs:
                        if len(accepted) >= config.max_results:
                            break
                        if not job.is_persistable or job.url in seen or not job.keywords_matched:
                            continue
                        seen.add(job.url)
                        accepted.append(job)
                        added += 1
                    new_this_pass += added

                    await reporter.emit(
                        ProgressPhase.SCRAPING,
                        (step + 1) / steps * 80,
                        f"{name}: {added} new job(s)",
                        current=len(accepted),
                        total=config.max_results,
                        item=platform.value,
                    )

                if len(accepted) >= config.max_results or new_this_pass == 0 or time.monotonic() >= deadline:
                    break
        finally:
            for adapter in adapters.values():
                try:
                    await adapter.close()
                except Exception as e:
                    logger.warning("Closing %s adapter failed: %s", adapter.source, e)
            if own_fetcher and fetcher is not None:
                await fetcher.aclose()

        total_found = len(accepted)
        logger.info("Accepted %d job(s), %d error(s)", total_found, len(errors))

        if accepted:
            await reporter.emit(
                ProgressPhase.DESCRIPTIONS,
                82,
                "Fetching job descriptions...",
                total=total_found,
            )
            own_enricher = enricher is None
            enricher = enricher or DescriptionEnricher(browser_factory=browser_factory)

            async def on_batch(done: int, total: int) -> None:
                await reporter.emit(
                    ProgressPhase.DESCRIPTIONS,
                    82 + done / total * 10,
                    f"Descriptions {done}/{total}",
                    current=done,
                    total=total,
                )

            try:
                await enricher.enrich(accepted, on_batch=on_batch)
            finally:
                if own_enricher:
                    await enricher.aclose()

        items_found = total_found
        if store is not None and accepted:
            await reporter.emit(ProgressPhase.SAVING, 93, f"Saving {total_found} job(s)...", total=total_found)
            items_found = _persist_in_batches(store.upsert_jobs, accepted, settings.persist_batch_size, errors)

        _close_log(store, log_id, ScrapeStatus.COMPLETED, items_found, errors)
        await reporter.complete(items_found, total_found, errors, f"Done! {items_found} new job(s) found")
        return DiscoveryResult(items=accepted, items_found=items_found, total_found=total_found, errors=errors)

    except asyncio.CancelledError:
        logger.warning("Job discovery cancelled")
        _close_log(store, log_id, ScrapeStatus.FAILED, 0, errors + ["Run cancelled"])
        raise
    except Exception as e:
        logger.exception("Job discovery failed")
        _close_log(store, log_id, ScrapeStatus.FAILED, 0, [str(e)])
        if not reporter.finished:
            await reporter.fail(str(e))
        return DiscoveryResult(errors=errors, error=str(e))


async def discover_businesses(
    config: Union[BusinessDiscoveryConfig, dict[str, Any]],
    *,
    reporter: Optional[ProgressReporter] = None,
    store: Optional[BusinessSink] = None,
    gate: Optional[RateGate] = None,
    crawler: Optional[BusinessCrawler] = None,
    analyzer: Optional[WebsiteAnalyzer] = None,
    browser_factory: Optional[BrowserFactory] = None,
    low_quality_threshold: Optional[int] = None,
    budget_seconds: Optional[float] = None,
) -> DiscoveryResult:
    """Crawl map results for each category and return the best prospects.

    Invalid configs raise ``pydantic.ValidationError`` before the browser starts.
    """
    if not isinstance(config, BusinessDiscoveryConfig):
        config = BusinessDiscoveryConfig.model_validate(config)
    threshold = settings.low_quality_threshold if low_quality_threshold is None else low_quality_threshold
    budget_seconds = budget_seconds or settings.run_budget_seconds
    deadline = time.monotonic() + budget_seconds
    reporter = reporter or ProgressReporter()
    crawler = crawler or BusinessCrawler(browser_factory=browser_factory)
    location = config.location_query
    max_results = config.max_results
    categories = config.categories or [DEFAULT_CATEGORY]

    errors: list[str] = []
    accepted: list[ProspectBusiness] = []
    log_id = _open_log(store, "businesses", location)

    try:
        await reporter.emit(ProgressPhase.INIT, 5, "Launching browser...", total=max_results)

        known = {business_key(b.name, b.address) for b in config.exclude_existing}
        if store is not None:
            known.update(store.existing_business_keys(location))
        batch_keys: set[str] = set()

        await crawler.open()
        try:
            pending: list[tuple[str, list[str]]] = []
            for index, category in enumerate(categories):
                await reporter.emit(
                    ProgressPhase.SEARCHING,
                    10 + index / len(categories) * 15,
                    f"Searching: {category}...",
                    current=index,
                    total=len(categories),
                    item=category,
                )
                if time.monotonic() >= deadline:
                    errors.append("Run budget exhausted, stopping early")
                    break
                if gate is not None and not await gate(category):
                    errors.append(f"{category}: too many requests")
                    continue
                try:
                    links = await crawler.search(category, location, target=max_results * 2)
                except Exception as e:
                    logger.error("Search for '%s' failed: %s", category, e)
                    errors.append(f"{category}: {e}")
                    continue
                pending.append((category, links))

            total_links = sum(len(links) for _, links in pending)
            await reporter.emit(
                ProgressPhase.SEARCHING,
                25,
                f"{total_links} result(s) to inspect",
                current=len(categories),
                total=len(categories),
            )

            processed = 0
            for category, links in pending:
                for href in links:
                    if len(accepted) >= max_results or time.monotonic() >= deadline:
                        break
                    processed += 1
                    await reporter.emit(
                        ProgressPhase.EXTRACTING,
                        25 + len(accepted) / max_results * 55,
                        f"Extracting {processed}/{total_links}...",
                        current=len(accepted),
                        total=max_results,
                    )
                    try:
                        business = await crawler.extract(href, category, location)
                    except Exception as e:
                        logger.warning("Extracting %s failed: %s", href, e)
                        continue
                    if business is None:
                        continue

                    key = business.key
                    if key in known or key in batch_keys:
                        continue
                    if config.min_rating and business.rating is not None and business.rating < config.min_rating:
                        continue

                    batch_keys.add(key)
                    accepted.append(business)
                    logger.info("Added: %s | website: %s", business.name, business.website_url or "none")
                    await reporter.emit(
                        ProgressPhase.EXTRACTING,
                        25 + len(accepted) / max_results * 55,
                        f"Found: {business.name}",
                        current=len(accepted),
                        total=max_results,
                        item=business.name,
                    )
        finally:
            await crawler.close()

        urls = [b.website_url for b in accepted if b.has_website]
        await reporter.emit(
            ProgressPhase.ANALYZING,
            80,
            f"Analyzing {len(urls)} website(s)...",
            current=0,
            total=len(urls),
        )
        if urls:
            own_analyzer = analyzer is None
            analyzer = analyzer or WebsiteAnalyzer()
            try:
                analyses = await analyzer.analyze_many(urls)
            finally:
                if own_analyzer:
                    await analyzer.aclose()

            prospects = []
            for business in accepted:
                analysis = analyses.get(business.website_url) if business.has_website else None
                if analysis is not None:
                    business.website_score = analysis.score
                    business.website_issues = list(analysis.issues)
                    if analysis.score < threshold:
                        logger.info("Skipping %s: good website (score %d)", business.name, analysis.score)
                        continue
                prospects.append(business)
        else:
            prospects = list(accepted)

        await reporter.emit(
            ProgressPhase.ANALYZING,
            95,
            f"{len(prospects)} prospect(s) after website analysis",
            current=len(urls),
            total=len(urls),
        )

        final = sort_businesses(prospects)[:max_results]
        items_found = len(final)
        if store is not None and final:
            await reporter.emit(ProgressPhase.SAVING, 97, f"Saving {len(final)} business(es)...", total=len(final))
            items_found = _persist_in_batches(store.upsert_businesses, final, settings.persist_batch_size, errors)

        _close_log(store, log_id, ScrapeStatus.COMPLETED, items_found, errors)
        await reporter.complete(items_found, len(accepted), errors, f"Done! {len(final)} result(s) found")
        return DiscoveryResult(items=final, items_found=items_found, total_found=len(accepted), errors=errors)

    except asyncio.CancelledError:
        logger.warning("Business discovery cancelled")
        _close_log(store, log_id, ScrapeStatus.FAILED, 0, errors + ["Run cancelled"])
        raise
    except Exception as e:
        logger.exception("Business discovery failed")
        _close_log(store, log_id, ScrapeStatus.FAILED, 0, [str(e)])
        if not reporter.finished:
            await reporter.fail(str(e))
        return DiscoveryResult(errors=errors, error=str(e))
