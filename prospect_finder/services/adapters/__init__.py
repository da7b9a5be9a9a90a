"""Job-board adapters and the platform catalogue."""
from __future__ import annotations

from typing import Optional

from prospect_finder.schemas.search import JobPlatform
from prospect_finder.services.adapters.actiris import ActirisAdapter
from prospect_finder.services.adapters.base import PlatformAdapter, ScrapeResult
from prospect_finder.services.adapters.ictjob import ICTJobAdapter
from prospect_finder.services.adapters.indeed import IndeedAdapter
from prospect_finder.services.adapters.jobat import JobatAdapter
from prospect_finder.services.adapters.jobsora import JobsoraAdapter
from prospect_finder.services.adapters.linkedin import LinkedInAdapter
from prospect_finder.services.browser import BrowserFactory
from prospect_finder.services.fetcher import HttpFetcher

JOB_PLATFORMS = {
    JobPlatform.LINKEDIN: {"name": "LinkedIn", "url": "https://www.linkedin.com", "browser": False},
    JobPlatform.INDEED: {"name": "Indeed", "url": "https://be.indeed.com", "browser": True},
    JobPlatform.ICTJOB: {"name": "ICTJob", "url": "https://www.ictjob.be", "browser": False},
    JobPlatform.JOBAT: {"name": "Jobat", "url": "https://www.jobat.be", "browser": False},
    JobPlatform.ACTIRIS: {"name": "Actiris", "url": "https://www.actiris.brussels", "browser": False},
    JobPlatform.JOBSORA: {"name": "Jobsora", "url": "https://be.jobsora.com", "browser": False},
}

_HTTP_ADAPTERS = {
    JobPlatform.LINKEDIN: LinkedInAdapter,
    JobPlatform.ICTJOB: ICTJobAdapter,
    JobPlatform.JOBAT: JobatAdapter,
    JobPlatform.ACTIRIS: ActirisAdapter,
    JobPlatform.JOBSORA: JobsoraAdapter,
}


def get_adapter_for_platform(
    platform: JobPlatform | str,
    fetcher: Optional[HttpFetcher] = None,
    browser_factory: Optional[BrowserFactory] = None,
) -> PlatformAdapter:
    """Build the adapter for *platform*; raises ValueError for an unknown id."""
    try:
        platform = JobPlatform(platform)
    except ValueError:
        raise ValueError(f"Unknown platform: {platform}") from None

    fetcher = fetcher or HttpFetcher()
    if platform == JobPlatform.INDEED:
        return IndeedAdapter(fetcher, browser_factory=browser_factory)
    return _HTTP_ADAPTERS[platform](fetcher)


__all__ = [
    "JOB_PLATFORMS",
    "PlatformAdapter",
    "ScrapeResult",
    "get_adapter_for_platform",
]
