from prospect_finder.models.business import Business
from prospect_finder.models.job import Job
from prospect_finder.models.scrape_log import ScrapeLog, ScrapeStatus

__all__ = [
    "Business",
    "Job",
    "ScrapeLog",
    "ScrapeStatus",
]
