from prospect_finder.services.description_enricher import DescriptionEnricher
from prospect_finder.services.discovery import DiscoveryResult, discover_businesses, discover_jobs, sort_businesses
from prospect_finder.services.keywords import expand_keywords
from prospect_finder.services.maps_crawler import BusinessCrawler
from prospect_finder.services.progress import ProgressReporter
from prospect_finder.services.rate_limit import RateLimiter
from prospect_finder.services.store import SqlAlchemyProspectStore
from prospect_finder.services.website_analyzer import WebsiteAnalyzer

__all__ = [
    "BusinessCrawler",
    "DescriptionEnricher",
    "DiscoveryResult",
    "ProgressReporter",
    "RateLimiter",
    "SqlAlchemyProspectStore",
    "WebsiteAnalyzer",
    "discover_businesses",
    "discover_jobs",
    "expand_keywords",
    "sort_businesses",
]
