"""
Playwright-based property crawler.

This package walks the paginated search results of a listing site, visits
every property detail page and produces normalized PropertyRecords:
- Listing cards and detail pages (sites/)
- Pagination and crawl state machine (navigator, controller)
- Result aggregation and statistics (aggregator)
"""

from .base import PropertyRecord, CrawlState, CrawlReport, CrawlStatistics
from .config import SITES, SiteConfig, get_site_config
from .controller import CrawlController

__all__ = [
    'PropertyRecord',
    'CrawlState',
    'CrawlReport',
    'CrawlStatistics',
    'SITES',
    'SiteConfig',
    'get_site_config',
    'CrawlController',
]
