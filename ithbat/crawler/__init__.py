"""ithbat.crawler: search, fetch and bounded crawl of trusted sites."""

from .crawler import Crawler, CrawlState
from .fetcher import BrowserRenderer, PageFetcher
from .models import CrawledPage, CrawlProgress, SearchResult
from .search import SearchAdapter

__all__ = [
    "BrowserRenderer",
    "CrawlProgress",
    "CrawlState",
    "CrawledPage",
    "Crawler",
    "PageFetcher",
    "SearchAdapter",
    "SearchResult",
]
