"""Scraper package: crawl scheduling, page extraction and link ranking."""

from govscout.scraper.crawler import CrawlConfig, crawl
from govscout.scraper.extractor import HtmlExtractor, PageExtractor, open_extractor
from govscout.scraper.models import CrawlResult, ExtractedLink, PageContent, RankedLink
from govscout.scraper.ranker import RankerConfig, filter_by_score, group_by_category, rank_links
from govscout.scraper.robots import get_robots_info, is_url_allowed

__all__ = [
    "crawl",
    "CrawlConfig",
    "CrawlResult",
    "PageExtractor",
    "HtmlExtractor",
    "open_extractor",
    "PageContent",
    "ExtractedLink",
    "RankedLink",
    "RankerConfig",
    "rank_links",
    "filter_by_score",
    "group_by_category",
    "get_robots_info",
    "is_url_allowed",
]
