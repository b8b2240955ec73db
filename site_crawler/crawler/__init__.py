"""site_crawler.crawler: scheduler, robots policy, visited set and I/O collaborators."""

from site_crawler.crawler.crawler import CrawlScheduler
from site_crawler.crawler.fetcher import Fetcher
from site_crawler.crawler.link_extractor import extract_links
from site_crawler.crawler.robots import RobotsPolicy, RuleSet, fetch_robots_document
from site_crawler.crawler.visited import VisitedSet

__all__ = [
    "CrawlScheduler",
    "Fetcher",
    "RobotsPolicy",
    "RuleSet",
    "VisitedSet",
    "extract_links",
    "fetch_robots_document",
]
