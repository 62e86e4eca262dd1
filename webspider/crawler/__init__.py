"""
Web crawler core components.
"""

from .fetcher import FetchFailure, PageFetcher
from .observers import ObserverRegistry
from .parser import Page, PageParser
from .rules import Rules, match_pattern
from .scheduler import CrawlerScheduler, CrawlStats
from .sessions import HostSession, ProxySettings, SessionCache
from .url_frontier import URLFrontier
from .urls import InvalidURL, normalize_url

__all__ = [
    'FetchFailure', 'PageFetcher',
    'ObserverRegistry',
    'Page', 'PageParser',
    'Rules', 'match_pattern',
    'CrawlerScheduler', 'CrawlStats',
    'HostSession', 'ProxySettings', 'SessionCache',
    'URLFrontier',
    'InvalidURL', 'normalize_url'
]
