"""
Crawler core components.
"""

from .canonical import canonicalize, require_canonical, same_domain
from .fetcher import WebFetcher, FetchResult
from .parser import ContentParser, ParsedContent
from .scheduler import Scheduler, CrawlTask

__all__ = [
    'canonicalize', 'require_canonical', 'same_domain',
    'WebFetcher', 'FetchResult',
    'ContentParser', 'ParsedContent',
    'Scheduler', 'CrawlTask',
]
