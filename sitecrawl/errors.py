"""
Exception hierarchy for the crawler.
"""


class CrawlerError(Exception):
    """Base class for crawler errors."""
    pass


class UnparsableURL(CrawlerError):
    """Raised when a URL cannot be turned into a canonical URL."""

    def __init__(self, url: str):
        super().__init__(f"Unparsable URL: {url!r}")
        self.url = url


class FetchError(CrawlerError):
    """Network or HTTP failure while fetching a page."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ExtractionError(CrawlerError):
    """Page content could not be parsed for links."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to extract links from {url}: {reason}")
        self.url = url
        self.reason = reason


class PersistenceError(CrawlerError):
    """The visited-state file could not be read or written."""
    pass


class ConfigError(CrawlerError):
    """Invalid crawler configuration."""
    pass
