"""
HTML and sitemap parsing: pulls raw hrefs, canonical links and sitemap
entries out of page markup.
"""

import logging
from typing import List, Optional
from dataclasses import dataclass, field
from bs4 import BeautifulSoup, SoupStrainer

from ..errors import ExtractionError

# Parse only the tags we need
LINK_STRAINER = SoupStrainer(['a', 'link'])


@dataclass
class ParsedContent:
    """Links found on one page."""
    url: str
    links: List[str] = field(default_factory=list)
    canonical_url: Optional[str] = None


class ContentParser:
    """
    Extracts links from HTML pages.

    Hrefs are returned exactly as written in the page; resolving and
    filtering them is up to the caller.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content and collect anchors and the canonical link.

        Raises:
            ExtractionError: if the markup cannot be parsed
        """
        if html_content is None:
            raise ExtractionError(url, "no content")

        try:
            soup = BeautifulSoup(html_content, self.features, parse_only=LINK_STRAINER)
        except Exception as e:
            raise ExtractionError(url, str(e)) from e

        parsed_content = ParsedContent(url=url)

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if href:
                parsed_content.links.append(href)

        canonical = soup.find('link', rel='canonical', href=True)
        if canonical:
            parsed_content.canonical_url = canonical['href'].strip() or None

        self.logger.debug(f"Parsed {url}: {len(parsed_content.links)} links")
        return parsed_content

    def extract_links(self, html_content: str, base_url: str) -> List[str]:
        """Return the raw href of every anchor on the page."""
        return self.parse(base_url, html_content).links

    def parse_sitemap(self, url: str, xml_content: str) -> List[str]:
        """
        Read the <loc> entries of a sitemap or sitemap index.

        Raises:
            ExtractionError: if the document cannot be parsed
        """
        try:
            soup = BeautifulSoup(xml_content, 'xml')
        except Exception as e:
            raise ExtractionError(url, str(e)) from e

        locations = [loc.get_text(strip=True) for loc in soup.find_all('loc')]
        return [loc for loc in locations if loc]
