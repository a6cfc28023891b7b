"""
Crawl driver: seeds the scheduler, runs each task through
fetch -> extract -> dispatch, and flushes the visited set when done.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from .canonical import canonicalize, same_domain
from .fetcher import FetchResult, WebFetcher
from .parser import ContentParser
from .scheduler import CrawlTask, Scheduler
from ..errors import ExtractionError, FetchError, PersistenceError
from ..storage.visited_store import VisitedSet, VisitedStore
from ..utils.config import Config
from ..utils.logger import get_crawler_logger


class Transport(Protocol):
    async def fetch(self, url: str) -> FetchResult: ...


class LinkExtractor(Protocol):
    def extract_links(self, html_content: str, base_url: str) -> List[str]: ...


@dataclass
class CrawlStats:
    """Statistics for one crawl run."""
    start_time: float = field(default_factory=time.time)
    previously_visited: int = 0
    pages_fetched: int = 0
    fetch_errors: int = 0
    extraction_errors: int = 0
    unparsable_urls: int = 0
    duplicates_skipped: int = 0
    depth_skipped: int = 0
    links_discovered: int = 0
    tasks_created: int = 0
    total_bytes_downloaded: int = 0
    peak_in_flight: int = 0
    visited_total: int = 0
    interrupted: bool = False

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time


class CrawlDriver:
    """
    Orchestrates a depth-bounded, same-domain crawl.

    The visited set is claimed before any I/O for a URL, so each canonical
    URL is fetched at most once per run even when many pages link to it.
    """

    def __init__(self, config: Config,
                 transport: Optional[Transport] = None,
                 extractor: Optional[LinkExtractor] = None,
                 store: Optional[VisitedStore] = None):
        self.config = config
        self.max_depth = config.crawler.max_depth
        self.logger = get_crawler_logger(__name__)

        self.transport = transport or WebFetcher(
            user_agent=config.crawler.user_agent,
            request_timeout=config.crawler.request_timeout,
            max_concurrent_requests=config.crawler.max_concurrent_requests,
            retry_attempts=config.crawler.retry_attempts,
        )
        self._owns_transport = transport is None
        self.extractor = extractor or ContentParser()
        self.store = store or VisitedStore(
            config.storage.state_file,
            write_ahead=config.storage.write_ahead,
        )

        self.visited: Optional[VisitedSet] = None
        self.scheduler: Optional[Scheduler] = None
        self.stats = CrawlStats()
        self._stop_event: Optional[asyncio.Event] = None
        self._failure: Optional[PersistenceError] = None
        self._fetches_in_flight = 0

    async def run(self, seed_urls: Optional[Iterable[str]] = None) -> CrawlStats:
        """
        Crawl from the given seeds (or the configured ones) until quiescence
        or until stop() is called, then flush the visited set.

        Raises:
            PersistenceError: if the state file is corrupt or cannot be written,
                or a claim could not be journaled
        """
        seeds = list(seed_urls if seed_urls is not None else self.config.crawler.seed_urls)

        self.stats = CrawlStats()
        self._stop_event = asyncio.Event()
        self._failure = None
        self._fetches_in_flight = 0
        self.visited = self.store.load()
        self.stats.previously_visited = len(self.visited)
        self.scheduler = Scheduler(self.process_task, self.config.crawler.max_concurrent_requests)

        self.logger.info(
            f"Starting crawl: {len(seeds)} seed(s), max depth {self.max_depth}, "
            f"{self.config.crawler.max_concurrent_requests} concurrent requests, "
            f"{self.stats.previously_visited} URLs already visited"
        )

        try:
            for url in seeds:
                self.scheduler.submit(CrawlTask(url=url, depth=0))
                self.stats.tasks_created += 1

            if self.config.crawler.use_sitemap and seeds:
                await self._seed_from_sitemap(seeds[0])

            await self._run_until_done()
        finally:
            try:
                await self._close_transport()
            finally:
                try:
                    self.stats.visited_total = self.store.flush(self.visited)
                finally:
                    self.store.close()

        self._log_final_stats()
        if self._failure is not None:
            raise self._failure
        return self.stats

    async def _run_until_done(self):
        crawl_task = asyncio.create_task(self.scheduler.run())
        stop_task = asyncio.create_task(self._stop_event.wait())

        try:
            done, _ = await asyncio.wait(
                [crawl_task, stop_task],
                return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            self.stats.interrupted = True
            raise
        finally:
            for task in (crawl_task, stop_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(crawl_task, stop_task, return_exceptions=True)
            await self.scheduler.close()

        if crawl_task in done:
            # Surface unexpected scheduler failures
            crawl_task.result()
        if crawl_task not in done or self._stop_event.is_set():
            self.stats.interrupted = True
            self.logger.warning(f"Crawl stopped with {self.scheduler.pending} tasks still pending")

    def stop(self):
        """Request shutdown. Claimed URLs are still flushed."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def process_task(self, task: CrawlTask):
        """Run one task through the crawl state machine."""
        canonical = canonicalize(task.url)
        if canonical is None:
            self.stats.unparsable_urls += 1
            self.logger.log_url_event(logging.DEBUG, task.url, "Skipping unparsable URL", depth=task.depth)
            return

        if task.depth > self.max_depth:
            self.stats.depth_skipped += 1
            self.logger.log_url_event(logging.DEBUG, canonical, "Skipping URL beyond max depth", depth=task.depth)
            return

        # Claim before fetching so concurrent discoveries cannot both pass
        try:
            claimed = self.visited.claim(canonical)
        except PersistenceError as e:
            self._abort(e)
            return
        if not claimed:
            self.stats.duplicates_skipped += 1
            return

        self.logger.log_url_event(logging.INFO, canonical, f"Crawling: {canonical} (Depth: {task.depth})",
                                  depth=task.depth)

        try:
            content = await self._fetch(canonical)
            self.stats.pages_fetched += 1
            links = self._extract(content, canonical)
        except PersistenceError as e:
            self._abort(e)
            return
        except FetchError as e:
            self.stats.fetch_errors += 1
            self.logger.log_url_event(logging.WARNING, canonical, str(e), depth=task.depth)
            return
        except ExtractionError as e:
            self.stats.extraction_errors += 1
            self.logger.log_url_event(logging.WARNING, canonical, str(e), depth=task.depth)
            return

        self.stats.links_discovered += len(links)

        child_depth = task.depth + 1
        if child_depth > self.max_depth:
            return

        for link in links:
            self.scheduler.submit(CrawlTask(url=link, depth=child_depth, parent_url=canonical))
            self.stats.tasks_created += 1

    def _abort(self, error: PersistenceError):
        """Stop the crawl after a claim could not be recorded; run() re-raises it."""
        self.logger.error(f"Stopping crawl: {error}")
        if self._failure is None:
            self._failure = error
        self.stop()

    async def _fetch(self, url: str) -> str:
        if self.config.crawler.politeness_delay:
            await asyncio.sleep(self.config.crawler.politeness_delay)

        self._fetches_in_flight += 1
        self.stats.peak_in_flight = max(self.stats.peak_in_flight, self._fetches_in_flight)
        try:
            result = await asyncio.wait_for(
                self.transport.fetch(url),
                timeout=self.config.crawler.fetch_timeout
            )
        except asyncio.TimeoutError as e:
            raise FetchError(url, f"timed out after {self.config.crawler.fetch_timeout}s") from e
        finally:
            self._fetches_in_flight -= 1

        if result.error or result.content is None:
            raise FetchError(url, result.error or "empty response")

        self.stats.total_bytes_downloaded += len(result.content)
        return result.content

    def _extract(self, content: str, page_url: str) -> List[str]:
        """Resolve, canonicalize and filter the links of one page."""
        parse = getattr(self.extractor, 'parse', None)
        if self.config.crawler.use_canonical_link and parse is not None:
            parsed = parse(page_url, content)
            raw_links = parsed.links
            if parsed.canonical_url:
                self._claim_canonical_link(parsed.canonical_url, page_url)
        else:
            raw_links = self.extractor.extract_links(content, page_url)

        links: List[str] = []
        seen = set()
        for href in raw_links:
            link = canonicalize(href, base=page_url)
            if link is None or link in seen:
                continue
            seen.add(link)
            if not same_domain(link, page_url):
                continue
            if link in self.visited:
                continue
            links.append(link)
        return links

    def _claim_canonical_link(self, declared: str, page_url: str):
        """Mark the page's declared canonical URL as visited too."""
        alias = canonicalize(declared, base=page_url)
        if alias and alias != page_url and same_domain(alias, page_url):
            if self.visited.claim(alias):
                self.logger.log_url_event(logging.DEBUG, alias, f"Claimed canonical link of {page_url}")

    async def _seed_from_sitemap(self, seed_url: str):
        """Submit same-domain sitemap entries as extra depth-0 tasks."""
        parts = urlsplit(seed_url)
        sitemap_url = urlunsplit((parts.scheme, parts.netloc, '/sitemap.xml', '', ''))
        parse_sitemap = getattr(self.extractor, 'parse_sitemap', None)
        if parse_sitemap is None:
            return

        try:
            content = await self._fetch(sitemap_url)
            locations = parse_sitemap(sitemap_url, content)
        except (FetchError, ExtractionError) as e:
            self.logger.warning(f"Ignoring sitemap {sitemap_url}: {e}")
            return

        added = 0
        for loc in locations:
            url = canonicalize(loc)
            if url and same_domain(url, seed_url) and url not in self.visited:
                self.scheduler.submit(CrawlTask(url=url, depth=0, parent_url=sitemap_url))
                self.stats.tasks_created += 1
                added += 1
        self.logger.info(f"Added {added} URLs from {sitemap_url}")

    async def _close_transport(self):
        if self._owns_transport and hasattr(self.transport, 'close'):
            await self.transport.close()

    def _log_final_stats(self):
        stats = self.stats
        self.logger.info("=== CRAWL COMPLETED ===" if not stats.interrupted else "=== CRAWL INTERRUPTED ===")
        self.logger.info(f"Pages fetched: {stats.pages_fetched}")
        self.logger.info(f"Fetch errors: {stats.fetch_errors}")
        self.logger.info(f"Extraction errors: {stats.extraction_errors}")
        self.logger.info(f"Duplicates skipped: {stats.duplicates_skipped}")
        self.logger.info(f"Links discovered: {stats.links_discovered}")
        self.logger.info(f"Peak in-flight fetches: {stats.peak_in_flight}")
        if self.scheduler is not None:
            self.logger.info(f"Tasks dispatched: {self.scheduler.completed + self.scheduler.failed}")

        get_transport_stats = getattr(self.transport, 'get_stats', None)
        if get_transport_stats is not None:
            transport_stats = get_transport_stats()
            self.logger.info(
                f"Requests: {transport_stats['total_requests']} total, "
                f"{transport_stats['successful_requests']} successful, "
                f"{transport_stats['failed_requests']} failed, "
                f"{transport_stats['retries']} retries"
            )
        self.logger.info(f"Visited set size: {stats.visited_total} ({stats.previously_visited} before this run)")
        self.logger.info(f"Total time: {stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Data downloaded: {stats.total_bytes_downloaded / 1024 / 1024:.1f} MB")
