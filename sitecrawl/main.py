#!/usr/bin/env python3
"""
Command-line entry point for the crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .crawler.driver import CrawlDriver
from .errors import ConfigError, PersistenceError
from .utils.config import Config, load_config
from .utils.logger import setup_logging

DEFAULT_CONFIG = 'config.yaml'

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.driver: Optional[CrawlDriver] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self):
        """Stop the crawl gracefully on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self.driver:
                self.driver.stop()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal support
                self.logger.debug(f"Signal handlers unavailable for {signum}")

    async def run(self, config: Config) -> int:
        """Run the crawler and flush the visited set."""
        self.logger.info("=== WEB CRAWLER STARTING ===")
        self.logger.info(f"Seed URLs: {config.crawler.seed_urls}")
        self.logger.info(f"Max depth: {config.crawler.max_depth}")
        self.logger.info(f"Max concurrent requests: {config.crawler.max_concurrent_requests}")
        self.logger.info(f"State file: {config.storage.state_file}")

        self.driver = CrawlDriver(config)
        self.setup_signal_handlers()

        try:
            stats = await self.driver.run()
        except PersistenceError as e:
            self.logger.error(f"Persistence error: {e}")
            return EXIT_ERROR
        finally:
            self.logger.info("=== WEB CRAWLER FINISHED ===")

        return EXIT_INTERRUPTED if stats.interrupted else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sitecrawl',
        description="Crawl a site breadth-first up to a depth limit, remembering visited URLs between runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sitecrawl https://example.com                      # Crawl with defaults
  sitecrawl https://example.com --max-depth 2        # Stay within two hops of the seed
  sitecrawl https://example.com --config crawl.yaml  # Use a custom config
  MAX_CONCURRENT_REQUESTS=10 sitecrawl https://example.com
        """
    )

    parser.add_argument('seed_urls', nargs='*', metavar='URL',
                        help='Seed URL(s); defaults to crawler.seed_urls from the config')
    parser.add_argument('--config',
                        help=f'Path to configuration file (default: {DEFAULT_CONFIG} if present)')
    parser.add_argument('--max-depth', type=int, help='Maximum link depth from the seed')
    parser.add_argument('--max-concurrent', type=int, dest='max_concurrent_requests',
                        help='Maximum number of concurrent requests')
    parser.add_argument('--state-file', help='CSV file holding the visited URLs')
    parser.add_argument('--log-level', help='Logging level (DEBUG, INFO, WARNING, ...)')
    parser.add_argument('--json-logs', action='store_true', default=None, help='Emit JSON log lines')
    parser.add_argument('--version', action='version', version=f'sitecrawl {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG).exists():
        config_path = DEFAULT_CONFIG

    overrides = {
        'crawler': {
            'seed_urls': args.seed_urls or None,
            'max_depth': args.max_depth,
            'max_concurrent_requests': args.max_concurrent_requests,
        },
        'storage': {'state_file': args.state_file},
        'logging': {'level': args.log_level, 'json': args.json_logs},
    }

    try:
        config = load_config(config_path, overrides=overrides)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if not config.crawler.seed_urls:
        print("Error: please provide a website URL as an argument.", file=sys.stderr)
        print("Usage: sitecrawl <website_url>", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(config.logging)

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(config))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == '__main__':
    sys.exit(main())
