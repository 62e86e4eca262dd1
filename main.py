#!/usr/bin/env python3
"""
Main entry point for the web crawler.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

from webspider import __version__
from webspider.crawler import CrawlerScheduler, FetchFailure, InvalidURL, normalize_url
from webspider.utils.config import Config, ConfigError, load_config
from webspider.utils.logger import log_system_info, setup_logging
from webspider.utils.monitoring import initialize_monitoring

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CrawlerApp:
    """Main application class for the web crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)

    def setup_logging(self, config: Config):
        """Setup logging configuration."""
        setup_logging(config.logging)
        log_system_info()

    def setup_signal_handlers(self):
        """Pause the crawl on SIGINT/SIGTERM; the page in flight is finished first."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, pausing crawler...")
            if self.scheduler:
                self.scheduler.pause()

        for signum in HANDLED_SIGNALS:
            loop.add_signal_handler(signum, signal_handler, signum)

    def limit_pages(self, max_pages: int):
        """Pause the crawl once `max_pages` pages have been fetched."""
        fetched = 0

        def on_page(page):
            nonlocal fetched
            fetched += 1
            if fetched >= max_pages:
                self.logger.info(f"Reached max pages limit: {max_pages}")
                self.scheduler.pause()

        self.scheduler.every_page(on_page)

    async def run(self, config_path: str, seeds: Optional[List[str]] = None,
                  max_pages: Optional[int] = None, export_path: Optional[str] = None,
                  dry_run: bool = False) -> int:
        """Run the web crawler."""
        try:
            config = load_config(config_path)
            self.setup_logging(config)
            self.setup_signal_handlers()

            seed_urls = seeds or config.crawler.seed_urls

            self.logger.info("=== WEB CRAWLER STARTING ===")
            self.logger.info(f"Configuration loaded from: {config_path}")
            self.logger.info(f"Seed URLs: {seed_urls}")
            self.logger.info(f"Schemes: {config.crawler.schemes}")
            self.logger.info(f"Delay: {config.crawler.delay}s")
            self.logger.info(f"Concurrency: {config.crawler.concurrency}")
            if not config.crawler.verify_ssl:
                self.logger.warning("TLS certificate verification is disabled")

            self.scheduler = CrawlerScheduler(config)

            if dry_run:
                self.logger.info("DRY RUN MODE: No actual crawling will be performed")
                await self._dry_run(seed_urls)
                return 0

            monitor = None
            if config.monitoring.metrics_enabled:
                monitor = initialize_monitoring(config.monitoring.prometheus_port)
                monitor.attach(self.scheduler)

            if max_pages:
                self.limit_pages(max_pages)

            await self.scheduler.start(seed_urls)

            stats = self.scheduler.get_stats()
            self.logger.info("=== CRAWL FINISHED ===")
            self.logger.info(f"Pages fetched: {stats['pages_fetched']}")
            self.logger.info(f"Failures: {stats['errors']}")
            self.logger.info(f"URLs remaining in queue: {stats['frontier']['total_queued']}")
            self.logger.info(f"Hosts visited: {stats['frontier']['visited_hosts']}")
            if monitor:
                self.logger.info(f"Metrics: {monitor.get_summary()['metrics']}")

            if export_path:
                with open(export_path, 'w') as f:
                    json.dump(self.scheduler.to_dict(), f, indent=2)
                self.logger.info(f"Crawl state exported to {export_path}")

        except (ConfigError, FileNotFoundError, InvalidURL) as e:
            self.logger.error(f"Configuration error: {e}")
            return 1

        finally:
            for signum in HANDLED_SIGNALS:
                asyncio.get_running_loop().remove_signal_handler(signum)
            if self.scheduler:
                await self.scheduler.close()

        return 0

    async def _dry_run(self, seed_urls: List[str]):
        """Fetch the first seed URL to test configuration and connectivity."""
        if not seed_urls:
            self.logger.warning("No seed URLs configured")
            return

        url = normalize_url(seed_urls[0])
        result = await self.scheduler.fetcher.fetch(url)
        if isinstance(result, FetchFailure):
            self.logger.warning(f"Test fetch failed: {result.error}")
        else:
            self.logger.info(f"Test fetch successful: {result.status}, {len(result.urls)} links")

        self.logger.info("Dry run completed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='webspider',
        description="Rule-constrained web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  webspider                                  # Crawl using ./config.yaml
  webspider --config site.yaml               # Use another configuration file
  webspider --seed https://example.com/      # Override crawler.seed_urls
  webspider --max-pages 100                  # Pause after 100 pages
  webspider --export state.json              # Save history and queue for later
  webspider --dry-run                        # Fetch the first seed only
        """
    )

    parser.add_argument('--config', default='config.yaml',
                        help='Path to configuration file (default: config.yaml)')
    parser.add_argument('--seed', action='append', dest='seeds', metavar='URL',
                        help='Seed URL (repeatable, overrides crawler.seed_urls)')
    parser.add_argument('--max-pages', type=int, metavar='N',
                        help='Pause the crawl after N fetched pages')
    parser.add_argument('--export', metavar='PATH',
                        help='Write the crawl history and queue to this JSON file')
    parser.add_argument('--dry-run', action='store_true',
                        help='Load the configuration and fetch the first seed without crawling')
    parser.add_argument('--version', action='version', version=f'webspider {__version__}')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    app = CrawlerApp()
    return asyncio.run(app.run(
        config_path=args.config,
        seeds=args.seeds,
        max_pages=args.max_pages,
        export_path=args.export,
        dry_run=args.dry_run
    ))


if __name__ == '__main__':
    sys.exit(main())
