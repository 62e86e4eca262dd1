"""
Crawler scheduler that drives the fetch/extract/enqueue loop and owns the
run/pause state of a crawl.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from yarl import URL

from .fetcher import FetchFailure, PageFetcher
from .observers import ObserverRegistry
from .parser import Page
from .rules import Rules
from .sessions import ProxySettings, SessionCache
from .url_frontier import URLFrontier
from .urls import URLLike, normalize_url
from ..utils.config import Config
from ..utils.logger import get_crawler_logger


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    urls_crawled: int = 0
    pages_fetched: int = 0
    errors: int = 0
    links_admitted: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.urls_crawled / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Coordinates the frontier, the fetcher and the observers.

    A scheduler starts paused. start_at() seeds the frontier and runs until
    the queue is empty or pause() is called. Pausing is cooperative: the page
    being fetched is finished, its links admitted and its observers notified
    before the loop stops. resume() carries on from the next queued URL.

    Exceptions raised by observer callbacks propagate out of the run loop.
    """

    def __init__(self, config: Optional[Config] = None,
                 fetcher: Optional[PageFetcher] = None):
        self.config = config or Config()
        crawler_config = self.config.crawler

        self.logger = get_crawler_logger(__name__)

        self.observers = ObserverRegistry()
        self.frontier = URLFrontier(
            schemes=crawler_config.schemes,
            host_rules=Rules(crawler_config.hosts, crawler_config.ignore_hosts),
            port_rules=Rules(crawler_config.ports, crawler_config.ignore_ports),
            link_rules=Rules(crawler_config.links, crawler_config.ignore_links),
            ext_rules=Rules(crawler_config.exts, crawler_config.ignore_exts),
            observers=self.observers
        )

        if crawler_config.queue:
            self.frontier.queue = crawler_config.queue
        if crawler_config.history:
            self.frontier.history = crawler_config.history

        self.sessions = SessionCache(
            proxy=ProxySettings(**asdict(self.config.proxy)),
            verify_ssl=crawler_config.verify_ssl,
            request_timeout=crawler_config.request_timeout
        )
        self.fetcher = fetcher or PageFetcher(
            self.sessions,
            user_agent=crawler_config.user_agent,
            referer=crawler_config.referer
        )

        self.delay = crawler_config.delay
        self.concurrency = crawler_config.concurrency

        # Crawl state
        self._paused = True
        self._looping = False
        self._in_flight = 0
        self._progress: Optional[asyncio.Event] = None
        self.stats = CrawlStats(start_time=time.time())

    @classmethod
    async def host(cls, name: str, config: Optional[Config] = None,
                   setup: Optional[Callable[['CrawlerScheduler'], Any]] = None) -> 'CrawlerScheduler':
        """Crawl every reachable page on the host `name`, starting at its root."""
        return await cls.site(f"http://{name}/", config, setup)

    @classmethod
    async def site(cls, url: URLLike, config: Optional[Config] = None,
                   setup: Optional[Callable[['CrawlerScheduler'], Any]] = None) -> 'CrawlerScheduler':
        """
        Crawl the host of `url`, starting at `url`.

        `setup` is called with the new scheduler before crawling starts, so
        observers can be registered. Sessions are closed when the crawl ends.
        """
        url = normalize_url(url)
        scheduler = cls(config)
        scheduler.host_rules.accept_like(url.host)

        if setup:
            setup(scheduler)

        try:
            await scheduler.start_at(url)
        finally:
            await scheduler.close()

        return scheduler

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Rule sets

    @property
    def host_rules(self) -> Rules:
        return self.frontier.host_rules

    @property
    def port_rules(self) -> Rules:
        return self.frontier.port_rules

    @property
    def link_rules(self) -> Rules:
        return self.frontier.link_rules

    @property
    def ext_rules(self) -> Rules:
        return self.frontier.ext_rules

    # Observers

    def every_url(self, callback):
        return self.observers.every_url(callback)

    def urls_like(self, pattern, callback=None):
        return self.observers.urls_like(pattern, callback)

    def every_failed_url(self, callback):
        return self.observers.every_failed_url(callback)

    def every_page(self, callback):
        return self.observers.every_page(callback)

    def all_headers(self, callback):
        return self.observers.all_headers(callback)

    # Frontier shortcuts

    @property
    def queue(self) -> List[URL]:
        return self.frontier.queue

    @property
    def history(self) -> List[URL]:
        return self.frontier.history

    @property
    def failures(self) -> List[URL]:
        return self.frontier.failures

    def enqueue(self, url: URLLike) -> bool:
        """Offer a URL to the frontier. Returns True if it was queued."""
        return self.frontier.admit(url)

    def is_visited(self, url: URLLike) -> bool:
        return self.frontier.is_visited(url)

    def is_failed(self, url: URLLike) -> bool:
        return self.frontier.is_failed(url)

    def clear(self) -> 'CrawlerScheduler':
        self.frontier.clear()
        return self

    def to_dict(self) -> dict:
        return self.frontier.to_dict()

    # State machine

    @property
    def running(self) -> bool:
        return not self._paused

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> 'CrawlerScheduler':
        """Stop the crawl after the page currently being visited."""
        if not self._paused:
            self.logger.info("Pausing crawler")
        self._paused = True
        return self

    async def start_at(self, url: URLLike) -> 'CrawlerScheduler':
        """Seed the frontier with `url` and crawl."""
        self.enqueue(url)
        return await self.resume()

    async def start(self, seed_urls: Iterable[URLLike]) -> 'CrawlerScheduler':
        """Seed the frontier with several URLs and crawl."""
        added_count = self.frontier.admit_all(seed_urls)
        self.logger.info(f"Added {added_count} seed URLs to frontier")
        return await self.resume()

    async def resume(self) -> 'CrawlerScheduler':
        """Switch to running and crawl until the queue empties or pause() is called."""
        self._paused = False
        return await self.run()

    continue_crawl = resume

    async def run(self) -> 'CrawlerScheduler':
        """Crawl while running and the queue is not empty."""
        if self._paused:
            return self

        if self._looping:
            self.logger.warning("Crawler is already running")
            return self

        self._looping = True
        self._progress = asyncio.Event()
        self.logger.info(f"Crawling with {self.concurrency} worker(s), "
                         f"{len(self.frontier)} URLs queued")

        try:
            if self.concurrency == 1:
                await self._worker(0)
            else:
                await self._run_workers()
        finally:
            self._looping = False
            self._log_current_stats()

        return self

    async def _run_workers(self):
        workers = [
            asyncio.create_task(self._worker(i))
            for i in range(self.concurrency)
        ]

        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, worker_id: int):
        """
        Worker coroutine that processes URLs from the frontier.

        A worker that finds the queue empty waits as long as other workers
        still have a fetch in flight, since those may admit new links.
        """
        logger = self.logger.bind(worker=worker_id)
        logger.debug(f"Worker {worker_id} started")

        while self.running:
            url = self.frontier.dequeue()

            if url is None:
                if not self._in_flight:
                    break
                self._progress.clear()
                await self._progress.wait()
                continue

            self._in_flight += 1
            try:
                await self.visit_page(url)
            except asyncio.CancelledError:
                # Interrupted mid-fetch: keep the URL for the next run
                if self.frontier.requeue(url):
                    logger.debug(f"Requeued interrupted visit to {url}")
                raise
            finally:
                self._in_flight -= 1
                self._progress.set()

            if self.delay and self.running and not self.frontier.is_empty():
                await asyncio.sleep(self.delay)

        logger.debug(f"Worker {worker_id} finished")

    async def visit_page(self, url: URL) -> Optional[Page]:
        """
        Fetch `url`, record the outcome and admit the links it contains.

        Returns the Page, or None if the fetch failed.
        """
        result = await self.fetcher.fetch(url)
        self.stats.urls_crawled += 1

        if isinstance(result, FetchFailure):
            self.stats.errors += 1
            self.logger.log_url_event(logging.WARNING, str(url), f"Failed to fetch {url}: {result.error}",
                                      event='failed', error=result.error)
            self.frontier.record_failed(url)
            return None

        page = result
        self.stats.pages_fetched += 1
        self.frontier.record_visited(page.url)

        added_count = self.frontier.admit_all(page.urls)
        self.stats.links_admitted += added_count
        self.logger.log_url_event(logging.DEBUG, str(url),
                                  f"Visited {url} ({page.status}), queued {added_count} new URLs",
                                  event='visited', status=page.status)

        self.observers.notify_page(page)
        return page

    def _log_current_stats(self):
        """Log current crawl statistics."""
        frontier_stats = self.frontier.get_stats()

        self.logger.log_crawl_progress(
            f"Crawl Progress: "
            f"Crawled={self.stats.urls_crawled}, "
            f"Visited={frontier_stats['total_visited']}, "
            f"Queued={frontier_stats['total_queued']}, "
            f"Failed={frontier_stats['total_failed']}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min",
            frontier_stats
        )

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'urls_crawled': self.stats.urls_crawled,
            'pages_fetched': self.stats.pages_fetched,
            'errors': self.stats.errors,
            'links_admitted': self.stats.links_admitted,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'frontier': self.frontier.get_stats(),
            'fetcher': self.fetcher.get_stats(),
            'sessions': len(self.sessions),
            'is_running': self.running
        }

    async def close(self):
        """Close all cached sessions."""
        await self.sessions.close()
        self.logger.info("Crawler scheduler closed")
