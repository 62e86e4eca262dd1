"""
Shared fixtures for the webspider test suite.
"""

import asyncio
from typing import Callable, Dict, Iterable, List, Optional

import pytest

from webspider.crawler import FetchFailure, Page, normalize_url
from webspider.utils.config import Config, CrawlerConfig


class FakeFetcher:
    """
    Stand-in for PageFetcher that serves pages from a link graph.

    `site` maps URL strings to the links found on that page. URLs listed in
    `failing` produce a FetchFailure and URLs in `hanging` never complete.
    Unknown URLs return an empty page.
    """

    def __init__(self, site: Optional[Dict[str, Iterable[str]]] = None,
                 failing: Iterable[str] = (),
                 on_fetch: Optional[Callable] = None,
                 hanging: Iterable[str] = ()):
        self.site = {str(normalize_url(k)): list(v) for k, v in (site or {}).items()}
        self.failing = {str(normalize_url(u)) for u in failing}
        self.hanging = {str(normalize_url(u)) for u in hanging}
        self.on_fetch = on_fetch
        self.fetched: List[str] = []

    async def fetch(self, url):
        link = str(url)
        self.fetched.append(link)

        if self.on_fetch:
            self.on_fetch(url)

        # Give other workers a chance to run
        await asyncio.sleep(0)

        if link in self.hanging:
            await asyncio.Event().wait()

        if link in self.failing:
            return FetchFailure(url=url, error="ClientConnectionError: refused")

        urls = tuple(normalize_url(u) for u in self.site.get(link, []))
        return Page(url=url, status=200, headers={'Content-Type': 'text/html'}, urls=urls)

    def get_stats(self):
        return {'total_requests': len(self.fetched)}


@pytest.fixture
def make_config():
    """Build a Config from crawler keyword arguments."""
    def factory(**crawler_options) -> Config:
        return Config(crawler=CrawlerConfig(**crawler_options))
    return factory


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def sample_html():
    return """
    <html>
      <head>
        <title>Example Domain</title>
        <link rel="stylesheet" href="/style.css">
        <script src="https://cdn.example.net/app.js"></script>
      </head>
      <body>
        <a href="/about">About</a>
        <a href="contact.html#form">Contact</a>
        <a href="#top">Top</a>
        <a href="mailto:info@example.com">Mail</a>
        <a href="javascript:void(0)">Nothing</a>
        <iframe src="https://example.org/embed"></iframe>
        <a href="http://example.org/b">Elsewhere</a>
      </body>
    </html>
    """
