"""
Observer registry: ordered callback channels fired by the crawl engine.
"""

import re
from typing import Any, Callable, List, Optional, Tuple

from yarl import URL

URLCallback = Callable[[URL], Any]
PageCallback = Callable[[Any], Any]


def url_matches(pattern: Any, url: URL) -> bool:
    """Match a urls_like() pattern against the string or structured form of a URL."""
    link = str(url)

    if isinstance(pattern, re.Pattern):
        return pattern.search(link) is not None

    if isinstance(pattern, (set, frozenset)):
        return link in pattern or url in pattern

    if callable(pattern):
        return bool(pattern(url))

    return pattern == link or pattern == url


class ObserverRegistry:
    """
    Holds the four notification channels.

    Callbacks run synchronously in registration order. Exceptions raised by a
    callback are not caught here; they propagate to whoever triggered the
    dispatch.
    """

    def __init__(self):
        self._every_url: List[URLCallback] = []
        self._urls_like: List[Tuple[Any, URLCallback]] = []
        self._every_failed_url: List[URLCallback] = []
        self._every_page: List[PageCallback] = []

    def every_url(self, callback: URLCallback) -> URLCallback:
        """Call `callback` with every URL admitted into the queue."""
        self._every_url.append(callback)
        return callback

    def urls_like(self, pattern: Any, callback: Optional[URLCallback] = None):
        """
        Call `callback` with every admitted URL matching `pattern`.

        Without a callback, returns a decorator.
        """
        if callback is None:
            def decorator(func: URLCallback) -> URLCallback:
                self._urls_like.append((pattern, func))
                return func
            return decorator

        self._urls_like.append((pattern, callback))
        return callback

    def every_failed_url(self, callback: URLCallback) -> URLCallback:
        """Call `callback` with every URL that could not be fetched."""
        self._every_failed_url.append(callback)
        return callback

    def every_page(self, callback: PageCallback) -> PageCallback:
        """Call `callback` with every successfully fetched page."""
        self._every_page.append(callback)
        return callback

    def all_headers(self, callback: Callable[[Any], Any]) -> Callable[[Any], Any]:
        """Call `callback` with the response headers of every fetched page."""
        self._every_page.append(lambda page: callback(page.headers))
        return callback

    def notify_url(self, url: URL):
        for callback in self._every_url:
            callback(url)

        for pattern, callback in self._urls_like:
            if url_matches(pattern, url):
                callback(url)

    def notify_failed(self, url: URL):
        for callback in self._every_failed_url:
            callback(url)

    def notify_page(self, page):
        for callback in self._every_page:
            callback(page)

    def counts(self) -> dict:
        """Number of registered callbacks per channel."""
        return {
            'every_url': len(self._every_url),
            'urls_like': len(self._urls_like),
            'every_failed_url': len(self._every_failed_url),
            'every_page': len(self._every_page),
        }
