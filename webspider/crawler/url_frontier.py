"""
URL Frontier implementation for managing URLs to crawl.
Implements admission control (scheme, host, port, link and extension rules)
and FIFO scheduling with visited/failed bookkeeping.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set

from yarl import URL

from .observers import ObserverRegistry
from .rules import Rules
from .urls import URLLike, normalize_url, url_extension

DEFAULT_SCHEMES = ('http', 'https')


class URLFrontier:
    """
    Manages the queue of URLs to visit, the history of visited URLs and the
    list of URLs that could not be fetched.

    admit() is the single gate for new URLs: a URL is only ever queued once
    and never queued after it has been visited or has failed.
    """

    def __init__(self, schemes: Optional[Iterable[str]] = None,
                 host_rules: Optional[Rules] = None,
                 port_rules: Optional[Rules] = None,
                 link_rules: Optional[Rules] = None,
                 ext_rules: Optional[Rules] = None,
                 observers: Optional[ObserverRegistry] = None):
        self.logger = logging.getLogger(__name__)

        self.schemes: List[str] = [str(s) for s in (DEFAULT_SCHEMES if schemes is None else schemes)]
        self.host_rules = host_rules or Rules()
        self.port_rules = port_rules or Rules()
        self.link_rules = link_rules or Rules()
        self.ext_rules = ext_rules or Rules()
        self.observers = observers or ObserverRegistry()

        self._queue: Deque[URL] = deque()
        self._queued: Set[URL] = set()
        self._history: List[URL] = []
        self._visited: Set[URL] = set()
        self._failures: List[URL] = []
        self._failed: Set[URL] = set()

    # Collections

    @property
    def queue(self) -> List[URL]:
        return list(self._queue)

    @queue.setter
    def queue(self, urls: Sequence[URLLike]):
        # Normalize everything first so a bad entry leaves the queue untouched
        normalized = _unique(normalize_url(url) for url in urls)
        self._queue = deque(normalized)
        self._queued = set(normalized)

    pending = queue

    @property
    def history(self) -> List[URL]:
        return list(self._history)

    @history.setter
    def history(self, urls: Sequence[URLLike]):
        normalized = _unique(normalize_url(url) for url in urls)
        self._history = normalized
        self._visited = set(normalized)

    @property
    def failures(self) -> List[URL]:
        return list(self._failures)

    @property
    def visited_links(self) -> List[str]:
        return [str(url) for url in self._history]

    @property
    def visited_hosts(self) -> List[str]:
        return list(dict.fromkeys(url.host for url in self._history))

    def __len__(self) -> int:
        return len(self._queue)

    def is_empty(self) -> bool:
        return not self._queue

    # Membership

    def is_queued(self, url: URLLike) -> bool:
        return normalize_url(url) in self._queued

    def is_visited(self, url: URLLike) -> bool:
        return normalize_url(url) in self._visited

    def is_failed(self, url: URLLike) -> bool:
        return normalize_url(url) in self._failed

    # Admission

    def accepts_scheme(self, url: URL) -> bool:
        if not url.scheme:
            return True
        return url.scheme in self.schemes

    def accepts_host(self, url: URL) -> bool:
        return self.host_rules.accepts(url.host)

    def accepts_port(self, url: URL) -> bool:
        return self.port_rules.accepts(url.port)

    def accepts_link(self, url: URL) -> bool:
        return self.link_rules.accepts(str(url))

    def accepts_ext(self, url: URL) -> bool:
        return self.ext_rules.accepts(url_extension(url))

    def should_visit(self, url: URL) -> bool:
        """Return True if the URL has not been seen and passes every rule."""
        return (url not in self._visited and
                url not in self._failed and
                url not in self._queued and
                self.accepts_scheme(url) and
                self.accepts_host(url) and
                self.accepts_port(url) and
                self.accepts_link(url) and
                self.accepts_ext(url))

    def admit(self, url: URLLike) -> bool:
        """
        Offer a URL to the frontier.

        Returns True if the URL was queued. Observers are notified before the
        URL is appended; rejected URLs cause no notification and no mutation.

        Raises:
            InvalidURL: if `url` cannot be normalized
        """
        url = normalize_url(url)

        if not self.should_visit(url):
            self.logger.debug(f"Rejected URL: {url}")
            return False

        self.observers.notify_url(url)

        self._queue.append(url)
        self._queued.add(url)
        self.logger.debug(f"Added URL to frontier: {url}")
        return True

    def admit_all(self, urls: Iterable[URLLike]) -> int:
        """Admit multiple URLs. Returns count of queued URLs."""
        added_count = 0
        for url in urls:
            if self.admit(url):
                added_count += 1
        return added_count

    # Scheduling

    def dequeue(self) -> Optional[URL]:
        """Remove and return the next URL to visit, or None if the queue is empty."""
        if not self._queue:
            return None

        url = self._queue.popleft()
        self._queued.discard(url)
        self.logger.debug(f"Retrieved URL from frontier: {url}")
        return url

    def requeue(self, url: URLLike) -> bool:
        """
        Put a dequeued URL back at the front of the queue.

        Used for visits that were interrupted before they finished. Observers
        are not notified again, and URLs already visited, failed or queued are
        left alone.
        """
        url = normalize_url(url)
        if url in self._visited or url in self._failed or url in self._queued:
            return False

        self._queue.appendleft(url)
        self._queued.add(url)
        return True

    def record_visited(self, url: URLLike):
        """Mark a URL as visited."""
        url = normalize_url(url)
        if url in self._visited:
            return

        self._history.append(url)
        self._visited.add(url)

    def record_failed(self, url: URLLike):
        """Notify failed-URL observers, then add the URL to the failures list."""
        url = normalize_url(url)

        self.observers.notify_failed(url)

        self._failures.append(url)
        self._failed.add(url)

    def clear(self):
        """Forget the queue, the history and the failures."""
        self._queue.clear()
        self._queued.clear()
        self._history.clear()
        self._visited.clear()
        self._failures.clear()
        self._failed.clear()

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': len(self._queue),
            'total_visited': len(self._history),
            'total_failed': len(self._failures),
            'visited_hosts': len(self.visited_hosts),
        }

    def to_dict(self) -> dict:
        """Snapshot of history and queue as plain URL strings."""
        return {
            'history': [str(url) for url in self._history],
            'queue': [str(url) for url in self._queue],
        }


def _unique(urls: Iterable[URL]) -> List[URL]:
    return list(dict.fromkeys(urls))
