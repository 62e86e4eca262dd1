"""
Page fetcher: turns a queued URL into a Page, or a FetchFailure.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Union

from aiohttp import ClientError
from yarl import URL

from .parser import Page, PageParser
from .sessions import SessionCache


@dataclass
class FetchFailure:
    """A URL that could not be fetched."""
    url: URL
    error: str
    fetch_time: float = 0.0


class PageFetcher:
    """
    Fetches pages over cached per-host sessions.

    Transport problems (timeouts, refused connections, malformed responses)
    never escape fetch(); they come back as FetchFailure.
    """

    def __init__(self, sessions: SessionCache, user_agent: Optional[str] = None,
                 referer: Optional[str] = None, parser: Optional[PageParser] = None):
        self.sessions = sessions
        self.user_agent = user_agent
        self.referer = referer
        self.parser = parser or PageParser()
        self.logger = logging.getLogger(__name__)

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    def request_headers(self) -> Dict[str, str]:
        headers = {}
        if self.user_agent:
            headers['User-Agent'] = self.user_agent
        if self.referer:
            headers['Referer'] = self.referer
        return headers

    async def fetch(self, url: URL) -> Union[Page, FetchFailure]:
        """
        Fetch a single URL.

        Args:
            url: normalized URL to fetch

        Returns:
            Page on any HTTP response, FetchFailure on transport errors
        """
        start_time = time.time()
        session = self.sessions.get_session(url.host, url.port)

        try:
            self.stats['total_requests'] += 1
            status, headers, body = await session.get(url, self.request_headers())

        except asyncio.TimeoutError:
            self.stats['failed_requests'] += 1
            error_msg = "Request timeout"
            self.logger.warning(f"Timeout fetching {url}")

        except (ClientError, OSError) as e:
            self.stats['failed_requests'] += 1
            error_msg = f"{type(e).__name__}: {e}"
            self.logger.warning(f"Error fetching {url}: {error_msg}")

        else:
            self.stats['successful_requests'] += 1
            self.stats['total_bytes_downloaded'] += len(body)
            self.logger.debug(f"Fetched {url}: {status} ({len(body)} bytes)")
            return self.parser.parse(url, status, headers, body)

        return FetchFailure(url=url, error=error_msg, fetch_time=time.time() - start_time)

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()

    def reset_stats(self):
        """Reset statistics counters."""
        for key in self.stats:
            self.stats[key] = 0
