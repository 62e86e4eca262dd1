"""
Web page parser: builds Page objects and extracts outbound links.
"""

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup
from yarl import URL

from .urls import InvalidURL, normalize_url

# (tag, attribute) pairs that reference other resources
LINK_ATTRIBUTES = (
    ('a', 'href'),
    ('area', 'href'),
    ('link', 'href'),
    ('frame', 'src'),
    ('iframe', 'src'),
    ('script', 'src'),
)

HTML_TYPES = ('text/html', 'application/xhtml+xml')


@dataclass(frozen=True)
class Page:
    """A fetched page and the links discovered in it."""
    url: URL
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b''
    urls: Tuple[URL, ...] = ()

    @property
    def content_type(self) -> str:
        return self.headers.get('Content-Type', '').split(';')[0].strip().lower()

    @property
    def is_html(self) -> bool:
        return self.content_type in HTML_TYPES

    @property
    def is_ok(self) -> bool:
        return self.status == 200

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status < 400

    @property
    def is_missing(self) -> bool:
        return self.status == 404

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    @cached_property
    def title(self) -> Optional[str]:
        if not self.is_html:
            return None
        tag = BeautifulSoup(self.body, 'lxml').find('title')
        return tag.get_text(strip=True) if tag else None


class PageParser:
    """
    Turns raw responses into Page objects.

    Links are resolved against the page URL, normalized and returned in
    document order. Values that do not resolve to an absolute URL with a host
    (mailto:, javascript:, malformed hrefs) are dropped.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, url: URL, status: int, headers: Mapping[str, str], body: bytes) -> Page:
        links: List[URL] = []

        location = headers.get('Location')
        if 300 <= status < 400 and location:
            links.extend(self._resolve(url, [location]))

        content_type = headers.get('Content-Type', '').lower()
        if body and any(t in content_type for t in HTML_TYPES):
            links.extend(self.extract_links(body, url))

        self.logger.debug(f"Parsed {url}: {len(links)} links")
        return Page(url=url, status=status, headers=headers, body=body, urls=tuple(links))

    def extract_links(self, body: bytes, base_url: URL) -> List[URL]:
        """Return every outbound URL referenced by an HTML body, in order."""
        soup = BeautifulSoup(body, 'lxml')

        base_tag = soup.find('base', href=True)
        if base_tag:
            resolved = self._resolve(base_url, [base_tag['href']])
            if resolved:
                base_url = resolved[0]

        wanted = [tag for tag, _ in LINK_ATTRIBUTES]
        attributes = dict(LINK_ATTRIBUTES)
        hrefs = []

        for element in soup.find_all(wanted):
            value = element.get(attributes[element.name])
            if value:
                hrefs.append(value)

        return self._resolve(base_url, hrefs)

    def _resolve(self, base_url: URL, hrefs: List[str]) -> List[URL]:
        links = []

        for href in hrefs:
            href = href.strip()
            if not href or href.startswith('#'):
                continue

            try:
                links.append(normalize_url(base_url.join(URL(href))))
            except (InvalidURL, ValueError) as e:
                self.logger.debug(f"Skipping link {href!r} on {base_url}: {e}")

        return links
