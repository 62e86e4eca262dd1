"""
Per-destination HTTP sessions.

A HostSession wraps one aiohttp ClientSession bound to a single (host, port)
origin. SessionCache creates them lazily and hands back the same instance for
every later request to that origin.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

import aiohttp
from aiohttp import BasicAuth, ClientSession, ClientTimeout
from multidict import CIMultiDictProxy
from yarl import URL


@dataclass
class ProxySettings:
    """Proxy to route every request through."""
    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None

    @property
    def url(self) -> Optional[URL]:
        if not self.host:
            return None
        return URL.build(scheme='http', host=self.host, port=self.port)

    @property
    def auth(self) -> Optional[BasicAuth]:
        if not self.user:
            return None
        return BasicAuth(self.user, self.password or '')


class HostSession:
    """
    A reusable connection to one (host, port) pair.

    The session is not tied to a scheme: every request takes its scheme from
    the URL being fetched, so http and https URLs on the same port each get
    the transport and TLS policy they ask for.
    """

    def __init__(self, host: str, port: int,
                 proxy: Optional[ProxySettings] = None,
                 verify_ssl: bool = True,
                 request_timeout: float = 30):
        self.host = host
        self.port = port
        self.proxy = proxy or ProxySettings()
        self.verify_ssl = verify_ssl
        # IDNA-encoded form, needed to build request URLs from raw parts
        self.raw_host = URL.build(scheme='http', host=host).raw_host

        self.session = ClientSession(
            timeout=ClientTimeout(total=request_timeout),
            connector=aiohttp.TCPConnector(limit_per_host=10, ttl_dns_cache=300)
        )
        self.requests = 0

    def ssl_for(self, scheme: str):
        """aiohttp `ssl` argument for a request: False skips certificate verification."""
        if scheme == 'https' and not self.verify_ssl:
            return False
        return True

    def request_url(self, url: URL) -> URL:
        """
        Request target for `url` on this session's host and port.

        The target is assembled from the raw path and query, never resolved
        as a reference, so a path such as '//other.host/x' stays a path on
        this host.
        """
        target = URL.build(
            scheme=url.scheme,
            host=self.raw_host,
            port=self.port,
            path=url.raw_path or '/',
            query_string=url.raw_query_string,
            encoded=True
        )
        if target.is_default_port():
            target = target.with_port(None)
        return target

    async def get(self, url: URL, headers: Optional[Mapping[str, str]] = None
                  ) -> Tuple[int, CIMultiDictProxy, bytes]:
        """
        Issue a GET for `url` through this session.

        Redirects are not followed; the response is returned as-is.

        Raises:
            aiohttp.ClientError, asyncio.TimeoutError, OSError on transport failure
        """
        target = self.request_url(url)
        self.requests += 1

        async with self.session.get(
            target,
            headers=dict(headers or {}),
            allow_redirects=False,
            proxy=self.proxy.url,
            proxy_auth=self.proxy.auth,
            ssl=self.ssl_for(target.scheme),
        ) as response:
            body = await response.read()
            return response.status, response.headers, body

    @property
    def closed(self) -> bool:
        return self.session.closed

    async def close(self):
        if not self.session.closed:
            await self.session.close()

    def __repr__(self) -> str:
        return f"HostSession({self.host}:{self.port})"


class SessionCache:
    """
    Keyed store of HostSession objects, one per (host, port).

    get_session() has no suspension point, so callers running on the same
    event loop can never race into creating two sessions for one key.
    """

    def __init__(self, proxy: Optional[ProxySettings] = None,
                 verify_ssl: bool = True, request_timeout: float = 30):
        self.proxy = proxy or ProxySettings()
        self.verify_ssl = verify_ssl
        self.request_timeout = request_timeout
        self.logger = logging.getLogger(__name__)
        self._sessions: Dict[Tuple[str, int], HostSession] = {}

    def get_session(self, host: str, port: int) -> HostSession:
        """Return the session for (host, port), creating it on first use."""
        key = (host, port)
        session = self._sessions.get(key)

        if session is None:
            session = HostSession(
                host, port,
                proxy=self.proxy,
                verify_ssl=self.verify_ssl,
                request_timeout=self.request_timeout
            )
            self._sessions[key] = session
            self.logger.debug(f"Opened session for {host}:{port}")

        return session

    def __contains__(self, key: Tuple[str, int]) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def close(self):
        """Close every cached session."""
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
        self.logger.info("Session cache closed")
