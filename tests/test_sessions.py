"""Tests for the per-host session cache."""

import asyncio

import pytest
from aiohttp import BasicAuth
from aioresponses import aioresponses
from yarl import URL

from webspider.crawler.sessions import HostSession, ProxySettings, SessionCache


class TestProxySettings:

    def test_no_proxy(self):
        proxy = ProxySettings()
        assert proxy.url is None
        assert proxy.auth is None

    def test_proxy_with_credentials(self):
        proxy = ProxySettings(host="proxy.local", port=3128, user="bob", password="secret")
        assert proxy.url == URL("http://proxy.local:3128")
        assert proxy.auth == BasicAuth("bob", "secret")


class TestSessionCache:

    @pytest.mark.asyncio
    async def test_same_key_returns_same_session(self):
        cache = SessionCache()
        try:
            first = cache.get_session("example.com", 80)
            second = cache.get_session("example.com", 80)
            assert first is second
            assert len(cache) == 1
            assert ("example.com", 80) in cache
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_different_ports_get_different_sessions(self):
        cache = SessionCache()
        try:
            plain = cache.get_session("example.com", 80)
            secure = cache.get_session("example.com", 443)
            assert plain is not secure
            assert len(cache) == 2
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_session(self):
        cache = SessionCache()

        async def grab():
            await asyncio.sleep(0)
            return cache.get_session("example.com", 80)

        try:
            sessions = await asyncio.gather(*[grab() for _ in range(10)])
            assert all(session is sessions[0] for session in sessions)
            assert len(cache) == 1
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_sessions_inherit_proxy_and_tls_policy(self):
        proxy = ProxySettings(host="proxy.local", port=8080)
        cache = SessionCache(proxy=proxy, verify_ssl=False)
        try:
            session = cache.get_session("example.com", 443)
            assert session.proxy is proxy
            assert session.verify_ssl is False
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_close_closes_every_session(self):
        cache = SessionCache()
        session = cache.get_session("example.com", 80)

        await cache.close()

        assert session.closed
        assert len(cache) == 0


class TestHostSession:

    @pytest.mark.asyncio
    async def test_request_url_drops_default_port(self):
        plain = HostSession("example.com", 80)
        custom = HostSession("example.com", 8080)
        try:
            assert str(plain.request_url(URL("http://example.com/a"))) == "http://example.com/a"
            assert str(custom.request_url(URL("http://example.com:8080/a?x=1"))) == "http://example.com:8080/a?x=1"
        finally:
            await plain.close()
            await custom.close()

    @pytest.mark.asyncio
    async def test_request_url_keeps_double_slash_path_on_session_host(self):
        session = HostSession("example.com", 80)
        try:
            target = session.request_url(URL("http://example.com//evil.test/x?q=1"))

            assert target.host == "example.com"
            assert target.raw_path == "//evil.test/x"
            assert target.raw_query_string == "q=1"
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_request_url_takes_scheme_from_url(self):
        session = HostSession("example.com", 8443)
        try:
            assert str(session.request_url(URL("http://example.com:8443/a"))) == "http://example.com:8443/a"
            assert str(session.request_url(URL("https://example.com:8443/b"))) == "https://example.com:8443/b"
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_tls_verification_is_on_by_default(self):
        session = HostSession("example.com", 443)
        try:
            assert session.ssl_for('https') is True
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_tls_verification_can_be_disabled(self):
        session = HostSession("example.com", 8443, verify_ssl=False)
        try:
            assert session.ssl_for('https') is False
            assert session.ssl_for('http') is True
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_get_returns_status_headers_and_body(self):
        session = HostSession("example.com", 80)
        try:
            with aioresponses() as mocked:
                mocked.get("http://example.com/page?x=1", status=200,
                           body="<html></html>", content_type="text/html")

                status, headers, body = await session.get(URL("http://example.com/page?x=1"),
                                                          {"User-Agent": "test"})

            assert status == 200
            assert headers["Content-Type"] == "text/html"
            assert body == b"<html></html>"
            assert session.requests == 1
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_each_request_uses_its_own_scheme(self):
        session = HostSession("example.com", 8443, verify_ssl=False)
        try:
            with aioresponses() as mocked:
                mocked.get("http://example.com:8443/a", status=200, body="plain")
                mocked.get("https://example.com:8443/b", status=200, body="secure")

                await session.get(URL("http://example.com:8443/a"))
                _, _, body = await session.get(URL("https://example.com:8443/b"))

                plain = mocked.requests[('GET', URL("http://example.com:8443/a"))][0]
                secure = mocked.requests[('GET', URL("https://example.com:8443/b"))][0]

            assert body == b"secure"
            assert plain.kwargs['ssl'] is True
            assert secure.kwargs['ssl'] is False
        finally:
            await session.close()
