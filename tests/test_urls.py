"""Tests for URL normalization helpers."""

import pytest
from yarl import URL

from webspider.crawler.urls import InvalidURL, normalize_url, url_extension


class TestNormalizeURL:

    def test_string_becomes_structured_url(self):
        url = normalize_url("http://example.com/a?b=1")
        assert isinstance(url, URL)
        assert url.host == "example.com"
        assert url.port == 80
        assert url.path == "/a"
        assert url.query_string == "b=1"

    def test_fragment_is_dropped(self):
        assert normalize_url("http://example.com/page#section") == normalize_url("http://example.com/page")

    def test_default_port_is_dropped(self):
        assert str(normalize_url("http://example.com:80/x")) == "http://example.com/x"
        assert str(normalize_url("https://example.com:443/x")) == "https://example.com/x"

    def test_non_default_port_is_kept(self):
        url = normalize_url("http://example.com:8080/x")
        assert url.port == 8080
        assert str(url) == "http://example.com:8080/x"

    def test_empty_path_becomes_root(self):
        assert str(normalize_url("http://example.com")) == "http://example.com/"

    def test_url_instances_are_normalized_too(self):
        assert str(normalize_url(URL("http://example.com/a#frag"))) == "http://example.com/a"

    def test_surrounding_whitespace_is_ignored(self):
        assert str(normalize_url("  http://example.com/a \n")) == "http://example.com/a"

    @pytest.mark.parametrize("value", [
        "not a url",
        "/relative/path",
        "example.com/no-scheme",
        "mailto:someone@example.com",
        "javascript:void(0)",
        "",
    ])
    def test_invalid_urls_raise(self, value):
        with pytest.raises(InvalidURL):
            normalize_url(value)

    def test_invalid_url_is_a_value_error(self):
        with pytest.raises(ValueError) as excinfo:
            normalize_url("nope")
        assert excinfo.value.value == "nope"


class TestURLExtension:

    @pytest.mark.parametrize("link, ext", [
        ("http://example.com/doc.pdf", "pdf"),
        ("http://example.com/archive.tar.gz", "gz"),
        ("http://example.com/dir.d/page", ""),
        ("http://example.com/", ""),
        ("http://example.com/index.html?x=y.pdf", "html"),
    ])
    def test_extension(self, link, ext):
        assert url_extension(normalize_url(link)) == ext
