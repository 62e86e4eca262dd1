"""
URL normalization helpers.

Every URL that enters the frontier goes through normalize_url() exactly once,
so that queue/history membership is a cheap equality check on yarl.URL.
"""

import posixpath
from typing import Union

from yarl import URL


class InvalidURL(ValueError):
    """Raised when a value cannot be turned into an absolute URL."""

    def __init__(self, value, reason: str = "not an absolute URL"):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid URL {value!r}: {reason}")


URLLike = Union[str, URL]


def normalize_url(value: URLLike) -> URL:
    """
    Convert a string (or URL) into its normalized structured form.

    The fragment is dropped, an explicit default port is removed and an
    empty path becomes '/'.

    Raises:
        InvalidURL: if the value has no scheme or no host
    """
    if isinstance(value, URL):
        url = value
    else:
        try:
            url = URL(str(value).strip())
        except (TypeError, ValueError) as e:
            raise InvalidURL(value, str(e)) from e

    if not url.scheme or not url.host:
        raise InvalidURL(value)

    url = url.with_fragment(None)

    if url.explicit_port is not None and url.is_default_port():
        url = url.with_port(None)

    if not url.raw_path:
        url = url.with_path('/')

    return url


def url_extension(url: URL) -> str:
    """Return the file extension of the URL path without the dot ('' if none)."""
    return posixpath.splitext(url.path)[1][1:]

