"""URL validation and parsing utilities."""

import re
from urllib.parse import urlparse


class URLValidationError(Exception):
    """URL validation error."""

    pass


_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*$')


def validate_absolute_url(url: str) -> None:
    """Validate that a value is a well-formed absolute URI.

    Args:
        url: URL to validate

    Raises:
        URLValidationError: If the URL is empty, relative or malformed
    """
    if not url or not url.strip():
        raise URLValidationError("URL cannot be empty")

    if any(ch.isspace() for ch in url):
        raise URLValidationError(f"URL cannot contain whitespace: {url!r}")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise URLValidationError(f"Malformed URL {url!r}: {e}") from e

    if not parsed.scheme or not _SCHEME_RE.match(parsed.scheme):
        raise URLValidationError(f"URL missing scheme (e.g. https://): {url}")

    if not parsed.netloc and not parsed.path:
        raise URLValidationError(f"URL has nothing after the scheme: {url}")

    if url.startswith(f"{parsed.scheme}://") and not parsed.netloc:
        raise URLValidationError(f"URL missing host: {url}")


def is_fetchable_url(url: str) -> bool:
    """Check whether a URL can be fetched over HTTP.

    Example:
        "https://example.com/page" -> True
        "mailto:someone@example.com" -> False
    """
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
