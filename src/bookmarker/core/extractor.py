"""HTML content extraction: fetch a page and derive title, description and main text."""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from ..utils.url_utils import is_fetchable_url

logger = logging.getLogger(__name__)

SKIPPED_TAGS = frozenset({"script", "style", "nav", "footer", "header", "aside"})
BLOCK_TAGS = frozenset({"p", "h1", "h2", "h3", "h4", "h5", "h6", "article", "section", "div"})
PARAGRAPH_BREAK_TAGS = frozenset({"p", "h1", "h2", "h3", "h4", "h5", "h6"})

SUMMARY_SENTENCES = 3


class ExtractionError(Exception):
    """Content extraction error."""

    pass


class ExtractionTimeoutError(ExtractionError):
    """Request timeout error."""

    pass


class ExtractionNetworkError(ExtractionError):
    """Network connection error."""

    pass


@dataclass
class ExtractedContent:
    title: str = ""
    description: str = ""
    content: str = ""


class HTMLExtractor:
    """Fetches a URL and extracts structured text from its HTML."""

    def __init__(
        self,
        timeout: float = 10,
        max_response_bytes: int = 10 * 1024 * 1024,
        user_agent: Optional[str] = None,
    ):
        """Initialize extractor.

        Args:
            timeout: HTTP request timeout in seconds (default: 10)
            max_response_bytes: Largest body accepted before giving up
            user_agent: Optional User-Agent header value
        """
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes
        self.user_agent = user_agent

    def extract_content(self, url: str) -> ExtractedContent:
        """Fetch a URL and extract title, description and main text.

        Each field is best-effort and defaults to an empty string.

        Raises:
            ExtractionError: If the page cannot be fetched or parsed
        """
        html = self.fetch_url(url)
        return self.parse_html(html)

    def fetch_url(self, url: str) -> str:
        """Issue a single GET and return the body as text.

        The body is streamed so an oversized response is abandoned
        without being held in memory.

        Raises:
            ExtractionTimeoutError: If the request times out
            ExtractionNetworkError: If the connection fails
            ExtractionError: On non-200 status, oversized or non-HTML responses
        """
        if not is_fetchable_url(url):
            raise ExtractionError(f"Not an http(s) URL: {url}")

        headers = {"User-Agent": self.user_agent} if self.user_agent else None

        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True, headers=headers) as client:
                with client.stream("GET", url) as response:
                    self._check_response(url, response)
                    body = self._read_limited(response)
                    encoding = response.encoding or "utf-8"
        except httpx.TimeoutException as e:
            raise ExtractionTimeoutError(f"Request timed out after {self.timeout}s: {url}") from e
        except httpx.NetworkError as e:
            raise ExtractionNetworkError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            raise ExtractionError(f"Failed to fetch URL: {e}") from e

        return body.decode(encoding, errors="replace")

    def _check_response(self, url: str, response: httpx.Response) -> None:
        if response.status_code != 200:
            raise ExtractionError(f"Failed to fetch URL, status: {response.status_code}")

        content_type = response.headers.get("content-type", "").lower()
        if content_type and "html" not in content_type and "text/plain" not in content_type:
            raise ExtractionError(f"Unsupported content type for {url}: {content_type}")

        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_response_bytes:
            raise ExtractionError(
                f"Response too large: {declared} bytes (max {self.max_response_bytes})"
            )

    def _read_limited(self, response: httpx.Response) -> bytes:
        """Read the body, giving up as soon as it passes max_response_bytes."""
        chunks = []
        total = 0

        for chunk in response.iter_bytes():
            total += len(chunk)
            if total > self.max_response_bytes:
                raise ExtractionError(
                    f"Response too large: more than {self.max_response_bytes} bytes"
                )
            chunks.append(chunk)

        return b"".join(chunks)

    def parse_html(self, html: str) -> ExtractedContent:
        """Parse an HTML document and derive the text fields.

        Raises:
            ExtractionError: If the document cannot be parsed
        """
        try:
            soup = BeautifulSoup(html, "html.parser")
            return ExtractedContent(
                title=self._extract_title(soup),
                description=self._extract_meta_description(soup),
                content=self._extract_main_content(soup),
            )
        except RecursionError as e:
            raise ExtractionError("Document is nested too deeply to parse") from e
        except Exception as e:
            raise ExtractionError(f"HTML parsing failed: {e}") from e

    def _extract_title(self, soup: BeautifulSoup) -> str:
        # An empty <title> does not end the search.
        for node in soup.find_all("title"):
            title = node.get_text().strip()
            if title:
                return title

        return ""

    def _extract_meta_description(self, soup: BeautifulSoup) -> str:
        for node in soup.find_all("meta"):
            if node.get("name") != "description":
                continue

            content = node.get("content")
            if content:
                return content

        return ""

    def _extract_main_content(self, soup: BeautifulSoup) -> str:
        parts: List[str] = []
        self._extract_text(soup, parts)
        return "".join(parts)

    def _extract_text(self, node, parts: List[str]) -> None:
        if isinstance(node, NavigableString):
            if isinstance(node, PreformattedString):
                return

            text = node.strip()
            if text:
                parts.append(text)
                parts.append(" ")
            return

        if isinstance(node, Tag):
            if node.name in SKIPPED_TAGS:
                return

            if node.name in BLOCK_TAGS:
                for child in node.children:
                    self._extract_text(child, parts)

                if node.name in PARAGRAPH_BREAK_TAGS:
                    parts.append("\n\n")
                return

        for child in node.children:
            self._extract_text(child, parts)

    def generate_summary(self, content: str) -> str:
        """Summarize content as its first three period-delimited segments.

        Splits on the literal '.' character with no abbreviation handling.

        Example:
            "A. B. C. D." -> "A. B. C."
        """
        sentences = content.split(".")

        summary = ".".join(sentences[:SUMMARY_SENTENCES])
        if sentences:
            summary += "."

        return summary.strip()
