"""
Telegraph publishing client.

Pages are created with bounded retries and a shared minimum interval
between calls. Documents over the page budget become a series of pages
cross-linked through an index injected once every page exists.
"""

import html as html_lib
import threading
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlparse

import httpx

from recap.errors import PublishingError, PublishingOverBudget, TransientNetworkError
from recap.logging_config import get_logger
from recap.models import PageSeries
from recap.retry import attempt

from .nodes import Node, html_to_nodes, serialize_nodes, serialized_size
from .paginator import Paginator

logger = get_logger("telegraph")

DEFAULT_API_URL = "https://api.telegra.ph/"
MAX_TITLE_LENGTH = 256
DELETED_PAGE_HTML = "<p>This page has been deleted.</p>"


def page_path(url_or_path: str) -> str:
    """Extract the page path from a telegra.ph URL (paths pass through)."""
    if "://" in url_or_path:
        return urlparse(url_or_path).path.strip("/")
    return url_or_path.strip("/")


def build_series_index(urls: list[str]) -> str:
    """Cross-reference block listing every page of a series."""
    items = "".join(
        f'<li><a href="{html_lib.escape(url)}">Part {index}</a></li>'
        for index, url in enumerate(urls, start=1)
    )
    return f"<p><strong>Series pages:</strong></p><ul>{items}</ul><hr>"


def part_titles(title: str, page_count: int) -> list[str]:
    return [title if number == 1 else f"{title} (part {number})" for number in range(1, page_count + 1)]


def series_index_cost(title: str, page_count: int) -> int:
    """Bytes the series index is expected to add to each page of a ``page_count``-page series.

    Page URLs are a slug of the page title plus date and counter, so the
    estimate uses the UTF-8 length of each part title.
    """
    urls = [
        "https://telegra.ph/" + "x" * len(part.encode("utf-8")[:MAX_TITLE_LENGTH]) + "-12-31-9999"
        for part in part_titles(title, page_count)
    ]
    # Prepending shares the page's brackets and adds one comma.
    return serialized_size(build_series_index(urls)) - 1


class TelegraphAPI:
    """Thin wrapper over the Telegraph HTTP API."""

    def __init__(
        self,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        author_name: str = "",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.author_name = author_name
        self.client = client or httpx.Client(timeout=timeout)

    def create_page(self, title: str, nodes: list[Node]) -> str:
        result = self._post("createPage", self._page_payload(title, nodes))
        return result["url"]

    def edit_page(self, path: str, title: str, nodes: list[Node]) -> str:
        result = self._post(f"editPage/{path}", self._page_payload(title, nodes))
        return result["url"]

    def _page_payload(self, title: str, nodes: list[Node]) -> dict[str, str]:
        payload = {
            "access_token": self.access_token,
            "title": title[:MAX_TITLE_LENGTH],
            "content": serialize_nodes(nodes),
            "return_content": "false",
        }
        if self.author_name:
            payload["author_name"] = self.author_name
        return payload

    def _post(self, method: str, payload: dict[str, str]) -> dict[str, Any]:
        try:
            response = self.client.post(f"{self.api_url}/{method}", data=payload)
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Telegraph {method} request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientNetworkError(f"Telegraph {method} returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise PublishingError(
                f"Telegraph {method} returned non-JSON (HTTP {response.status_code})"
            ) from e

        if not body.get("ok"):
            error = str(body.get("error", "unknown error"))
            if error.startswith("FLOOD_WAIT"):
                raise TransientNetworkError(f"Telegraph {method} rate limited: {error}")
            raise PublishingError(f"Telegraph {method} failed: {error}")
        return body["result"]


class Throttle:
    """Enforces a minimum interval between consecutive calls, across threads."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: float | None = None

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            if self._last is not None:
                remaining = self.interval - (now - self._last)
                if remaining > 0:
                    self._sleep(remaining)
                    now = self._clock()
            self._last = now


class TelegraphPublisher:
    """Publishes recap documents as Telegraph pages."""

    def __init__(
        self,
        api: TelegraphAPI,
        paginator: Paginator | None = None,
        attempts: int = 3,
        retry_delay: float = 1.0,
        throttle: Throttle | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.paginator = paginator or Paginator()
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.throttle = throttle or Throttle(2.0)
        self.sleep = sleep

    def _require_token(self) -> None:
        if not self.api.access_token:
            raise PublishingError("Telegraph access token is not configured")

    def _call(self, description: str, fn: Callable[[], str]) -> str:
        def throttled() -> str:
            self.throttle.wait()
            return fn()

        try:
            return attempt(
                throttled,
                attempts=self.attempts,
                delay=self.retry_delay,
                description=description,
                retry_on=(TransientNetworkError, PublishingError),
                sleep=self.sleep,
            )
        except PublishingError:
            raise
        except TransientNetworkError as e:
            raise PublishingError(f"{description} failed after {self.attempts} attempts") from e

    def create_page(self, title: str, html: str) -> str:
        """Create one page and return its URL."""
        self._require_token()
        nodes = html_to_nodes(html)
        url = self._call(f"createPage '{title}'", lambda: self.api.create_page(title, nodes))
        logger.info(f"Created page {url}")
        return url

    def edit_page(self, url_or_path: str, title: str, html: str) -> str:
        """Replace a page's content and return its URL."""
        self._require_token()
        path = page_path(url_or_path)
        nodes = html_to_nodes(html)
        return self._call(f"editPage '{path}'", lambda: self.api.edit_page(path, title, nodes))

    def delete_page(self, url_or_path: str, title: str = "Deleted") -> str:
        """Telegraph cannot delete pages, so overwrite the content instead."""
        return self.edit_page(url_or_path, title, DELETED_PAGE_HTML)

    def _paginate(self, html: str, title: str) -> list[str]:
        """Paginate, keeping room on every page for the series index.

        If the document cannot be split with that room kept, pages are cut
        to the full budget and the ones the index does not fit stay unlinked.
        """
        unreserved = pages = self.paginator.paginate(html, title)
        reserve = 0
        try:
            while len(pages) > 1 and series_index_cost(title, len(pages)) > reserve:
                reserve = series_index_cost(title, len(pages))
                pages = self.paginator.paginate(html, title, reserve=reserve)
        except PublishingOverBudget:
            logger.warning(f"No room for a {len(pages)}-page series index in '{title}', pages may go unlinked")
            return unreserved
        return pages

    def create_page_series(self, title: str, html: str) -> list[str]:
        """Publish ``html`` as one or more pages, cross-linked when split.

        Raises:
            PublishingError: a page could not be created; the series is abandoned.
            PublishingOverBudget: the document cannot be paginated at all.
        """
        self._require_token()
        pages = self._paginate(html, title)

        titles = part_titles(title, len(pages))
        urls = [self.create_page(page_title, page) for page_title, page in zip(titles, pages)]
        if len(urls) == 1:
            return urls

        index = build_series_index(urls)
        for url, page_title, page in zip(urls, titles, pages):
            indexed = index + page
            if not self.paginator.fits(indexed):
                logger.warning(f"Series index would push {url} over the page budget, leaving it unlinked")
                continue
            try:
                self.edit_page(url, page_title, indexed)
            except PublishingError as e:
                logger.warning(f"Could not add series index to {url}: {e}")

        logger.info(f"Published '{title}' as {len(urls)} pages")
        return urls

    def publish(self, title: str, html: str) -> PageSeries:
        """Publish a document and return its page series."""
        return PageSeries(urls=tuple(self.create_page_series(title, html)))
