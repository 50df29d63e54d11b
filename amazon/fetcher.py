"""Fetch Amazon Music pages the way a link-preview crawler would."""

import asyncio
import logging
import time

import httpx

from config.settings import PREVIEW_CRAWLER_USER_AGENT
from core.exceptions import FetchHttpError, FetchNetworkError, FetchTimeoutError
from core.sentry import add_scrape_breadcrumb
from core.telemetry import record_fetch_failure, record_page_fetch

logger = logging.getLogger(__name__)

HTML_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"
)
API_PREFIX = "/api"


def join_url(base_url: str, path: str) -> str:
    """Join a base URL and a path, dropping a duplicated ``/api`` prefix."""
    if not path.startswith("/"):
        path = "/" + path
    if base_url.endswith(API_PREFIX) and path.startswith(API_PREFIX):
        path = path[len(API_PREFIX) :]
    return base_url + path


class MetadataFetcher:
    """Issues a single time-boxed GET per page and returns the raw markup.

    The request carries a social-crawler User-Agent so the page source renders
    its OpenGraph preview tags server-side instead of a client-side shell.
    No retries: any failure is raised as a FetchError subclass.
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 10000,
        user_agent: str = PREVIEW_CRAWLER_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url[:-1] if base_url.endswith("/") else base_url
        self.timeout_ms = timeout_ms
        self.user_agent = user_agent
        self._client = client
        self._owns_client = client is None

    @property
    def headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": HTML_ACCEPT}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=None)
        return self._client

    async def close(self):
        """Close the HTTP client if this fetcher created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_url(self, kind_segment: str, resource_id: str) -> str:
        return join_url(self.base_url, f"/{kind_segment}/{resource_id}")

    async def fetch_markup(self, kind_segment: str, resource_id: str) -> str:
        """Fetch the page for ``/<kind_segment>/<resource_id>``.

        Raises:
            FetchTimeoutError: No response within ``timeout_ms``
            FetchHttpError: Non-2xx response
            FetchNetworkError: Transport-level failure
        """
        return await self.fetch_page(self.build_url(kind_segment, resource_id))

    async def fetch_page(self, url: str) -> str:
        """Fetch an absolute URL and return its body text."""
        client = await self._get_client()
        add_scrape_breadcrumb("fetch_markup", {"url": url})
        logger.info(f"Fetching metadata from: {url}")

        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                client.get(url, headers=self.headers), timeout=self.timeout_ms / 1000
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            record_fetch_failure()
            logger.warning(f"Timed out after {self.timeout_ms}ms fetching {url}")
            raise FetchTimeoutError(url, self.timeout_ms) from e
        except httpx.RequestError as e:
            record_fetch_failure()
            logger.error(f"Request failed for {url}: {type(e).__name__}: {e}")
            raise FetchNetworkError(f"Request failed: {e}", url) from e

        record_page_fetch((time.perf_counter() - start) * 1000)
        logger.info(f"Response status: {response.status_code}")

        if not response.is_success:
            record_fetch_failure()
            add_scrape_breadcrumb(
                "fetch_markup_failed", {"url": url, "status": response.status_code}, "warning"
            )
            raise FetchHttpError(url, response.status_code, response.reason_phrase)

        return response.text

    async def check_api(self) -> bool:
        """Check that the page source answers at all."""
        try:
            client = await self._get_client()
            resp = await asyncio.wait_for(
                client.head(self.base_url, headers=self.headers), timeout=self.timeout_ms / 1000
            )
            return resp.status_code < 500
        except (TimeoutError, httpx.HTTPError):
            return False
