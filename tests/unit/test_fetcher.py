"""Unit tests for amazon/fetcher.py."""

import asyncio

import httpx
import pytest

from amazon.fetcher import HTML_ACCEPT, MetadataFetcher, join_url
from config.settings import PREVIEW_CRAWLER_USER_AGENT
from core.exceptions import FetchError, FetchHttpError, FetchNetworkError, FetchTimeoutError
from core.telemetry import get_fetch_stats, init_fetch_stats
from tests.factories import mock_http_client

BASE = "https://music.amazon.com"


class TestJoinUrl:
    def test_plain(self):
        assert join_url(BASE, "/tracks/T1") == "https://music.amazon.com/tracks/T1"

    def test_adds_leading_slash(self):
        assert join_url(BASE, "tracks/T1") == "https://music.amazon.com/tracks/T1"

    def test_duplicate_api_prefix_dropped(self):
        assert join_url("https://proxy.example/api", "/api/tracks/T1") == (
            "https://proxy.example/api/tracks/T1"
        )

    def test_api_prefix_kept_when_base_has_none(self):
        assert join_url("https://proxy.example", "/api/tracks/T1") == (
            "https://proxy.example/api/tracks/T1"
        )


class TestMetadataFetcherInit:
    def test_trailing_slash_removed(self):
        fetcher = MetadataFetcher(BASE + "/")
        assert fetcher.base_url == BASE

    def test_build_url(self):
        fetcher = MetadataFetcher(BASE)
        assert fetcher.build_url("albums", "B0BZ6TR5K1") == f"{BASE}/albums/B0BZ6TR5K1"

    def test_headers(self):
        fetcher = MetadataFetcher(BASE)
        assert fetcher.headers == {"User-Agent": PREVIEW_CRAWLER_USER_AGENT, "Accept": HTML_ACCEPT}

    @pytest.mark.asyncio
    async def test_close_owned_client(self):
        fetcher = MetadataFetcher(BASE)
        await fetcher._get_client()
        await fetcher.close()
        assert fetcher._client is None

    @pytest.mark.asyncio
    async def test_close_leaves_shared_client_open(self):
        shared = httpx.AsyncClient()
        fetcher = MetadataFetcher(BASE, client=shared)
        await fetcher.close()
        assert fetcher._client is shared
        assert not shared.is_closed
        await shared.aclose()


class TestFetchMarkup:
    @pytest.mark.asyncio
    async def test_success_sends_crawler_identity(self):
        requests = []
        client = mock_http_client({f"{BASE}/tracks/T1": "<html>ok</html>"}, requests)
        fetcher = MetadataFetcher(BASE, client=client)

        markup = await fetcher.fetch_markup("tracks", "T1")

        assert markup == "<html>ok</html>"
        assert len(requests) == 1
        assert requests[0].method == "GET"
        assert requests[0].headers["User-Agent"].startswith("facebookexternalhit/1.1")
        assert requests[0].headers["Accept"].startswith("text/html")

    @pytest.mark.asyncio
    async def test_http_error_carries_status(self):
        client = mock_http_client({f"{BASE}/tracks/T1": 503})
        fetcher = MetadataFetcher(BASE, client=client)

        with pytest.raises(FetchHttpError) as exc_info:
            await fetcher.fetch_markup("tracks", "T1")

        assert exc_info.value.status_code == 503
        assert exc_info.value.url == f"{BASE}/tracks/T1"
        assert exc_info.value.message.startswith("HTTP 503")

    @pytest.mark.asyncio
    async def test_not_found_is_http_error(self):
        fetcher = MetadataFetcher(BASE, client=mock_http_client({}))
        with pytest.raises(FetchHttpError) as exc_info:
            await fetcher.fetch_markup("albums", "missing")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_network_error(self):
        client = mock_http_client({f"{BASE}/tracks/T1": httpx.ConnectError("refused")})
        fetcher = MetadataFetcher(BASE, client=client)

        with pytest.raises(FetchNetworkError) as exc_info:
            await fetcher.fetch_markup("tracks", "T1")

        assert "refused" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_cancels_request(self):
        cancelled = asyncio.Event()

        async def slow(request):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return httpx.Response(200, text="late")

        client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
        fetcher = MetadataFetcher(BASE, timeout_ms=20, client=client)

        with pytest.raises(FetchTimeoutError) as exc_info:
            await fetcher.fetch_markup("tracks", "T1")

        assert exc_info.value.timeout_ms == 20
        assert exc_info.value.message == "Request timeout after 20ms"
        assert cancelled.is_set()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_httpx_timeout_mapped(self):
        client = mock_http_client({f"{BASE}/tracks/T1": httpx.ReadTimeout("slow")})
        fetcher = MetadataFetcher(BASE, client=client)
        with pytest.raises(FetchTimeoutError):
            await fetcher.fetch_markup("tracks", "T1")

    @pytest.mark.asyncio
    async def test_all_failures_are_fetch_errors(self):
        fetcher = MetadataFetcher(BASE, client=mock_http_client({}))
        with pytest.raises(FetchError):
            await fetcher.fetch_markup("tracks", "T1")

    @pytest.mark.asyncio
    async def test_records_fetch_stats(self):
        init_fetch_stats()
        client = mock_http_client({f"{BASE}/tracks/T1": "<html></html>", f"{BASE}/tracks/T2": 500})
        fetcher = MetadataFetcher(BASE, client=client)

        await fetcher.fetch_markup("tracks", "T1")
        with pytest.raises(FetchHttpError):
            await fetcher.fetch_markup("tracks", "T2")

        stats = get_fetch_stats()
        assert stats["page_fetches"] == 2
        assert stats["fetch_failures"] == 1


class TestCheckApi:
    @pytest.mark.asyncio
    async def test_ok(self):
        fetcher = MetadataFetcher(BASE, client=mock_http_client({BASE: "ok"}))
        assert await fetcher.check_api() is True

    @pytest.mark.asyncio
    async def test_server_error(self):
        fetcher = MetadataFetcher(BASE, client=mock_http_client({BASE: 502}))
        assert await fetcher.check_api() is False

    @pytest.mark.asyncio
    async def test_connection_error(self):
        fetcher = MetadataFetcher(BASE, client=mock_http_client({BASE: httpx.ConnectError("x")}))
        assert await fetcher.check_api() is False
