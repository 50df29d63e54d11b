"""Integration test fixtures.

Provides the real FastAPI app wired to a real AmazonMusicClient whose
upstream traffic (Amazon Music pages and the search engine) is answered
from representative canned pages.
"""

import httpx
import pytest
import pytest_asyncio

from amazon.service import AmazonMusicClient, ClientConfig
from config.settings import Settings
from tests.factories import make_page, make_search_page, mock_http_client, music_recording

BASE_URL = "https://music.amazon.com"

TRACK_ID = "B079TPJ3G4"
ALBUM_ID = "B0BZ6TR5K1"
ARTIST_ID = "B00J7LMG0G"
PLAYLIST_ID = "B01M0UBX0P"
USER_PLAYLIST_ID = "f3e1c2a9d8"
BROKEN_TRACK_ID = "B0BROKEN01"

# ---------------------------------------------------------------------------
# Upstream pages -- what the page source renders for a preview crawler
# ---------------------------------------------------------------------------

UPSTREAM_PAGES = {
    f"{BASE_URL}/tracks/{TRACK_ID}": make_page(
        og_title="Whatever It Takes",
        description="Listen to Whatever It Takes on Amazon Music",
        image="https://m.media-amazon.com/images/I/whatever.jpg",
        album_url=f"{BASE_URL}/albums/{ALBUM_ID}",
        json_ld=music_recording(artist="Imagine Dragons", album="Evolve", duration="PT3M21S"),
    ),
    f"{BASE_URL}/albums/{ALBUM_ID}": make_page(
        og_title="Evolve - Imagine Dragons",
        image="https://m.media-amazon.com/images/I/evolve.jpg",
    ),
    f"{BASE_URL}/artists/{ARTIST_ID}": make_page(
        og_title="Imagine Dragons",
        image="https://m.media-amazon.com/images/I/imagine-dragons.jpg",
    ),
    f"{BASE_URL}/playlists/{PLAYLIST_ID}": make_page(og_title="Pop Culture"),
    f"{BASE_URL}/user-playlists/{USER_PLAYLIST_ID}": make_page(
        title_tag="Road Trip | Amazon Music"
    ),
    f"{BASE_URL}/tracks/{BROKEN_TRACK_ID}": 503,
    BASE_URL: "<html></html>",
}


def _search_engine(request: httpx.Request):
    if request.url.host != "search.yahoo.com":
        return None
    query = request.url.params["p"]
    if "nothing" in query:
        return make_search_page()
    if "/tracks" in query:
        if "rarity" in query:
            return make_search_page()
        return make_search_page(
            f"{BASE_URL}/tracks/{TRACK_ID}",
            f"{BASE_URL}/albums/{ALBUM_ID}",
            f"{BASE_URL}/tracks/{TRACK_ID}/whatever-it-takes",
            f"{BASE_URL}/tracks/{BROKEN_TRACK_ID}",
        )
    return make_search_page(f"{BASE_URL}/tracks/B000000001")


@pytest.fixture
def upstream_requests():
    """Every request the client sent upstream during the test."""
    return []


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        amazon_music_api_url=BASE_URL,
        sentry_dsn=None,
        posthog_api_key=None,
        enable_telemetry=False,
    )


@pytest_asyncio.fixture
async def amazon_client(test_settings, upstream_requests):
    http_client = mock_http_client({**UPSTREAM_PAGES, "*": _search_engine}, upstream_requests)
    client = AmazonMusicClient(ClientConfig.from_settings(test_settings), http_client=http_client)
    yield client
    await http_client.aclose()


@pytest_asyncio.fixture
async def app_client(amazon_client, test_settings):
    """HTTP client for the app with the real Amazon Music client injected."""
    from httpx import ASGITransport, AsyncClient

    from config.settings import get_settings
    from core.dependencies import get_amazon_music_client, get_posthog_client
    from main import app

    app.dependency_overrides[get_amazon_music_client] = lambda: amazon_client
    app.dependency_overrides[get_posthog_client] = lambda: None
    app.dependency_overrides[get_settings] = lambda: test_settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
