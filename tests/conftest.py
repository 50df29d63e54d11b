"""Shared test fixtures for pytest."""

from unittest.mock import AsyncMock, Mock

import pytest

from amazon.service import AmazonMusicClient, ClientConfig
from tests.factories import make_track, mock_http_client

BASE_URL = "https://music.amazon.com"


@pytest.fixture
def client_config():
    """Client configuration pointing at the public page source."""
    return ClientConfig(api_base=BASE_URL, search_result_limit=5, request_timeout_ms=1000)


@pytest.fixture
def make_client(client_config):
    """Build an AmazonMusicClient whose HTTP traffic is answered from a route map."""

    def _make(routes, requests=None, config=None):
        http_client = mock_http_client(routes, requests)
        return AmazonMusicClient(config or client_config, http_client=http_client)

    return _make


@pytest.fixture
def mock_amazon_client():
    """Create a mock Amazon Music client."""
    client = AsyncMock(spec=AmazonMusicClient)
    client.resolve_by_kind_and_id = AsyncMock(return_value=None)
    client.load_from_url = AsyncMock(return_value=None)
    client.search = AsyncMock(return_value=[])
    client.check_api = AsyncMock(return_value=True)
    client.parse_url = Mock(side_effect=AmazonMusicClient.parse_url)
    client.search_limit = 5
    return client


@pytest.fixture
def sample_track():
    """Create a sample track for testing."""
    return make_track()
