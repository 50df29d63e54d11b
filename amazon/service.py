"""Amazon Music metadata client.

Resolves tracks, albums, artists and playlists by fetching their public pages
and shaping the extracted metadata into public resource models.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import httpx

from amazon.extractor import ExtractionResult, MetadataParser, OpenGraphExtractor, split_title
from amazon.fetcher import MetadataFetcher
from amazon.models import (
    AlbumFull,
    AlbumRef,
    ArtistFull,
    ArtistRef,
    ParsedReference,
    Playlist,
    PublicResource,
    ResourceKind,
    Track,
)
from amazon.search import DEFAULT_SEARCH_ENGINE_URL, DEFAULT_SEARCH_LIMIT, SearchHarvester
from amazon.urls import parse_url, search_url
from config.settings import DESKTOP_BROWSER_USER_AGENT, PREVIEW_CRAWLER_USER_AGENT
from core.exceptions import ConfigurationError
from core.telemetry import record_degraded_result

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"
SERVICE_PLAYLIST_CREATOR = "Amazon Music"
USER_PLAYLIST_CREATOR = "User"

DEFAULT_RESULT_LIMIT = 5
MAX_RESULT_LIMIT = 10

# Public route names that differ from the URL path segments.
KIND_ALIASES = {
    "song": ResourceKind.TRACK,
    "songs": ResourceKind.TRACK,
    "community-playlist": ResourceKind.USER_PLAYLIST,
    "community-playlists": ResourceKind.USER_PLAYLIST,
}


@dataclass(frozen=True)
class ClientConfig:
    """Construction input for AmazonMusicClient.

    ``api_base`` loses one trailing slash, ``search_result_limit`` is clamped
    to 1-10 (falsy means the default of 5).
    """

    api_base: str
    search_result_limit: int = DEFAULT_RESULT_LIMIT
    request_timeout_ms: int = 10000
    user_agent: str = PREVIEW_CRAWLER_USER_AGENT
    search_engine_url: str = DEFAULT_SEARCH_ENGINE_URL
    search_user_agent: str = DESKTOP_BROWSER_USER_AGENT

    def __post_init__(self):
        if not self.api_base or not self.api_base.strip():
            raise ConfigurationError("Amazon Music API URL must be set")
        if self.request_timeout_ms <= 0:
            raise ConfigurationError(
                "Request timeout must be positive",
                {"request_timeout_ms": self.request_timeout_ms},
            )

        api_base = self.api_base[:-1] if self.api_base.endswith("/") else self.api_base
        limit = (
            max(1, min(self.search_result_limit, MAX_RESULT_LIMIT))
            if self.search_result_limit
            else DEFAULT_RESULT_LIMIT
        )
        object.__setattr__(self, "api_base", api_base)
        object.__setattr__(self, "search_result_limit", limit)

    @classmethod
    def from_settings(cls, settings: Settings) -> ClientConfig:
        return cls(
            api_base=settings.amazon_music_api_url,
            search_result_limit=settings.search_result_limit,
            request_timeout_ms=settings.request_timeout_ms,
            user_agent=settings.preview_user_agent,
            search_engine_url=settings.search_engine_url,
            search_user_agent=settings.search_user_agent,
        )


@dataclass
class AlbumEnrichment:
    """Outcome of following a track's album link.

    status is "linked" when the album page supplied artist/album data,
    "skipped" when there was no usable link or the album was not found, and
    "failed" when fetching the album raised. Only "linked" overrides the
    track's own heuristics.
    """

    status: Literal["linked", "skipped", "failed"]
    album: AlbumFull | None = None
    error: str | None = None


class AmazonMusicClient:
    """Client for Amazon Music metadata, backed by public page scraping.

    Every call is independent: nothing is cached between requests.
    """

    def __init__(
        self,
        config: ClientConfig,
        parser: MetadataParser | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.parser: MetadataParser = parser or OpenGraphExtractor()
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(follow_redirects=True, timeout=None)
        self.fetcher = MetadataFetcher(
            config.api_base,
            timeout_ms=config.request_timeout_ms,
            user_agent=config.user_agent,
            client=self._http_client,
        )
        self.harvester = SearchHarvester(
            self._http_client,
            load_track=self.get_track,
            engine_url=config.search_engine_url,
            user_agent=config.search_user_agent,
        )

    @property
    def base_url(self) -> str:
        return self.config.api_base

    @property
    def search_limit(self) -> int:
        return self.config.search_result_limit

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await self._http_client.aclose()

    async def check_api(self) -> bool:
        return await self.fetcher.check_api()

    # -----------------------------------------------------------------------
    # Page loading
    # -----------------------------------------------------------------------

    async def _extract(self, kind: ResourceKind, resource_id: str) -> ExtractionResult:
        """Fetch and parse the page for a resource. Fetch errors propagate."""
        url = self.fetcher.build_url(kind.segment, resource_id)
        markup = await self.fetcher.fetch_page(url)
        result = self.parser.parse(markup, url)
        if result.degraded:
            record_degraded_result()
            logger.warning(f"Degraded metadata for {kind} {resource_id}: {result.issues}")
        return result

    # -----------------------------------------------------------------------
    # Assemblers
    # -----------------------------------------------------------------------

    async def get_track(self, track_id: str) -> Track | None:
        """Get a single track by id, or None if the page has no title."""
        metadata = (await self._extract(ResourceKind.TRACK, track_id)).metadata
        if not metadata.title:
            return None

        artist_name = metadata.artist_name or UNKNOWN_ARTIST
        album_name = metadata.album_name or UNKNOWN_ALBUM
        album_url = ""

        if metadata.album_url:
            enrichment = await self._link_album(metadata.album_url)
            if enrichment.status == "linked" and enrichment.album is not None:
                artist_name = enrichment.album.artist.name
                album_name = enrichment.album.name
                album_url = enrichment.album.url

        return Track(
            id=track_id,
            name=metadata.title,
            title=metadata.title,
            artist=ArtistRef(name=artist_name),
            album=AlbumRef(name=album_name, url=album_url or search_url(album_name)),
            duration=metadata.duration_seconds,
            url=metadata.url,
            image=metadata.image or None,
        )

    async def _link_album(self, album_url: str) -> AlbumEnrichment:
        """Follow a track's album link to get the album's artist and name."""
        parsed = parse_url(album_url)
        if parsed is None:
            logger.debug(f"Album link not recognized: {album_url}")
            return AlbumEnrichment(status="skipped")

        try:
            album = await self.get_album(parsed.id)
        except Exception as e:
            logger.error(f"Error fetching album for track: {type(e).__name__}: {e}")
            record_degraded_result()
            return AlbumEnrichment(status="failed", error=str(e))

        if album is None:
            return AlbumEnrichment(status="skipped")
        return AlbumEnrichment(status="linked", album=album)

    async def get_album(self, album_id: str) -> AlbumFull | None:
        """Get an album by id. The track listing is always empty."""
        metadata = (await self._extract(ResourceKind.ALBUM, album_id)).metadata
        if not metadata.title:
            return None

        album_name = metadata.title
        artist_name = UNKNOWN_ARTIST
        parts = split_title(metadata.title)
        if parts is not None and len(parts) >= 2:
            album_name = parts[0]
            artist_name = parts[-1]

        return AlbumFull(
            name=album_name,
            url=metadata.url,
            image=metadata.image or None,
            artist=ArtistRef(name=artist_name),
            songs=[],
            totalSongs=0,
        )

    async def get_artist(self, artist_id: str) -> ArtistFull | None:
        """Get an artist by id. Top songs are always empty."""
        metadata = (await self._extract(ResourceKind.ARTIST, artist_id)).metadata
        if not metadata.title:
            return None

        return ArtistFull(
            name=metadata.title,
            url=metadata.url,
            image=metadata.image or None,
            topSongs=[],
        )

    async def _get_playlist(
        self, kind: ResourceKind, playlist_id: str, created_by: str
    ) -> Playlist | None:
        metadata = (await self._extract(kind, playlist_id)).metadata
        if not metadata.title:
            return None

        return Playlist(
            name=metadata.title,
            url=metadata.url,
            image=metadata.image or None,
            createdBy=created_by,
            songs=[],
            totalSongs=0,
        )

    async def get_playlist(self, playlist_id: str) -> Playlist | None:
        """Get a service-curated playlist by id."""
        return await self._get_playlist(
            ResourceKind.PLAYLIST, playlist_id, SERVICE_PLAYLIST_CREATOR
        )

    async def get_user_playlist(self, playlist_id: str) -> Playlist | None:
        """Get a community (user-created) playlist by id."""
        return await self._get_playlist(
            ResourceKind.USER_PLAYLIST, playlist_id, USER_PLAYLIST_CREATOR
        )

    # -----------------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------------

    async def resolve_by_kind_and_id(
        self, kind: ResourceKind | str, resource_id: str
    ) -> PublicResource | None:
        """Resolve a resource by kind (enum value, path segment or alias) and id."""
        resolved = coerce_kind(kind)
        if resolved is None:
            logger.warning(f"Unknown resource kind: {kind}")
            return None

        if resolved is ResourceKind.TRACK:
            return await self.get_track(resource_id)
        if resolved is ResourceKind.ALBUM:
            return await self.get_album(resource_id)
        if resolved is ResourceKind.ARTIST:
            return await self.get_artist(resource_id)
        if resolved is ResourceKind.PLAYLIST:
            return await self.get_playlist(resource_id)
        return await self.get_user_playlist(resource_id)

    async def load_from_url(self, url: str) -> PublicResource | None:
        """Load whatever resource an Amazon Music URL points at.

        Unrecognized URLs return None without any outbound request.
        """
        parsed = parse_url(url)
        if parsed is None:
            return None
        return await self.resolve_by_kind_and_id(parsed.kind, parsed.id)

    resolve_by_url = load_from_url

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[Track]:
        """Search for tracks. Never raises."""
        return await self.harvester.search(query, limit)

    @staticmethod
    def parse_url(url: str) -> ParsedReference | None:
        return parse_url(url)


def coerce_kind(kind: ResourceKind | str) -> ResourceKind | None:
    """Map an enum value, URL path segment or public alias to a ResourceKind."""
    if isinstance(kind, ResourceKind):
        return kind
    key = kind.strip().lower()
    try:
        return ResourceKind(key)
    except ValueError:
        pass
    try:
        return ResourceKind.from_segment(key)
    except KeyError:
        return KIND_ALIASES.get(key)
