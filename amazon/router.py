"""FastAPI router for the Amazon Music endpoints.

Every response uses the envelope ``{"success": bool, "data": ..., "error": str}``.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from posthog import Posthog
from pydantic import BaseModel

from amazon.models import (
    AlbumFull,
    ApiResponse,
    ArtistFull,
    ParsedReference,
    Playlist,
    PublicResource,
    ResourceKind,
    Track,
)
from amazon.service import AmazonMusicClient
from core.dependencies import get_amazon_music_client, get_posthog_client
from core.exceptions import FetchError
from core.sentry import capture_exception
from core.telemetry import RequestTelemetry, get_fetch_stats, init_fetch_stats

logger = logging.getLogger(__name__)

router = APIRouter(tags=["amazon-music"])

NOT_FOUND_MESSAGES = {
    ResourceKind.TRACK: "Track not found",
    ResourceKind.ALBUM: "Album not found",
    ResourceKind.ARTIST: "Artist not found",
    ResourceKind.PLAYLIST: "Playlist not found",
    ResourceKind.USER_PLAYLIST: "User playlist not found",
}

RESOURCE_RESPONSES: dict[int | str, dict[str, Any]] = {
    200: {"description": "Resource returned"},
    404: {"description": "Resource not found"},
    500: {"description": "Upstream page could not be fetched"},
}


def envelope(data: Any = None, error: str | None = None, status_code: int = 200) -> JSONResponse:
    """Wrap a payload (or an error message) in the response envelope."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in data
        ]

    body: dict[str, Any] = {"success": error is None}
    if error is None:
        body["data"] = data
    else:
        body["error"] = error
    return JSONResponse(content=body, status_code=status_code)


async def _run_tracked(
    operation: str,
    call: Callable[[], Awaitable[Any]],
    posthog_client: Posthog | None,
    extra_properties: dict[str, Any] | None = None,
) -> tuple[Any, JSONResponse | None]:
    """Run a client call with telemetry, mapping failures to a 500 envelope.

    Returns (result, None) on success or (None, error_response) on failure.
    """
    init_fetch_stats()
    telemetry = RequestTelemetry(operation=operation)
    result = None
    failure = None

    try:
        with telemetry.track_step("resolve"):
            result = await call()
    except FetchError as e:
        logger.error(f"{operation} failed: {e.message}")
        failure = envelope(error=e.message, status_code=500)
    except Exception as e:
        logger.error(f"{operation} failed unexpectedly: {type(e).__name__}: {e}")
        capture_exception(e, {"operation": operation, **(extra_properties or {})})
        failure = envelope(error="Internal server error", status_code=500)

    if posthog_client:
        properties = {"found": result is not None, "failed": failure is not None}
        telemetry.send_to_posthog(posthog_client, {**properties, **(extra_properties or {})})
    logger.debug(f"{operation} upstream stats: {get_fetch_stats()}")

    return result, failure


async def _resource_response(
    kind: ResourceKind,
    resource_id: str,
    client: AmazonMusicClient,
    posthog_client: Posthog | None,
) -> JSONResponse:
    result, failure = await _run_tracked(
        f"get_{kind.name.lower()}",
        lambda: client.resolve_by_kind_and_id(kind, resource_id),
        posthog_client,
        {"kind": kind.value, "resource_id": resource_id},
    )
    if failure is not None:
        return failure
    if result is None:
        return envelope(error=NOT_FOUND_MESSAGES[kind], status_code=404)
    return envelope(result)


@router.get(
    "/songs/{track_id}",
    response_model=ApiResponse[Track],
    summary="Get a track by ID",
    responses=RESOURCE_RESPONSES,
)
async def get_song(
    track_id: str,
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    """Get track metadata, enriched from the album page when the track links one."""
    return await _resource_response(ResourceKind.TRACK, track_id, client, posthog_client)


@router.get(
    "/albums/{album_id}",
    response_model=ApiResponse[AlbumFull],
    summary="Get an album by ID",
    responses=RESOURCE_RESPONSES,
)
async def get_album(
    album_id: str,
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    """Get album metadata. The song list is always empty."""
    return await _resource_response(ResourceKind.ALBUM, album_id, client, posthog_client)


@router.get(
    "/artists/{artist_id}",
    response_model=ApiResponse[ArtistFull],
    summary="Get an artist by ID",
    responses=RESOURCE_RESPONSES,
)
async def get_artist(
    artist_id: str,
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    """Get artist metadata. Top songs are always empty."""
    return await _resource_response(ResourceKind.ARTIST, artist_id, client, posthog_client)


@router.get(
    "/playlists/{playlist_id}",
    response_model=ApiResponse[Playlist],
    summary="Get a playlist by ID",
    responses=RESOURCE_RESPONSES,
)
async def get_playlist(
    playlist_id: str,
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    return await _resource_response(ResourceKind.PLAYLIST, playlist_id, client, posthog_client)


@router.get(
    "/community-playlists/{playlist_id}",
    response_model=ApiResponse[Playlist],
    summary="Get a community playlist by ID",
    responses=RESOURCE_RESPONSES,
)
async def get_community_playlist(
    playlist_id: str,
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    return await _resource_response(
        ResourceKind.USER_PLAYLIST, playlist_id, client, posthog_client
    )


@router.get(
    "/search/songs",
    response_model=ApiResponse[list[Track]],
    summary="Search for tracks",
    responses={
        200: {"description": "Search results returned (possibly empty)"},
        400: {"description": "Missing query parameter"},
        422: {"description": "Limit out of range"},
    },
)
async def search_songs(
    query: str | None = Query(None, description="Search query (e.g. 'imagine dragons')"),
    limit: int | None = Query(
        None, ge=1, le=50, description="Maximum number of results (default: configured limit)"
    ),
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    """Search tracks through the web search engine. Upstream failures yield an empty list."""
    if not query or not query.strip():
        return envelope(error="Query parameter is required", status_code=400)
    if limit is None:
        limit = client.search_limit

    tracks, failure = await _run_tracked(
        "search", lambda: client.search(query, limit), posthog_client, {"limit": limit}
    )
    if failure is not None:
        return failure
    return envelope(tracks)


@router.get(
    "/parse-url",
    response_model=ApiResponse[ParsedReference],
    summary="Parse an Amazon Music URL",
    responses={
        200: {"description": "Kind and id returned"},
        400: {"description": "Missing or unrecognized URL"},
    },
)
async def parse_url(
    url: str | None = Query(None, description="Amazon Music URL"),
    client: AmazonMusicClient = Depends(get_amazon_music_client),
) -> JSONResponse:
    if not url:
        return envelope(error="URL parameter is required", status_code=400)

    parsed = client.parse_url(url)
    if parsed is None:
        return envelope(error="Invalid Amazon Music URL", status_code=400)
    return envelope(parsed)


@router.get(
    "/load-url",
    response_model=ApiResponse[PublicResource],
    summary="Load whatever an Amazon Music URL points at",
    responses={
        200: {"description": "Track, album, artist or playlist returned"},
        400: {"description": "Missing URL"},
        404: {"description": "URL not recognized or resource not found"},
        500: {"description": "Upstream page could not be fetched"},
    },
)
async def load_url(
    url: str | None = Query(None, description="Amazon Music URL"),
    client: AmazonMusicClient = Depends(get_amazon_music_client),
    posthog_client: Posthog | None = Depends(get_posthog_client),
) -> JSONResponse:
    if not url:
        return envelope(error="URL parameter is required", status_code=400)

    content, failure = await _run_tracked(
        "load_url", lambda: client.load_from_url(url), posthog_client
    )
    if failure is not None:
        return failure
    if content is None:
        return envelope(error="Could not load content from URL", status_code=404)
    return envelope(content)
