"""Pydantic models for Amazon Music resources."""

from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

DataT = TypeVar("DataT")


class ResourceKind(StrEnum):
    """Kind of resource addressed by an Amazon Music URL."""

    TRACK = "track"
    ALBUM = "album"
    ARTIST = "artist"
    PLAYLIST = "playlist"
    USER_PLAYLIST = "user-playlist"

    @property
    def segment(self) -> str:
        """URL path segment for this kind (e.g. ``tracks``)."""
        return f"{self.value}s"

    @classmethod
    def from_segment(cls, segment: str) -> "ResourceKind":
        """Look up a kind by its URL path segment, case-insensitively."""
        return _KINDS_BY_SEGMENT[segment.lower()]


_KINDS_BY_SEGMENT = {kind.segment: kind for kind in ResourceKind}


class ParsedReference(BaseModel):
    """Kind and id extracted from an Amazon Music URL."""

    model_config = ConfigDict(frozen=True)

    kind: ResourceKind
    id: str


class ArtistRef(BaseModel):
    """Artist name with an optional link."""

    name: str
    url: str = ""


class AlbumRef(BaseModel):
    """Album name with an optional link."""

    name: str
    url: str = ""


class Track(BaseModel):
    """A single track."""

    id: str
    name: str
    title: str
    artist: ArtistRef
    album: AlbumRef
    duration: int = Field(default=0, ge=0, description="Duration in seconds")
    url: str
    image: str | None = None


class AlbumFull(BaseModel):
    """An album. The page source carries no track listing, so songs stays empty."""

    name: str
    url: str
    image: str | None = None
    artist: ArtistRef
    songs: list[Track] = []
    totalSongs: int = 0


class ArtistFull(BaseModel):
    """An artist."""

    name: str
    url: str
    image: str | None = None
    topSongs: list[Track] = []


class Playlist(BaseModel):
    """A service or community playlist."""

    name: str
    url: str
    image: str | None = None
    createdBy: str
    songs: list[Track] = []
    totalSongs: int = 0


PublicResource = Track | AlbumFull | ArtistFull | Playlist


class ApiResponse(BaseModel, Generic[DataT]):
    """Response envelope shared by every /api route."""

    success: bool
    data: DataT | None = None
    error: str | None = None
