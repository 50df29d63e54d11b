"""Extract normalized metadata from an Amazon Music page.

The page source renders OpenGraph preview tags for social crawlers, an
optional JSON-LD block, and a <title>. The markup is parsed once with
BeautifulSoup, then an ordered list of stages runs over the parsed document
and a MetadataBuilder. Each field is first-writer-wins: once a stage
sets it, later stages can only fill fields that are still empty.

Field priority (earliest source first):

    title           og:title, <title>
    description     og:description
    image           og:image, og:image:secure_url
    type            og:type
    site_name       og:site_name
    audio_url       og:audio, og:audio:url, og:audio:secure_url
    album_url       music:album
    artist_name     JSON-LD byArtist, title split
    album_name      JSON-LD inAlbum, description "from/on ..."
    duration        JSON-LD duration
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Any, Protocol

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

logger = logging.getLogger(__name__)

BRAND_NAME = "Amazon Music"
TITLE_SUFFIX = f" | {BRAND_NAME}"

# Priority order: en-dash, hyphen, pipe.
TITLE_SEPARATORS = (" – ", " - ", " | ")

JSON_LD_TYPE = re.compile(r"^\s*application/ld\+json\s*$", re.IGNORECASE)
ISO_DURATION_PATTERN = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)(?:\.\d+)?S)?")
ALBUM_IN_DESCRIPTION_PATTERN = re.compile(
    r"""\b(?:from|on)\s+["']?([^"']+)["']?""", re.IGNORECASE
)

# meta property -> RawMetadata field
META_FIELDS = {
    "og:title": "title",
    "og:description": "description",
    "og:image": "image",
    "og:image:secure_url": "image",
    "og:type": "type",
    "og:site_name": "site_name",
    "og:audio": "audio_url",
    "og:audio:url": "audio_url",
    "og:audio:secure_url": "audio_url",
    "music:album": "album_url",
}


@dataclass(frozen=True)
class RawMetadata:
    """Metadata scraped from a single page, before shaping into a resource."""

    url: str = ""
    title: str = ""
    description: str = ""
    image: str = ""
    type: str = ""
    site_name: str = ""
    audio_url: str = ""
    artist_name: str = ""
    album_name: str = ""
    album_url: str = ""
    duration_seconds: int = 0


_FIELD_DEFAULTS = {f.name: f.default for f in fields(RawMetadata)}


class MetadataBuilder:
    """Accumulates RawMetadata fields, keeping the first non-empty value per field."""

    def __init__(self, url: str = ""):
        self._values: dict[str, Any] = dict(_FIELD_DEFAULTS)
        self._values["url"] = url
        self.sources: dict[str, str] = {}

    def get(self, name: str) -> Any:
        return self._values[name]

    def is_empty(self, name: str) -> bool:
        return not self._values[name]

    def offer(self, name: str, value: Any, source: str) -> bool:
        """Set a field if it is still empty. Returns True when the value was taken."""
        if name not in self._values:
            raise KeyError(name)
        if not value or not self.is_empty(name):
            return False
        self._values[name] = value
        self.sources[name] = source
        return True

    def build(self) -> RawMetadata:
        return RawMetadata(**self._values)


@dataclass
class ExtractionResult:
    """Outcome of running the extraction stages over a page.

    ``issues`` lists recoverable problems (e.g. an unparseable JSON-LD block).
    A result with issues is degraded: the metadata is still usable but some
    sources were skipped.
    """

    metadata: RawMetadata
    sources: dict[str, str] = field(default_factory=dict)
    issues: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.issues)


StageFn = Callable[[BeautifulSoup, MetadataBuilder], list[str] | None]


@dataclass(frozen=True)
class ExtractionStage:
    """A named extraction step. Returns a list of issues, or None when clean."""

    name: str
    apply: StageFn


class MetadataParser(Protocol):
    """Turns page markup into an ExtractionResult."""

    def parse(self, markup: str, source_url: str) -> ExtractionResult: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def split_title(title: str) -> list[str] | None:
    """Split a title on the first separator present, in priority order.

    Returns the stripped parts, or None if no separator occurs.
    """
    for separator in TITLE_SEPARATORS:
        if separator in title:
            return [part.strip() for part in title.split(separator)]
    return None


def parse_iso_duration(value: str) -> int:
    """Convert an ISO-8601 duration (PT#H#M#S) to whole seconds. Unparseable -> 0."""
    match = ISO_DURATION_PATTERN.search(value)
    if match is None:
        return 0
    hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def _meta_tags(soup: BeautifulSoup):
    """Yield (property, content) for each meta tag with a property/name and content."""
    for tag in soup.find_all("meta"):
        key = tag.get("property") or tag.get("name")
        content = tag.get("content")
        if isinstance(key, str) and isinstance(content, str):
            yield key.strip().lower(), content.strip()


def _find_music_recording(payload: Any) -> dict | None:
    """Find the first MusicRecording object in a decoded JSON-LD payload."""
    candidates = payload if isinstance(payload, list) else [payload]
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        if candidate.get("@type") == "MusicRecording":
            return candidate
        graph = candidate.get("@graph")
        if isinstance(graph, list):
            found = _find_music_recording(graph)
            if found:
                return found
    return None


def _entity_name(entity: Any, allow_id: bool = False) -> str:
    if isinstance(entity, list):
        entity = entity[0] if entity else None
    if not isinstance(entity, dict):
        return ""
    name = entity.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    if allow_id and isinstance(entity.get("@id"), str):
        return entity["@id"].strip()
    return ""


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def scan_meta_tags(soup: BeautifulSoup, builder: MetadataBuilder) -> None:
    for key, content in _meta_tags(soup):
        target = META_FIELDS.get(key)
        if target:
            builder.offer(target, content, "meta")


def scan_title_element(soup: BeautifulSoup, builder: MetadataBuilder) -> None:
    if not builder.is_empty("title"):
        return
    tag = soup.find("title")
    if tag is None:
        return
    title = tag.get_text().strip()
    if title.endswith(TITLE_SUFFIX):
        title = title[: -len(TITLE_SUFFIX)].strip()
    builder.offer("title", title, "title_element")


def scan_structured_data(soup: BeautifulSoup, builder: MetadataBuilder) -> list[str] | None:
    issues: list[str] = []
    for block in soup.find_all("script", attrs={"type": JSON_LD_TYPE}):
        try:
            payload = json.loads(block.get_text())
        except json.JSONDecodeError as e:
            issues.append(f"structured_data: invalid JSON ({e.msg})")
            continue

        recording = _find_music_recording(payload)
        if recording is None:
            continue

        builder.offer(
            "artist_name", _entity_name(recording.get("byArtist"), allow_id=True), "structured_data"
        )
        builder.offer("album_name", _entity_name(recording.get("inAlbum")), "structured_data")
        duration = recording.get("duration")
        if isinstance(duration, str):
            builder.offer("duration_seconds", parse_iso_duration(duration), "structured_data")
        break
    return issues or None


def split_artist_from_title(soup: BeautifulSoup, builder: MetadataBuilder) -> None:
    title = builder.get("title")
    if not builder.is_empty("artist_name") or not title:
        return
    parts = split_title(title)
    if parts is None or len(parts) < 2:
        return
    candidate = parts[-1]
    if candidate != BRAND_NAME:
        builder.offer("artist_name", candidate, "title_split")


def album_from_description(soup: BeautifulSoup, builder: MetadataBuilder) -> None:
    description = builder.get("description")
    if not builder.is_empty("album_name") or not description:
        return
    match = ALBUM_IN_DESCRIPTION_PATTERN.search(description)
    if match is None:
        return
    candidate = match.group(1).strip()
    if candidate != BRAND_NAME:
        builder.offer("album_name", candidate, "description")


DEFAULT_STAGES: tuple[ExtractionStage, ...] = (
    ExtractionStage("meta_tags", scan_meta_tags),
    ExtractionStage("title_element", scan_title_element),
    ExtractionStage("structured_data", scan_structured_data),
    ExtractionStage("title_split", split_artist_from_title),
    ExtractionStage("description", album_from_description),
)


class OpenGraphExtractor:
    """Default MetadataParser: preview tags, then JSON-LD, then text heuristics."""

    def __init__(self, stages: tuple[ExtractionStage, ...] = DEFAULT_STAGES):
        self.stages = stages

    def parse(self, markup: str, source_url: str) -> ExtractionResult:
        builder = MetadataBuilder(source_url)
        issues: list[str] = []

        try:
            soup = BeautifulSoup(markup or "", "html.parser")
        except ParserRejectedMarkup as e:
            logger.warning(f"Markup rejected by parser for {source_url}: {e}")
            issues.append("markup: rejected by parser")
            soup = BeautifulSoup("", "html.parser")

        for stage in self.stages:
            try:
                stage_issues = stage.apply(soup, builder)
            except Exception as e:
                logger.warning(f"Extraction stage '{stage.name}' failed: {type(e).__name__}: {e}")
                issues.append(f"{stage.name}: {type(e).__name__}")
                continue
            if stage_issues:
                issues.extend(stage_issues)

        if issues:
            logger.debug(f"Degraded extraction for {source_url}: {issues}")

        return ExtractionResult(
            metadata=builder.build(), sources=dict(builder.sources), issues=issues
        )


def extract(markup: str, source_url: str) -> RawMetadata:
    """Extract RawMetadata from page markup. Never raises."""
    return OpenGraphExtractor().parse(markup, source_url).metadata
