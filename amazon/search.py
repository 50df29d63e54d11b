"""Track search by scraping a web search engine's result page.

Amazon Music has no public search endpoint, so the harvester asks the search
engine for pages under the service's domain and pulls track ids out of the
redirect-wrapped result links. Results keep the order the links appear in.
"""

import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from urllib.parse import quote, unquote

import httpx

from amazon.models import AlbumRef, ArtistRef, ResourceKind, Track
from amazon.urls import SAFE_URI_COMPONENT_CHARS, SERVICE_DOMAIN, canonical_url, parse_url
from config.settings import DESKTOP_BROWSER_USER_AGENT
from core.sentry import add_scrape_breadcrumb
from core.telemetry import record_degraded_result, record_search_request

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_ENGINE_URL = "https://search.yahoo.com/search"
DEFAULT_SEARCH_LIMIT = 20

# Result links look like https://r.search.yahoo.com/_ylt=.../RU=<encoded target>/RK=...
REDIRECT_LINK_PATTERN = re.compile(r'href="https://r\.search\.yahoo\.com/[^"]*RU=([^"/]+)/')

TrackLoader = Callable[[str], Awaitable[Track | None]]


@dataclass
class SearchHit:
    """A search result and whether it carries fetched metadata or a placeholder."""

    track: Track
    enriched: bool


def placeholder_track(track_id: str, label: str = "Track") -> Track:
    """Minimal record for a track id whose page was not (or could not be) fetched."""
    name = f"{label} {track_id}"
    return Track(
        id=track_id,
        name=name,
        title=name,
        url=canonical_url(ResourceKind.TRACK, track_id),
        artist=ArtistRef(name="Unknown"),
        album=AlbumRef(name="Unknown"),
        duration=0,
    )


def extract_track_ids(markup: str):
    """Yield track ids from the search engine's redirect links, in page order.

    Targets outside the service domain and non-track URLs are skipped.
    """
    for match in REDIRECT_LINK_PATTERN.finditer(markup):
        target = unquote(match.group(1))
        if SERVICE_DOMAIN not in target:
            continue
        parsed = parse_url(target)
        if parsed is not None and parsed.kind is ResourceKind.TRACK:
            yield parsed.id


class SearchHarvester:
    """Finds tracks for a free-text query via the search engine."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        load_track: TrackLoader | None = None,
        engine_url: str = DEFAULT_SEARCH_ENGINE_URL,
        user_agent: str = DESKTOP_BROWSER_USER_AGENT,
    ):
        self.client = client
        self.load_track = load_track
        self.engine_url = engine_url
        self.user_agent = user_agent

    def build_query_url(self, query: str, path: str = "") -> str:
        site = f"site:{SERVICE_DOMAIN}{path}"
        return f"{self.engine_url}?p={site}+{quote(query, safe=SAFE_URI_COMPONENT_CHARS)}&nojs=1"

    async def _fetch_results_page(self, url: str) -> str | None:
        """Fetch a results page; None on a non-2xx answer."""
        add_scrape_breadcrumb("search_page", {"url": url})
        logger.info(f"Searching: {url}")

        start = time.perf_counter()
        response = await self.client.get(
            url, headers={"User-Agent": self.user_agent, "Accept": "*/*"}
        )
        record_search_request((time.perf_counter() - start) * 1000)

        if not response.is_success:
            logger.error(f"Search failed: {response.status_code} {response.reason_phrase}")
            return None
        return response.text

    async def _enrich(self, track_id: str) -> SearchHit | None:
        """Load full metadata for a hit, falling back to a placeholder on error."""
        if self.load_track is None:
            record_degraded_result()
            return SearchHit(placeholder_track(track_id), enriched=False)
        try:
            track = await self.load_track(track_id)
        except Exception as e:
            logger.warning(f"Error fetching track {track_id}: {type(e).__name__}: {e}")
            record_degraded_result()
            return SearchHit(placeholder_track(track_id), enriched=False)
        if track is None:
            return None
        return SearchHit(track, enriched=True)

    async def harvest(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[SearchHit]:
        """Run the two-phase search and return hits, at most ``limit`` of them.

        Phase 1 restricts the search to track pages and enriches each hit.
        Phase 2 only runs when phase 1 found nothing: a site-wide search whose
        hits are returned as placeholders.
        """
        if limit < 1:
            return []

        hits: list[SearchHit] = []
        seen: set[str] = set()

        try:
            markup = await self._fetch_results_page(self.build_query_url(query, "/tracks"))
            if markup is None:
                return []

            for track_id in extract_track_ids(markup):
                if len(hits) >= limit:
                    break
                if track_id in seen:
                    continue
                seen.add(track_id)
                hit = await self._enrich(track_id)
                if hit is not None:
                    hits.append(hit)

            if hits:
                return hits

            logger.info("No results with /tracks/, trying broader search...")
            markup = await self._fetch_results_page(self.build_query_url(query))
            if markup is None:
                return hits

            for track_id in extract_track_ids(markup):
                if len(hits) >= limit:
                    break
                if track_id in seen:
                    continue
                seen.add(track_id)
                record_degraded_result()
                hits.append(SearchHit(placeholder_track(track_id, "Result"), enriched=False))

            return hits

        except Exception as e:
            logger.error(f"Search error for '{query}': {type(e).__name__}: {e}")
            add_scrape_breadcrumb("search_failed", {"query": query, "error": str(e)}, "error")
            return []

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[Track]:
        """Search for tracks. Never raises; upstream failures yield an empty list."""
        return [hit.track for hit in await self.harvest(query, limit)]
