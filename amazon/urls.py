"""Recognize Amazon Music URLs and build canonical links."""

import re
from urllib.parse import quote

from amazon.models import ParsedReference, ResourceKind

SERVICE_DOMAIN = "music.amazon.com"
CANONICAL_BASE = f"https://{SERVICE_DOMAIN}"

# Characters left unescaped when encoding a single URI component.
SAFE_URI_COMPONENT_CHARS = "!~*'()"

# Regional storefronts only (music.amazon.com, .co.uk, .com.br, .de, ...). The id is
# followed by an optional slug segment, then an optional path/query/fragment tail.
URL_PATTERN = re.compile(
    r"https?://music\.amazon\.(?:com|co\.[a-z]{2}|com\.[a-z]{2}|[a-z]{2})/"
    r"(?P<segment>albums|tracks|artists|playlists|user-playlists)/"
    r"(?P<id>[A-Za-z0-9]+)"
    r"(?:/[^/?#]+)?"
    r"(?:[/?#].*)?",
    re.IGNORECASE | re.DOTALL,
)


def parse_url(url: str) -> ParsedReference | None:
    """Extract the resource kind and id from an Amazon Music URL.

    Returns None for anything that is not a recognized resource URL.
    """
    if not url:
        return None

    match = URL_PATTERN.fullmatch(url.strip())
    if match is None:
        return None

    return ParsedReference(
        kind=ResourceKind.from_segment(match.group("segment")),
        id=match.group("id"),
    )


def canonical_url(kind: ResourceKind, resource_id: str) -> str:
    """Build the public URL for a resource."""
    return f"{CANONICAL_BASE}/{kind.segment}/{resource_id}"


def search_url(term: str) -> str:
    """Build a search-by-name link, used when no direct link is known."""
    return f"{CANONICAL_BASE}/search/{quote(term, safe=SAFE_URI_COMPONENT_CHARS)}"
