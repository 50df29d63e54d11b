"""Shared test factories for pages, search results and models."""

import json
from urllib.parse import quote

import httpx

from amazon.models import AlbumRef, ArtistRef, Track


def make_page(
    og_title=None,
    description=None,
    image=None,
    album_url=None,
    title_tag=None,
    json_ld=None,
    extra_meta=None,
):
    """Build an HTML page the way the page source renders it for preview crawlers."""
    meta = []
    if og_title is not None:
        meta.append(f'<meta property="og:title" content="{og_title}" />')
    if description is not None:
        meta.append(f'<meta property="og:description" content="{description}" />')
    if image is not None:
        meta.append(f'<meta property="og:image" content="{image}" />')
    if album_url is not None:
        meta.append(f'<meta property="music:album" content="{album_url}" />')
    meta.extend(extra_meta or [])

    head = "\n".join(meta)
    if title_tag is not None:
        head += f"\n<title>{title_tag}</title>"
    if json_ld is not None:
        body = json_ld if isinstance(json_ld, str) else json.dumps(json_ld)
        head += f'\n<script type="application/ld+json">{body}</script>'
    return f"<!DOCTYPE html><html><head>{head}</head><body></body></html>"


def music_recording(artist="Imagine Dragons", album="Evolve", duration="PT3M21S"):
    """JSON-LD MusicRecording payload."""
    payload = {"@context": "https://schema.org", "@type": "MusicRecording", "name": "Song"}
    if artist is not None:
        payload["byArtist"] = {"@type": "MusicGroup", "name": artist}
    if album is not None:
        payload["inAlbum"] = {"@type": "MusicAlbum", "name": album}
    if duration is not None:
        payload["duration"] = duration
    return payload


def yahoo_link(target_url):
    """A redirect-wrapped search result link."""
    encoded = quote(target_url, safe="")
    return (
        f'<a class="d-ib" href="https://r.search.yahoo.com/_ylt=AwrFQ/RV=2/RE=1700000000/'
        f'RO=10/RU={encoded}/RK=2/RS=xYz-">result</a>'
    )


def make_search_page(*target_urls):
    """A search results page linking to the given destination URLs, in order."""
    links = "\n".join(yahoo_link(url) for url in target_urls)
    return f"<html><body><ol>{links}</ol></body></html>"


def make_track(id="B079TPJ3G4", name="Whatever It Takes", **kwargs):
    """Build a Track with sensible defaults."""
    defaults = dict(
        title=name,
        artist=ArtistRef(name="Imagine Dragons"),
        album=AlbumRef(name="Evolve"),
        duration=201,
        url=f"https://music.amazon.com/tracks/{id}",
    )
    defaults.update(kwargs)
    return Track(id=id, name=name, **defaults)


def mock_http_client(routes, requests=None):
    """httpx.AsyncClient answering from a {url: body | status | exception} map.

    Unknown URLs answer 404. Every request is appended to ``requests`` when given.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        key = str(request.url)
        answer = routes.get(key)
        if answer is None:
            answer = routes.get(key.rstrip("/"))
        if answer is None and callable(routes.get("*")):
            answer = routes["*"](request)
        if answer is None:
            return httpx.Response(404, text="")
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer, text="")
        return httpx.Response(200, text=answer)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
