# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Apple Music resolver — library and catalog lookups over the Apple Music API.

Tokens come from the environment (never from config.json):
  APPLE_MUSIC_DEVELOPER_TOKEN   signed developer JWT
  APPLE_MUSIC_USER_TOKEN        Music-User-Token, needed for /me/library
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from urllib.parse import quote

import aiohttp

from ..models import Album, MediaItem, Namespace, Playlist, Station
from .base import ResolverError, ResolverGateway

logger = logging.getLogger(__name__)

API_BASE = "https://api.music.apple.com/v1"
ARTWORK_SIZE = 300
RATE_LIMIT_DELAY = 2  # seconds, used when a 429 carries no Retry-After
MAX_RETRIES = 3
PLAYLIST_PAGE_LIMIT = 100


def retry_after_seconds(value: str | None) -> float:
    """Seconds to wait for a Retry-After header: delta-seconds or an HTTP date."""
    if not value:
        return RATE_LIMIT_DELAY
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return RATE_LIMIT_DELAY
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def _artwork_url(attrs: dict) -> str | None:
    artwork = attrs.get("artwork") or {}
    url = artwork.get("url")
    if not url:
        return None
    return url.replace("{w}", str(ARTWORK_SIZE)).replace("{h}", str(ARTWORK_SIZE))


def song_from_resource(resource: dict) -> MediaItem:
    """Build a MediaItem from an Apple Music song resource."""
    attrs = resource.get("attributes") or {}
    millis = attrs.get("durationInMillis")
    return MediaItem(
        title=attrs.get("name", ""),
        artist=attrs.get("artistName"),
        album=attrs.get("albumName"),
        id=resource.get("id"),
        duration=millis / 1000 if millis is not None else None,
        artwork=_artwork_url(attrs),
    )


def _tracks(resource: dict) -> tuple[MediaItem, ...]:
    rel = (resource.get("relationships") or {}).get("tracks") or {}
    return tuple(song_from_resource(t) for t in rel.get("data", []))


def album_from_resource(resource: dict) -> Album:
    attrs = resource.get("attributes") or {}
    return Album(
        title=attrs.get("name", ""),
        artist=attrs.get("artistName"),
        id=resource.get("id"),
        artwork=_artwork_url(attrs),
        tracks=_tracks(resource),
    )


def playlist_from_resource(resource: dict) -> Playlist:
    attrs = resource.get("attributes") or {}
    return Playlist(name=attrs.get("name", ""), id=resource.get("id"),
                    tracks=_tracks(resource))


class AppleMusicResolver(ResolverGateway):
    """Resolver talking to api.music.apple.com."""

    def __init__(self, storefront: str = "us",
                 session: aiohttp.ClientSession | None = None,
                 developer_token: str | None = None,
                 user_token: str | None = None):
        self.storefront = storefront
        self._developer_token = developer_token or os.getenv("APPLE_MUSIC_DEVELOPER_TOKEN", "")
        self._user_token = user_token or os.getenv("APPLE_MUSIC_USER_TOKEN", "")
        self._session = session
        self._owns_session = session is None

    def _headers(self) -> dict:
        headers = {"Authorization": f"Bearer {self._developer_token}"}
        if self._user_token:
            headers["Music-User-Token"] = self._user_token
        return headers

    async def _get(self, path: str, params: dict | None = None) -> dict | None:
        """GET *path* under API_BASE.  None on 404, ResolverError on failure."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15))
        url = f"{API_BASE}{path}"
        for attempt in range(MAX_RETRIES):
            try:
                async with self._session.get(url, params=params, headers=self._headers()) as resp:
                    if resp.status == 404:
                        return None
                    if resp.status == 429 and attempt < MAX_RETRIES - 1:
                        retry_after = retry_after_seconds(resp.headers.get("Retry-After"))
                        logger.info("Rate limited on %s, waiting %.0fs", path, retry_after)
                        await asyncio.sleep(retry_after)
                        continue
                    if resp.status == 401:
                        raise ResolverError("Unauthorized (401) — token missing or expired")
                    if resp.status != 200:
                        raise ResolverError(f"HTTP {resp.status} for {path}")
                    return await resp.json()
            except aiohttp.ClientError as e:
                raise ResolverError(f"Request to {path} failed: {e}") from e
            except asyncio.TimeoutError as e:
                raise ResolverError(f"Request to {path} timed out") from e
        raise ResolverError(f"Rate limited on {path} after {MAX_RETRIES} attempts")

    def _prefix(self, namespace: Namespace) -> str:
        if Namespace(namespace) is Namespace.LIBRARY:
            return "/me/library"
        return f"/catalog/{self.storefront}"

    @staticmethod
    def _first(data: dict | None) -> dict | None:
        if not data or not data.get("data"):
            return None
        return data["data"][0]

    async def resolve_song(self, namespace, song_id):
        resource = self._first(await self._get(
            f"{self._prefix(namespace)}/songs/{quote(song_id, safe='')}"))
        return song_from_resource(resource) if resource else None

    async def resolve_album(self, namespace, album_id):
        resource = self._first(await self._get(
            f"{self._prefix(namespace)}/albums/{quote(album_id, safe='')}",
            params={"include": "tracks"}))
        return album_from_resource(resource) if resource else None

    async def resolve_playlist(self, playlist_id=None, name=None):
        if playlist_id is not None:
            resource = self._first(await self._get(
                f"/me/library/playlists/{quote(playlist_id, safe='')}",
                params={"include": "tracks"}))
            return playlist_from_resource(resource) if resource else None
        if name is None:
            return None

        path = "/me/library/playlists"
        params = {"limit": PLAYLIST_PAGE_LIMIT}
        while path:
            data = await self._get(path, params=params)
            if not data:
                return None
            for resource in data.get("data", []):
                if (resource.get("attributes") or {}).get("name") == name:
                    return await self.resolve_playlist(playlist_id=resource["id"])
            # "next" is a path relative to the API root, with its own query
            next_path = data.get("next")
            path = next_path[len("/v1"):] if next_path and next_path.startswith("/v1") else next_path
            params = None
        return None

    async def resolve_station(self, station_id):
        resource = self._first(await self._get(
            f"/catalog/{self.storefront}/stations/{quote(station_id, safe='')}"))
        if not resource:
            return None
        attrs = resource.get("attributes") or {}
        return Station(name=attrs.get("name", ""), id=resource.get("id"))

    async def search(self, term, types=("songs",), limit=25):
        data = await self._get(
            f"/catalog/{self.storefront}/search",
            params={"term": term, "types": ",".join(types), "limit": limit})
        if not data:
            return []
        results = data.get("results") or {}
        items = []
        for kind in types:
            for resource in (results.get(kind) or {}).get("data", []):
                if kind == "songs":
                    items.append(song_from_resource(resource))
                elif kind == "albums":
                    items.append(album_from_resource(resource))
        return items

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
