# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
In-memory resolver backed by a JSON media file.

Used for development, demos and tests when no streaming account is
configured.  File layout:

    {
      "library": {"songs": [...], "albums": [...], "playlists": [...]},
      "catalog": {"songs": [...], "albums": [...], "stations": [...]}
    }

Songs use the wire field names (id, title, artist, album, duration,
artwork); albums and playlists may carry a "tracks" list of songs.
"""

import json
import logging

from ..models import Album, MediaItem, Namespace, Playlist, Station
from ..protocol import song_from_wire
from .base import ResolverGateway

logger = logging.getLogger(__name__)

# "<title> by <artist>" style terms
_STOPWORDS = {"by"}


def _album_from_dict(data: dict) -> Album:
    return Album(
        title=data["title"],
        artist=data.get("artist"),
        id=data.get("id"),
        artwork=data.get("artwork"),
        tracks=tuple(song_from_wire(t) for t in data.get("tracks", [])),
    )


def _matches_term(words: list[str], *fields) -> bool:
    haystack = " ".join(f for f in fields if f).lower()
    return all(w in haystack for w in words)


class LibraryResolver(ResolverGateway):
    """Resolver over fixed lists of songs, albums, playlists and stations."""

    def __init__(self, library_songs=(), library_albums=(), playlists=(),
                 catalog_songs=(), catalog_albums=(), stations=()):
        self._songs = {
            Namespace.LIBRARY: list(library_songs),
            Namespace.CATALOG: list(catalog_songs),
        }
        self._albums = {
            Namespace.LIBRARY: list(library_albums),
            Namespace.CATALOG: list(catalog_albums),
        }
        self._playlists: list[Playlist] = list(playlists)
        self._stations: list[Station] = list(stations)

    @classmethod
    def from_file(cls, path: str) -> "LibraryResolver":
        with open(path) as f:
            data = json.load(f)
        library = data.get("library") or {}
        catalog = data.get("catalog") or {}
        resolver = cls(
            library_songs=[song_from_wire(s) for s in library.get("songs", [])],
            library_albums=[_album_from_dict(a) for a in library.get("albums", [])],
            playlists=[
                Playlist(p["name"], p.get("id"),
                         tuple(song_from_wire(t) for t in p.get("tracks", [])))
                for p in library.get("playlists", [])
            ],
            catalog_songs=[song_from_wire(s) for s in catalog.get("songs", [])],
            catalog_albums=[_album_from_dict(a) for a in catalog.get("albums", [])],
            stations=[Station(s["name"], s.get("id")) for s in catalog.get("stations", [])],
        )
        logger.info("Media file %s: %d library songs, %d catalog songs, %d playlists",
                    path, len(resolver._songs[Namespace.LIBRARY]),
                    len(resolver._songs[Namespace.CATALOG]), len(resolver._playlists))
        return resolver

    async def resolve_song(self, namespace, song_id):
        for song in self._songs[Namespace(namespace)]:
            if song.id == song_id:
                return song
        return None

    async def resolve_album(self, namespace, album_id):
        for album in self._albums[Namespace(namespace)]:
            if album.id == album_id:
                return album
        return None

    async def resolve_playlist(self, playlist_id=None, name=None):
        for playlist in self._playlists:
            if playlist_id is not None:
                if playlist.id == playlist_id:
                    return playlist
            elif name is not None and playlist.name == name:
                return playlist
        return None

    async def resolve_station(self, station_id):
        for station in self._stations:
            if station.id == station_id:
                return station
        return None

    async def search(self, term, types=("songs",), limit=25):
        """Catalog search: every word of *term* must appear, source order kept."""
        words = [w for w in term.lower().split() if w not in _STOPWORDS]
        results = []
        for kind in types:
            if kind == "songs":
                results.extend(
                    s for s in self._songs[Namespace.CATALOG]
                    if _matches_term(words, s.title, s.artist, s.album))
            elif kind == "albums":
                results.extend(
                    a for a in self._albums[Namespace.CATALOG]
                    if _matches_term(words, a.title, a.artist))
        return results[:limit]
