"""Tests for resolver backends and the resolver factory"""

import asyncio
import json

import pytest

from amdbridge.lib import config
from amdbridge.lib.models import Album, MediaItem, Namespace, Station
from amdbridge.lib.resolvers import (
    AppleMusicResolver,
    LibraryResolver,
    ResolverGateway,
    create_resolver,
)
from amdbridge.lib.resolvers.apple_music import (
    API_BASE,
    RATE_LIMIT_DELAY,
    album_from_resource,
    playlist_from_resource,
    retry_after_seconds,
    song_from_resource,
)

MEDIA = {
    "library": {
        "songs": [{"id": "l.1", "title": "So What", "artist": "Miles Davis",
                   "album": "Kind of Blue", "duration": 562}],
        "albums": [{"id": "l.a1", "title": "Kind of Blue", "artist": "Miles Davis",
                    "tracks": [{"title": "So What", "artist": "Miles Davis"}]}],
        "playlists": [{"id": "p.1", "name": "Late Night",
                       "tracks": [{"title": "So What"}]}],
    },
    "catalog": {
        "songs": [{"id": "c.1", "title": "Naima", "artistName": "John Coltrane",
                   "albumTitle": "Giant Steps"}],
        "albums": [{"id": "c.a1", "title": "Giant Steps", "artist": "John Coltrane"}],
        "stations": [{"id": "ra.1", "name": "Jazz Radio"}],
    },
}


class FakeResponse:

    def __init__(self, status, headers=None, body=None):
        self.status = status
        self.headers = headers or {}
        self.body = body

    async def json(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Hands out canned responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.urls: list[str] = []

    def get(self, url, params=None, headers=None):
        self.urls.append(url)
        return self.responses.pop(0)


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "media.json"
    path.write_text(json.dumps(MEDIA))
    return path


class TestLibraryResolver:

    def test_from_file(self, media_file):
        resolver = LibraryResolver.from_file(str(media_file))

        async def scenario():
            return (
                await resolver.resolve_song(Namespace.LIBRARY, "l.1"),
                await resolver.resolve_song(Namespace.CATALOG, "l.1"),
                await resolver.resolve_album("library", "l.a1"),
                await resolver.resolve_playlist(name="Late Night"),
                await resolver.resolve_station("ra.1"),
            )

        song, missing, album, playlist, station = asyncio.run(scenario())
        assert song == MediaItem("So What", artist="Miles Davis", album="Kind of Blue",
                                 id="l.1", duration=562.0)
        assert missing is None
        assert album.tracks[0].title == "So What"
        assert playlist.id == "p.1"
        assert station == Station("Jazz Radio", id="ra.1")

    def test_playlist_id_takes_precedence(self, media_file):
        resolver = LibraryResolver.from_file(str(media_file))
        assert asyncio.run(resolver.resolve_playlist("p.2", name="Late Night")) is None

    def test_search_covers_catalog_only(self, media_file):
        resolver = LibraryResolver.from_file(str(media_file))
        assert asyncio.run(resolver.search("So What")) == []
        found = asyncio.run(resolver.search("naima by john coltrane"))
        assert [s.id for s in found] == ["c.1"]
        assert found[0].album == "Giant Steps"

    def test_search_types_and_limit(self, media_file):
        resolver = LibraryResolver.from_file(str(media_file))
        results = asyncio.run(resolver.search("Giant Steps", types=("albums", "songs")))
        assert isinstance(results[0], Album)
        assert isinstance(results[1], MediaItem)
        assert asyncio.run(resolver.search("Giant Steps", types=("albums", "songs"), limit=1)) \
            == results[:1]


class TestAppleMusicParsing:

    def test_song_resource(self):
        song = song_from_resource({
            "id": "1440857781",
            "type": "songs",
            "attributes": {
                "name": "So What",
                "artistName": "Miles Davis",
                "albumName": "Kind of Blue (Legacy Edition)",
                "durationInMillis": 562000,
                "artwork": {"url": "https://is1.mzstatic.com/image/{w}x{h}bb.jpg"},
            },
        })
        assert song.id == "1440857781"
        assert song.album == "Kind of Blue (Legacy Edition)"
        assert song.duration == 562.0
        assert song.artwork == "https://is1.mzstatic.com/image/300x300bb.jpg"

    def test_song_without_optional_attributes(self):
        song = song_from_resource({"id": "i.1", "attributes": {"name": "Untitled"}})
        assert song == MediaItem("Untitled", id="i.1")

    def test_album_with_tracks(self):
        album = album_from_resource({
            "id": "1440857722",
            "attributes": {"name": "Kind of Blue", "artistName": "Miles Davis"},
            "relationships": {"tracks": {"data": [
                {"id": "1", "attributes": {"name": "So What"}},
                {"id": "2", "attributes": {"name": "Freddie Freeloader"}},
            ]}},
        })
        assert album.matches(Album("Kind of Blue", artist="Miles Davis"))
        assert [t.title for t in album.tracks] == ["So What", "Freddie Freeloader"]

    def test_playlist_without_tracks(self):
        playlist = playlist_from_resource({"id": "p.1", "attributes": {"name": "Late Night"}})
        assert playlist.name == "Late Night"
        assert playlist.tracks == ()

    def test_tokens_from_environment(self, monkeypatch):
        monkeypatch.setenv("APPLE_MUSIC_DEVELOPER_TOKEN", "dev")
        monkeypatch.setenv("APPLE_MUSIC_USER_TOKEN", "user")
        headers = AppleMusicResolver()._headers()
        assert headers == {"Authorization": "Bearer dev", "Music-User-Token": "user"}

    def test_retry_after_forms(self):
        assert retry_after_seconds("7") == 7.0
        assert retry_after_seconds("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
        assert retry_after_seconds("soon") == RATE_LIMIT_DELAY
        assert retry_after_seconds(None) == RATE_LIMIT_DELAY

    def test_rate_limit_with_http_date_is_retried(self):
        session = FakeSession([
            FakeResponse(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
            FakeResponse(200, body={"data": [{"id": "c.1", "attributes": {"name": "Naima"}}]}),
        ])
        resolver = AppleMusicResolver(session=session, developer_token="dev")
        song = asyncio.run(resolver.resolve_song(Namespace.CATALOG, "c.1"))
        assert song == MediaItem("Naima", id="c.1")
        assert session.urls == [API_BASE + "/catalog/us/songs/c.1"] * 2


class TestFactory:

    def _configure(self, path, resolver_section):
        path.write_text(json.dumps({"resolver": resolver_section}))
        config.reload_config()

    def test_default_is_empty_library(self):
        resolver = create_resolver()
        assert isinstance(resolver, LibraryResolver)
        assert asyncio.run(resolver.search("anything")) == []

    def test_library_file(self, config_file, media_file):
        self._configure(config_file, {"type": "library", "library_file": str(media_file)})
        resolver = create_resolver()
        assert asyncio.run(resolver.resolve_station("ra.1")).name == "Jazz Radio"

    def test_apple_music(self, config_file):
        self._configure(config_file, {"type": "apple_music", "storefront": "gb"})
        resolver = create_resolver()
        assert isinstance(resolver, AppleMusicResolver)
        assert isinstance(resolver, ResolverGateway)
        assert resolver.storefront == "gb"
