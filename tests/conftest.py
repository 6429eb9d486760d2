"""Test configuration and fixtures"""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosed

from amdbridge.lib import config
from amdbridge.lib.models import Album, MediaItem, Playlist, Station
from amdbridge.lib.resolvers import LibraryResolver, ResolverError


class CountingResolver(LibraryResolver):
    """LibraryResolver that records every call and can be told to fail."""

    def __init__(self, *args, fail=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail = fail
        self.calls: list[tuple] = []

    def _record(self, *call):
        self.calls.append(call)
        if self.fail:
            raise ResolverError("backend down")

    async def resolve_song(self, namespace, song_id):
        self._record("resolve_song", namespace, song_id)
        return await super().resolve_song(namespace, song_id)

    async def resolve_album(self, namespace, album_id):
        self._record("resolve_album", namespace, album_id)
        return await super().resolve_album(namespace, album_id)

    async def resolve_playlist(self, playlist_id=None, name=None):
        self._record("resolve_playlist", playlist_id, name)
        return await super().resolve_playlist(playlist_id, name)

    async def resolve_station(self, station_id):
        self._record("resolve_station", station_id)
        return await super().resolve_station(station_id)

    async def search(self, term, types=("songs",), limit=25):
        self._record("search", term, tuple(types), limit)
        return await super().search(term, types, limit)

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


class FakeWebSocket:
    """Client-side socket double: feed() frames in, close() ends iteration."""

    def __init__(self, answer_pings=True, ping_error=None):
        self.answer_pings = answer_pings
        self.ping_error = ping_error
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.pings = 0
        self.closed = False

    def feed(self, message):
        self.inbox.put_nowait(message)

    def drop(self):
        """End the stream the way a lost connection does."""
        self.inbox.put_nowait(ConnectionClosed(None, None))

    async def send(self, text):
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(text)

    async def ping(self):
        self.pings += 1
        if self.ping_error is not None:
            raise self.ping_error
        pong = asyncio.get_running_loop().create_future()
        if self.answer_pings:
            pong.set_result(0.0)
        return pong

    async def close(self):
        if not self.closed:
            self.closed = True
            self.inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self.inbox.get()
        if message is None:
            raise StopAsyncIteration
        if isinstance(message, Exception):
            raise message
        return message


class FakeServer:
    """Connector double handing out FakeWebSockets; fails the first *failures* attempts."""

    def __init__(self, failures=0, answer_pings=True, ping_error=None):
        self.failures = failures
        self.answer_pings = answer_pings
        self.ping_error = ping_error
        self.urls: list[str] = []
        self.attempted_at: list[float] = []
        self.sockets: list[FakeWebSocket] = []

    async def __call__(self, url):
        self.urls.append(url)
        self.attempted_at.append(asyncio.get_running_loop().time())
        if self.failures:
            self.failures -= 1
            raise ConnectionRefusedError("connection refused")
        ws = FakeWebSocket(self.answer_pings, self.ping_error)
        self.sockets.append(ws)
        return ws

    @property
    def latest(self):
        return self.sockets[-1]


async def until(predicate, timeout=2.0):
    """Poll *predicate* until true; fail the test on timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ws_server():
    return FakeServer()


@pytest.fixture
def make_server():
    return FakeServer


@pytest.fixture
def wait_until():
    return until


@pytest.fixture
def songs():
    return [
        MediaItem("So What", artist="Miles Davis", album="Kind of Blue", id="l.1", duration=562.0),
        MediaItem("Freddie Freeloader", artist="Miles Davis", album="Kind of Blue", id="l.2", duration=589.0),
        MediaItem("Blue in Green", artist="Miles Davis", album="Kind of Blue", id="l.3", duration=337.0),
        MediaItem("All Blues", artist="Miles Davis", album="Kind of Blue", id="l.4", duration=694.0),
        MediaItem("Flamenco Sketches", artist="Miles Davis", album="Kind of Blue", id="l.5", duration=566.0),
    ]


@pytest.fixture
def catalog_songs(songs):
    # Same songs under catalog ids, plus look-alikes from other albums
    return [
        MediaItem("A", artist="Someone Else", album="C", id="c.900"),
        MediaItem("A", artist="B", album="Live at C", id="c.901"),
        MediaItem("A", artist="B", album="C", id="c.100", duration=200.0),
    ] + [
        MediaItem(s.title, artist=s.artist, album=s.album, id=f"c.{i}", duration=s.duration)
        for i, s in enumerate(songs, start=1)
    ]


@pytest.fixture
def resolver(songs, catalog_songs):
    kind_of_blue = Album("Kind of Blue", artist="Miles Davis", id="l.a1", tracks=tuple(songs))
    return CountingResolver(
        library_songs=songs,
        library_albums=[kind_of_blue],
        playlists=[Playlist("Late Night", id="p.1", tracks=tuple(songs[:2]))],
        catalog_songs=catalog_songs,
        catalog_albums=[
            Album("Blue Train", artist="John Coltrane", id="c.a2",
                  tracks=(MediaItem("Blue Train", artist="John Coltrane", album="Blue Train"),)),
        ],
        stations=[Station("Jazz Radio", id="ra.1")],
    )


@pytest.fixture(autouse=True)
def config_file(tmp_path, monkeypatch):
    """Point the config loader at a throwaway file for every test."""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "server": {"host": "127.0.0.1", "port": 9992, "path": "/amdsocket"},
        "broadcast": {"interval": 1.0, "send_timeout": 2.0},
        "client": {"keepalive_interval": 10, "reconnect_delay": 2},
        "resolver": {"type": "library", "library_file": "", "search_limit": 25},
    }))
    monkeypatch.setenv("AMDBRIDGE_CONFIG", str(path))
    config.reload_config()
    yield path
    config.reload_config()
