"""End-to-end tests: daemon over a real socket"""

import asyncio
import json

import aiohttp
import pytest
import websockets
from aiohttp import test_utils

from amdbridge.client.remote import RemoteClient
from amdbridge.daemon.server import BridgeDaemon
from amdbridge.lib.models import MediaItem, MessageLevel


@pytest.fixture
def daemon(resolver):
    return BridgeDaemon(resolver=resolver, interval=0.05)


async def _next_frame(ws, predicate, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        frame = json.loads(await asyncio.wait_for(ws.recv(), deadline - loop.time()))
        if predicate(frame):
            return frame


def _is_snapshot(frame):
    return "playbackStatus" in frame


def test_enqueue_then_snapshot(daemon):
    async def scenario():
        async with test_utils.TestServer(daemon.make_app()) as server:
            url = f"ws://{server.host}:{server.port}/amdsocket"
            async with websockets.connect(url) as ws:
                await ws.send('{"song": {"title": "A", "artist": "B", "album": "C"}, "append": false}')
                outcome = await _next_frame(ws, lambda f: "level" in f)
                snapshot = await _next_frame(
                    ws, lambda f: _is_snapshot(f) and f["currentSong"] is not None)

                await ws.send('{"commandType": "play"}')
                playing = await _next_frame(
                    ws, lambda f: _is_snapshot(f) and f["playbackStatus"] == "playing")
        return outcome, snapshot, playing

    outcome, snapshot, playing = asyncio.run(scenario())
    assert outcome == {"level": "success", "title": "Song Queued",
                       "message": "A queued to play from catalog append = false"}
    assert snapshot["currentSong"]["title"] == "A"
    assert [s["title"] for s in snapshot["songs"]] == ["A"]
    assert snapshot["playbackStatus"] == "stopped"
    assert playing["currentSong"]["title"] == "A"


def test_garbage_frames_are_ignored(daemon):
    async def scenario():
        async with test_utils.TestServer(daemon.make_app()) as server:
            url = f"ws://{server.host}:{server.port}/amdsocket"
            async with websockets.connect(url) as ws:
                await ws.send("not json")
                await ws.send('{"commandType": "rewind"}')
                await ws.send('{"song": {"title": "Nope"}, "append": false}')
                return await _next_frame(ws, lambda f: "level" in f)

    outcome = asyncio.run(scenario())
    assert outcome["level"] == "error"
    assert outcome["message"] == "Song Nope not found failed to be queued to play"


def test_malformed_frame_keeps_the_socket_open(daemon):
    async def scenario():
        async with test_utils.TestServer(daemon.make_app()) as server:
            url = f"ws://{server.host}:{server.port}/amdsocket"
            async with websockets.connect(url) as ws:
                await ws.send('{"commandType": ["play"]}')
                await ws.send('{"song": {"title": "A", "duration": 1' + "0" * 400 + '}, "append": false}')
                await ws.send('{"song": {"title": "A", "artist": "B", "album": "C"}, "append": false}')
                return await _next_frame(ws, lambda f: "level" in f)

    outcome = asyncio.run(scenario())
    assert outcome["message"] == "A queued to play from catalog append = false"


def test_outcome_reaches_every_client(daemon):
    async def scenario():
        async with test_utils.TestServer(daemon.make_app()) as server:
            url = f"ws://{server.host}:{server.port}/amdsocket"
            async with websockets.connect(url) as sender, websockets.connect(url) as watcher:
                await _next_frame(watcher, _is_snapshot)
                await sender.send('{"playlist": {"name": "Late Night"}}')
                return await _next_frame(watcher, lambda f: "level" in f)

    outcome = asyncio.run(scenario())
    assert outcome["message"] == "Late Night queued to play"


def test_status_endpoint(daemon):
    async def scenario():
        async with test_utils.TestServer(daemon.make_app()) as server:
            async with aiohttp.ClientSession() as session:
                async with session.get(server.make_url("/status")) as resp:
                    assert resp.status == 200
                    return await resp.json()

    status = asyncio.run(scenario())
    assert status["clients"] == 0
    assert status["broadcasting"] is True
    assert status["state"]["currentSong"] is None
    assert status["state"]["playbackStatus"] == "stopped"


def test_remote_client_round_trip(daemon, resolver, wait_until):
    notes = []

    async def scenario():
        async with test_utils.TestServer(daemon.make_app()) as server:
            client = RemoteClient(resolver, on_notification=notes.append,
                                  keepalive_interval=5, reconnect_delay=0.05)
            await client.connect(server.host, server.port)
            assert await client.connection.wait_connected(3)
            await client.queue_song(MediaItem("So What", id="l.1"))
            await wait_until(lambda: notes and client.current_song is not None, timeout=3)
            await client.play()
            await wait_until(lambda: client.playback_status.value == "playing", timeout=3)
            await client.close()
        return client

    client = asyncio.run(scenario())
    assert notes[0].level is MessageLevel.SUCCESS
    assert notes[0].message == "So What queued to play from library append = false"
    assert client.current_song.title == "So What"
    assert [s.title for s in client.queue] == ["So What"]
