#!/usr/bin/env python3
# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
amdbridge-ctl — control an AMD Bridge daemon from the command line.

    amdbridge-ctl play
    amdbridge-ctl song "Blue in Green" --artist "Miles Davis" --album "Kind of Blue"
    amdbridge-ctl watch
"""

import argparse
import asyncio
import logging
import sys

import aiohttp

from ..lib.config import cfg
from ..lib.models import Album, CommandType, MediaItem, Playlist, Station
from ..lib.resolvers import create_resolver
from .remote import RemoteClient

CONNECT_TIMEOUT = 5.0   # seconds
OUTCOME_TIMEOUT = 10.0  # seconds to wait for an enqueue result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="amdbridge-ctl",
                                     description="Control an AMD Bridge daemon")
    parser.add_argument("--host", default=cfg("client", "host", default="127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(cfg("client", "port", default=9992)))
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)
    for command in CommandType:
        sub.add_parser(command.value, help=f"send the {command.value} command")
    sub.add_parser("watch", help="print now playing and the queue as they change")

    song = sub.add_parser("song", help="queue a song")
    song.add_argument("title")
    song.add_argument("--artist")
    song.add_argument("--album")
    song.add_argument("--id")
    song.add_argument("--append", action="store_true")

    album = sub.add_parser("album", help="queue an album")
    album.add_argument("title")
    album.add_argument("--artist")
    album.add_argument("--id")
    album.add_argument("--append", action="store_true")

    playlist = sub.add_parser("playlist", help="queue a library playlist")
    playlist.add_argument("name")
    playlist.add_argument("--id")

    station = sub.add_parser("station", help="queue a radio station")
    station.add_argument("id")
    station.add_argument("--name", default="")
    return parser


def print_state(client: RemoteClient):
    song = client.current_song
    if song:
        print(f"\n▶ {song.title} — {song.artist or '?'}  "
              f"[{client.playback_status.value} {client.playback_time_label}/"
              f"{client.playback_duration_label}]")
    else:
        print("\n■ nothing playing")
    for i, item in enumerate(client.queue):
        marker = "*" if i == client.current_index else " "
        print(f" {marker} {i + 1:2d}. {item.title} — {item.artist or '?'}")


def _enqueue_message(args):
    if args.command == "song":
        return "queue_song", (MediaItem(args.title, artist=args.artist, album=args.album,
                                        id=args.id), args.append)
    if args.command == "album":
        return "queue_album", (Album(args.title, artist=args.artist, id=args.id), args.append)
    if args.command == "playlist":
        return "queue_playlist", (Playlist(args.name, id=args.id),)
    return "queue_station", (Station(args.name or args.id, id=args.id),)


async def run(args) -> int:
    outcome = asyncio.Event()
    async with aiohttp.ClientSession() as session:
        resolver = create_resolver(session)
        client = RemoteClient(
            resolver,
            on_notification=lambda n: outcome.set(),
            on_reconciled=print_state if args.command == "watch" else None,
        )
        await client.connect(args.host, args.port)
        try:
            if not await client.connection.wait_connected(CONNECT_TIMEOUT):
                print(f"Could not connect to {client.connection.url}", file=sys.stderr)
                return 1

            if args.command == "watch":
                await asyncio.Event().wait()  # until interrupted

            if args.command in {c.value for c in CommandType}:
                return 0 if await client.run_command(CommandType(args.command)) else 1

            method, params = _enqueue_message(args)
            if not await getattr(client, method)(*params):
                return 1
            try:
                await asyncio.wait_for(outcome.wait(), OUTCOME_TIMEOUT)
            except asyncio.TimeoutError:
                print("No reply from daemon", file=sys.stderr)
                return 1
            note = client.last_notification
            print(f"{note.title}: {note.message}")
            return 0 if note.level.value in ("success", "info") else 1
        finally:
            await client.close()
            await resolver.close()


def main():
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
