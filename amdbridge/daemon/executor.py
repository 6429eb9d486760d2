# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
PlaybackExecutor — applies decoded commands to the Player.

Every public entry point runs under one asyncio.Lock, so two commands never
interleave their resolution and mutation of the queue.

Songs and albums resolve in two phases: an exact library lookup by id, then
a catalog term search filtered by structural match.  Playlists and stations
get a single exact lookup.  Every enqueue attempt yields an
OutcomeNotification; a resolver failure reads exactly like a miss.
Transport commands yield nothing.
"""

import asyncio
import logging

from ..lib.models import (
    Album,
    CommandType,
    EnqueueAlbum,
    EnqueuePlaylist,
    EnqueueSong,
    EnqueueStation,
    MediaItem,
    Namespace,
    OutcomeNotification,
    Playlist,
    QueueEntry,
    Station,
    TransportCommand,
)
from ..lib.resolvers import ResolverGateway
from .player import Player

log = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 25


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _entries_for(title: str, tracks) -> list[QueueEntry]:
    if tracks:
        return [QueueEntry.for_song(t) for t in tracks]
    return [QueueEntry(title=title)]


class PlaybackExecutor:

    def __init__(self, player: Player, resolver: ResolverGateway,
                 search_limit: int = DEFAULT_SEARCH_LIMIT):
        self.player = player
        self.resolver = resolver
        self.search_limit = search_limit
        self._lock = asyncio.Lock()

    async def handle(self, message) -> OutcomeNotification | None:
        """Dispatch a decoded command envelope."""
        if isinstance(message, TransportCommand):
            await self.execute_transport(message.command)
            return None
        if isinstance(message, EnqueueSong):
            return await self.enqueue_song(message.song, message.append)
        if isinstance(message, EnqueueAlbum):
            return await self.enqueue_album(message.album, message.append)
        if isinstance(message, EnqueuePlaylist):
            return await self.enqueue_playlist(message.playlist)
        if isinstance(message, EnqueueStation):
            return await self.enqueue_station(message.station)
        log.warning("Unhandled command %r", message)
        return None

    # ── Transport ──

    async def execute_transport(self, command: CommandType):
        async with self._lock:
            player = self.player
            command = CommandType(command)
            if command is CommandType.PLAY:
                player.play()
            elif command is CommandType.PAUSE:
                player.pause()
            elif command is CommandType.STOP:
                player.stop()
            elif command is CommandType.NEXT:
                player.skip_to_next()
            elif command is CommandType.PREVIOUS:
                player.skip_to_previous()
            elif command is CommandType.SHUFFLE:
                log.info("Shuffle %s", "on" if player.toggle_shuffle() else "off")
            elif command is CommandType.REPEAT:
                log.info("Repeat %s", "all" if player.toggle_repeat() else "none")
            log.info("Command %s -> %s", command.value, player.state.phase.value)

    # ── Enqueue ──

    async def enqueue_song(self, song: MediaItem, append: bool) -> OutcomeNotification:
        async with self._lock:
            found = await self._find_song(song)
            if found is None:
                return OutcomeNotification.error(
                    "Song Queue Failed",
                    f"Song {song.title} not found failed to be queued to play")
            item, source = found
            self._merge([QueueEntry.for_song(item)], append)
            return OutcomeNotification.success(
                "Song Queued",
                f"{song.title} queued to play from {source} append = {_flag(append)}")

    async def enqueue_album(self, album: Album, append: bool) -> OutcomeNotification:
        async with self._lock:
            found = await self._find_album(album)
            if found is None:
                return OutcomeNotification.error(
                    "Album Queue Failed",
                    f"Album {album.title} not found failed to be queued to play")
            resolved, source = found
            self._merge(_entries_for(resolved.title, resolved.tracks), append)
            return OutcomeNotification.success(
                "Album Queued",
                f"{album.title} queued to play from {source} append = {_flag(append)}")

    async def enqueue_playlist(self, playlist: Playlist) -> OutcomeNotification:
        async with self._lock:
            resolved = None
            try:
                resolved = await self.resolver.resolve_playlist(
                    playlist_id=playlist.id,
                    name=playlist.name if playlist.id is None else None)
            except Exception as e:
                log.warning("Playlist lookup failed for %s: %s", playlist.name, e)
            if resolved is None:
                return OutcomeNotification.error(
                    "Playlist Queue Failed",
                    f"Playlist {playlist.name} not found failed to be queued to play")
            self._merge(_entries_for(resolved.name, resolved.tracks), append=False)
            return OutcomeNotification.success(
                "Playlist Queued", f"{playlist.name} queued to play")

    async def enqueue_station(self, station: Station) -> OutcomeNotification:
        async with self._lock:
            resolved = None
            if station.id is not None:
                try:
                    resolved = await self.resolver.resolve_station(station.id)
                except Exception as e:
                    log.warning("Station lookup failed for %s: %s", station.name, e)
            if resolved is None:
                return OutcomeNotification.error(
                    "Station Queue Failed",
                    f"Station {station.name} not found failed to be queued to play")
            self._merge([QueueEntry(title=resolved.name)], append=False)
            return OutcomeNotification.success(
                "Station Queued", f"{station.name} queued to play")

    # ── Resolution ──

    async def _find_song(self, song: MediaItem) -> tuple[MediaItem, str] | None:
        if song.id is not None:
            try:
                item = await self.resolver.resolve_song(Namespace.LIBRARY, song.id)
            except Exception as e:
                log.warning("Library lookup failed for %s: %s", song.title, e)
                item = None
            if item is not None:
                log.info("Song found in library: %s", song.title)
                return item, Namespace.LIBRARY.value

        log.info("Song not in library, searching catalog: %s", song.title)
        try:
            candidates = await self.resolver.search(song.title, ("songs",), self.search_limit)
        except Exception as e:
            log.warning("Catalog search failed for %s: %s", song.title, e)
            return None
        for candidate in candidates:
            if (isinstance(candidate, MediaItem)
                    and candidate.album == song.album
                    and candidate.artist == song.artist):
                log.info("Song found in catalog: %s (%d candidates)", song.title, len(candidates))
                return candidate, Namespace.CATALOG.value
        log.info("Song not found in catalog: %s", song.title)
        return None

    async def _find_album(self, album: Album) -> tuple[Album, str] | None:
        if album.id is not None:
            try:
                item = await self.resolver.resolve_album(Namespace.LIBRARY, album.id)
            except Exception as e:
                log.warning("Library lookup failed for album %s: %s", album.title, e)
                item = None
            if item is not None:
                log.info("Album found in library: %s", album.title)
                return item, Namespace.LIBRARY.value

        log.info("Album not in library, searching catalog: %s", album.title)
        try:
            candidates = await self.resolver.search(album.title, ("albums",), self.search_limit)
        except Exception as e:
            log.warning("Catalog search failed for album %s: %s", album.title, e)
            return None
        for candidate in candidates:
            if isinstance(candidate, Album) and candidate.matches(album):
                log.info("Album found in catalog: %s", album.title)
                return candidate, Namespace.CATALOG.value
        log.info("Album not found in catalog: %s", album.title)
        return None

    # ── Queue mutation ──

    def _merge(self, entries: list[QueueEntry], append: bool):
        """Append to the tail, or replace; append on an empty queue replaces."""
        if append and not self.player.is_empty:
            self.player.append_to_queue(entries)
        else:
            self.player.replace_queue(entries)
        self.player.prepare_to_play()
