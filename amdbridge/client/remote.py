# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
RemoteClient — what a UI talks to.

Wires a ConnectionManager, the wire codec and a Reconciler together, keeps
the derived playback fields (time labels, shuffle/repeat flags) and exposes
one helper per command.  Incoming frames:

  state-snapshot        → playback fields, then queue reconciliation
  queue-mirror-update   → queue reconciliation
  outcome-notification  → last_notification + on_notification callback
"""

import asyncio
import logging
import math
from typing import Callable

from ..lib.models import (
    Album,
    CommandType,
    EnqueueAlbum,
    EnqueuePlaylist,
    EnqueueSong,
    EnqueueStation,
    MediaItem,
    OutcomeNotification,
    PlaybackStatus,
    Playlist,
    QueueUpdate,
    Snapshot,
    Station,
    TransportCommand,
)
from ..lib.protocol import decode_update, encode
from ..lib.resolvers import ResolverGateway
from .connection import ConnectionManager, ConnectionState, open_websocket
from .reconciler import QueueMirror, Reconciler

log = logging.getLogger(__name__)

# Shown as the duration when the current song is unknown
PLACEHOLDER_DURATION = 100


def format_clock(seconds: float) -> str:
    """Whole seconds as mm:ss."""
    total = int(math.floor(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


class RemoteClient:

    def __init__(self, resolver: ResolverGateway,
                 on_notification: Callable[[OutcomeNotification], None] | None = None,
                 on_reconciled: Callable[["RemoteClient"], None] | None = None,
                 connector=open_websocket, **connection_options):
        self.reconciler = Reconciler(resolver)
        self.connection = ConnectionManager(
            on_message=self.handle_message, connector=connector, **connection_options)
        self.on_notification = on_notification
        self.on_reconciled = on_reconciled

        self.playback_status = PlaybackStatus.STOPPED
        self.playback_time = 0
        self.playback_duration = 0
        self.playback_time_label = ""
        self.playback_duration_label = ""
        self.is_shuffle_on = False
        self.is_repeat_on = False
        self.last_notification: OutcomeNotification | None = None
        self._pending: set[asyncio.Task] = set()

    # ── Mirror accessors ──

    @property
    def mirror(self) -> QueueMirror:
        return self.reconciler.mirror

    @property
    def queue(self) -> list[MediaItem]:
        return self.mirror.queue

    @property
    def current_song(self) -> MediaItem | None:
        return self.mirror.current_song

    @property
    def current_index(self) -> int:
        return self.mirror.current_index

    @property
    def is_connected(self) -> bool:
        return self.connection.state is ConnectionState.CONNECTED

    # ── Connection ──

    async def connect(self, host: str, port: int):
        await self.connection.connect(host, port)

    async def disconnect(self):
        await self.connection.disconnect()

    async def close(self):
        await self.disconnect()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # ── Incoming ──

    async def handle_message(self, text: str):
        message = decode_update(text)
        if message is None:
            return
        if isinstance(message, Snapshot):
            self.apply_status(message)
            self._schedule_reconcile(message)
        elif isinstance(message, QueueUpdate):
            self._schedule_reconcile(message)
        elif isinstance(message, OutcomeNotification):
            log.info("%s: %s — %s", message.level.value, message.title, message.message)
            self.last_notification = message
            if self.on_notification:
                self.on_notification(message)

    def apply_status(self, snapshot: Snapshot):
        """Recompute the derived playback fields from one snapshot."""
        self.playback_status = snapshot.playback_status
        self.playback_time = math.floor(snapshot.playback_time)
        song = self.mirror.current_song
        duration = song.duration if song and song.duration is not None else PLACEHOLDER_DURATION
        self.playback_duration = math.floor(duration)
        self.playback_time_label = format_clock(self.playback_time)
        self.playback_duration_label = format_clock(self.playback_duration)
        self.is_shuffle_on = snapshot.shuffle_status
        self.is_repeat_on = snapshot.repeat_status

    def _schedule_reconcile(self, update: QueueUpdate):
        # Checked here too so a busy reconciler does not even get a task
        if self.reconciler.updating:
            log.debug("Reconciliation busy — update dropped")
            return
        task = asyncio.create_task(self._reconcile(update))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _reconcile(self, update: QueueUpdate):
        if await self.reconciler.reconcile(update) and self.on_reconciled:
            self.on_reconciled(self)

    # ── Commands ──

    async def _send(self, message) -> bool:
        return await self.connection.send(encode(message))

    async def run_command(self, command: CommandType) -> bool:
        return await self._send(TransportCommand(CommandType(command)))

    async def play(self) -> bool:
        return await self.run_command(CommandType.PLAY)

    async def pause(self) -> bool:
        return await self.run_command(CommandType.PAUSE)

    async def stop(self) -> bool:
        return await self.run_command(CommandType.STOP)

    async def next(self) -> bool:
        return await self.run_command(CommandType.NEXT)

    async def previous(self) -> bool:
        return await self.run_command(CommandType.PREVIOUS)

    async def toggle_shuffle(self) -> bool:
        return await self.run_command(CommandType.SHUFFLE)

    async def toggle_repeat(self) -> bool:
        return await self.run_command(CommandType.REPEAT)

    async def queue_song(self, song: MediaItem, append: bool = False) -> bool:
        return await self._send(EnqueueSong(song, append))

    async def queue_album(self, album: Album, append: bool = False) -> bool:
        return await self._send(EnqueueAlbum(album, append))

    async def queue_playlist(self, playlist: Playlist) -> bool:
        return await self._send(EnqueuePlaylist(playlist))

    async def queue_station(self, station: Station) -> bool:
        return await self._send(EnqueueStation(station))
