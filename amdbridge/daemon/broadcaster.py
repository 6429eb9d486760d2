# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
StateBroadcaster — pushes a full player snapshot to every socket once a
second, and fans out outcome notifications.

Sends run concurrently with a per-socket timeout; a socket that fails or
stalls is dropped from the registry and closed without delaying the others,
so its client sees the close and reconnects.
"""

import asyncio
import logging

from aiohttp import web

from ..lib.protocol import encode
from .player import Player

log = logging.getLogger(__name__)

BROADCAST_INTERVAL = 1.0  # seconds
SEND_TIMEOUT = 2.0        # seconds per socket per message


class SocketRegistry:
    """The set of live client sockets.  Iterate via ``snapshot()``."""

    def __init__(self):
        self._sockets: set[web.WebSocketResponse] = set()

    def add(self, ws):
        self._sockets.add(ws)

    def discard(self, ws):
        self._sockets.discard(ws)

    def snapshot(self) -> list:
        return list(self._sockets)

    def __len__(self):
        return len(self._sockets)

    def __contains__(self, ws):
        return ws in self._sockets


class StateBroadcaster:

    def __init__(self, player: Player, registry: SocketRegistry,
                 interval: float = BROADCAST_INTERVAL,
                 send_timeout: float = SEND_TIMEOUT):
        self.player = player
        self.registry = registry
        self.interval = interval
        self.send_timeout = send_timeout
        self._task: asyncio.Task | None = None
        self._closing: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        log.info("State broadcast every %.1fs", self.interval)

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)

    async def _loop(self):
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Broadcast tick failed")
            await asyncio.sleep(self.interval)

    async def tick(self) -> int:
        """Snapshot the player and send it to every socket.  Returns deliveries."""
        return await self.publish(encode(self.player.snapshot()))

    async def publish(self, text: str) -> int:
        """Send *text* to all sockets; drop the ones that fail."""
        sockets = self.registry.snapshot()
        if not sockets:
            return 0

        results = await asyncio.gather(
            *(self._send(ws, text) for ws in sockets), return_exceptions=True)

        delivered = 0
        for ws, result in zip(sockets, results):
            if isinstance(result, BaseException):
                log.info("Dropping client after send failure: %s",
                         type(result).__name__)
                self.registry.discard(ws)
                task = asyncio.create_task(self._close(ws))
                self._closing.add(task)
                task.add_done_callback(self._closing.discard)
            else:
                delivered += 1
        return delivered

    async def _send(self, ws, text: str):
        await asyncio.wait_for(ws.send_str(text), timeout=self.send_timeout)

    async def _close(self, ws):
        try:
            await asyncio.wait_for(ws.close(), timeout=self.send_timeout)
        except Exception as e:
            log.debug("Close of dropped client failed: %s", e)
