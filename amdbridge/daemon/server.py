#!/usr/bin/env python3
# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
AMD Bridge daemon (amdbridge-daemon)

Serves the remote-control WebSocket and owns the player:

  WS   /amdsocket  — commands in (enqueue / transport), snapshots and
                     outcome notifications out
  GET  /status     — daemon status and the current snapshot as JSON

Port: 9992 on all interfaces (config: server.host / server.port).
"""

import asyncio
import logging
import signal

import aiohttp
from aiohttp import web

from ..lib.config import cfg
from ..lib.protocol import decode_command, encode
from ..lib.resolvers import ResolverGateway, create_resolver
from .broadcaster import SocketRegistry, StateBroadcaster
from .executor import PlaybackExecutor
from .player import Player

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 9992
SOCKET_PATH = "/amdsocket"


class BridgeDaemon:

    def __init__(self, resolver: ResolverGateway | None = None,
                 player: Player | None = None,
                 interval: float | None = None):
        self.host = cfg("server", "host", default=DEFAULT_HOST)
        self.port = int(cfg("server", "port", default=DEFAULT_PORT))
        self.path = cfg("server", "path", default=SOCKET_PATH)
        self.player = player or Player()
        self.registry = SocketRegistry()
        self._resolver = resolver
        self.executor: PlaybackExecutor | None = None
        self.broadcaster = StateBroadcaster(
            self.player, self.registry,
            interval=float(interval if interval is not None
                           else cfg("broadcast", "interval", default=1.0)),
            send_timeout=float(cfg("broadcast", "send_timeout", default=2.0)),
        )
        self._http_session: aiohttp.ClientSession | None = None
        self._runner: web.AppRunner | None = None

    # ── App ──

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get(self.path, self._handle_ws)
        app.router.add_get("/status", self._handle_status)
        app.on_startup.append(self._on_startup)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application):
        if self._resolver is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=15))
            self._resolver = create_resolver(self._http_session)
        self.executor = PlaybackExecutor(
            self.player, self._resolver,
            search_limit=int(cfg("resolver", "search_limit", default=25)))
        self.broadcaster.start()

    async def _on_cleanup(self, app: web.Application):
        await self.broadcaster.stop()
        for ws in self.registry.snapshot():
            await ws.close()
            self.registry.discard(ws)
        if self._resolver is not None:
            await self._resolver.close()
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    # ── Lifecycle ──

    async def start(self):
        self._runner = web.AppRunner(self.make_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        log.info("AMD Bridge daemon: WebSocket on %s:%d%s", self.host, self.port, self.path)

    async def shutdown(self):
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def run(self):
        """Start, wait for SIGTERM/SIGINT, stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            log.info("Shutting down")
            await self.shutdown()

    # ── Handlers ──

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.registry.add(ws)
        log.info("WebSocket client connected from %s (%d total)",
                 request.remote, len(self.registry))
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self.dispatch(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    log.warning("WebSocket error: %s", ws.exception())
        finally:
            self.registry.discard(ws)
            log.info("WebSocket client disconnected (%d remaining)", len(self.registry))
        return ws

    async def dispatch(self, text: str):
        """Decode one frame, run it, and publish any outcome to every client."""
        try:
            message = decode_command(text)
            if message is None:
                return
            log.info("Received %s", type(message).__name__)
            outcome = await self.executor.handle(message)
        except Exception:
            log.exception("Command failed: %.200s", text)
            return
        if outcome is not None:
            log.info("Outcome %s: %s", outcome.level.value, outcome.message)
            await self.broadcaster.publish(encode(outcome))

    async def _handle_status(self, request: web.Request) -> web.Response:
        return web.json_response({
            "clients": len(self.registry),
            "broadcasting": self.broadcaster.running,
            "state": self.player.snapshot().to_wire(),
        })


def main():
    logging.basicConfig(
        level=str(cfg("log_level", default="INFO")).upper(),
        format="[%(asctime)s] %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    asyncio.run(BridgeDaemon().run())


if __name__ == "__main__":
    main()
