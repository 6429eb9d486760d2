# AMD Bridge
# SPDX-License-Identifier: GPL-3.0-or-later

"""
ConnectionManager — WebSocket lifecycle for the remote client.

    disconnected → connecting → connected → disconnected → (2 s) → connecting …

On connect a keepalive ping goes out at once and then every 10 s after each
pong.  A ping that fails or gets no pong within the interval closes the
socket immediately.  Any close the client did not ask for (daemon restart,
network drop, failed ping, failed connect) is followed by a reconnect to the
same endpoint after the reconnect delay, with no retry limit.  Only
``disconnect()`` stops the loop.

Usage:
    conn = ConnectionManager(on_message=handle_text)
    await conn.connect("192.168.1.20", 9992)
    await conn.send('{"commandType":"play"}')
    await conn.disconnect()
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from ..lib.config import cfg

log = logging.getLogger(__name__)

SOCKET_PATH = "/amdsocket"
KEEPALIVE_INTERVAL = 10  # seconds
RECONNECT_DELAY = 2      # seconds
CLOSE_TIMEOUT = 1        # seconds to wait for the closing handshake


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


async def open_websocket(url: str):
    """Default connector.  Keepalive is ours, so the library's pings are off."""
    return await websockets.connect(url, ping_interval=None, close_timeout=CLOSE_TIMEOUT)


class ConnectionManager:

    def __init__(self, on_message: Callable[[str], Awaitable[None] | None],
                 on_state_change: Callable[[ConnectionState], None] | None = None,
                 *, keepalive_interval: float | None = None,
                 reconnect_delay: float | None = None,
                 connector=open_websocket):
        self._on_message = on_message
        self._on_state_change = on_state_change
        self.keepalive_interval = float(
            keepalive_interval if keepalive_interval is not None
            else cfg("client", "keepalive_interval", default=KEEPALIVE_INTERVAL))
        self.reconnect_delay = float(
            reconnect_delay if reconnect_delay is not None
            else cfg("client", "reconnect_delay", default=RECONNECT_DELAY))
        self._connector = connector
        self._state = ConnectionState.DISCONNECTED
        self._url: str | None = None
        self._ws = None
        self._task: asyncio.Task | None = None
        self._connected = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def url(self) -> str | None:
        return self._url

    def _set_state(self, state: ConnectionState):
        if state is self._state:
            return
        self._state = state
        if state is ConnectionState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()
        log.info("Connection %s (%s)", state.value, self._url)
        if self._on_state_change:
            try:
                self._on_state_change(state)
            except Exception:
                log.exception("State change callback failed")

    # ── Public API ──

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until connected; False if *timeout* runs out first."""
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def connect(self, host: str, port: int, path: str = SOCKET_PATH):
        await self.connect_url(f"ws://{host}:{port}{path}")

    async def connect_url(self, url: str):
        """(Re)start the connection loop against *url*."""
        await self.disconnect()
        self._url = url
        self._task = asyncio.create_task(self._run(url))

    async def disconnect(self):
        """Close the socket and stop reconnecting until the next connect()."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._set_state(ConnectionState.DISCONNECTED)

    async def send(self, text: str) -> bool:
        ws = self._ws
        if ws is None or not self.is_connected:
            log.debug("Not connected — message not sent")
            return False
        try:
            await ws.send(text)
            return True
        except Exception as e:
            log.warning("Send error: %s", e)
            return False

    # ── Connection loop ──

    async def _run(self, url: str):
        while True:
            self._set_state(ConnectionState.CONNECTING)
            try:
                ws = await self._connector(url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Connect to %s failed: %s", url, e)
                self._set_state(ConnectionState.DISCONNECTED)
                await asyncio.sleep(self.reconnect_delay)
                continue

            self._ws = ws
            self._set_state(ConnectionState.CONNECTED)
            keepalive = asyncio.create_task(self._keepalive(ws))
            try:
                async for message in ws:
                    if isinstance(message, bytes):
                        log.debug("Ignoring %d byte binary frame", len(message))
                        continue
                    await self._dispatch(message)
            except ConnectionClosed as e:
                log.info("Connection closed: %s", e)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Receive error: %s", e)
            finally:
                keepalive.cancel()
                self._ws = None
                await self._close(ws)
                self._set_state(ConnectionState.DISCONNECTED)

            log.info("Reconnecting to %s in %.0fs", url, self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

    async def _keepalive(self, ws):
        while True:
            try:
                pong_waiter = await ws.ping()
                await asyncio.wait_for(pong_waiter, timeout=self.keepalive_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("Ping failed: %s", e or type(e).__name__)
                self._set_state(ConnectionState.DISCONNECTED)
                await self._close(ws)
                return
            await asyncio.sleep(self.keepalive_interval)

    async def _dispatch(self, text: str):
        try:
            result = self._on_message(text)
            if inspect.isawaitable(result):
                await result
        except Exception:
            log.exception("Message handler failed")

    @staticmethod
    async def _close(ws):
        try:
            await ws.close()
        except Exception as e:
            log.debug("Close error: %s", e)
