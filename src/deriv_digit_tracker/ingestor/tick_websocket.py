"""Deriv ticks WebSocket client.

Subscribes to one symbol's tick stream, keeps the connection alive with
application-level ``{"ping": 1}`` messages and reconnects with exponential
backoff. Parsed ticks are handed to a callback; this module never touches
the statistics, so connection failures cannot corrupt them.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import websockets
from websockets.asyncio.client import ClientConnection

from deriv_digit_tracker.ingestor.models import TickEvent

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30  # seconds
DEFAULT_MAX_RECONNECT_DELAY = 20  # seconds
DEFAULT_INITIAL_RECONNECT_DELAY = 1  # seconds
RECV_POLL_TIMEOUT = 1.0  # seconds


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class StreamStats:
    ticks_received: int = 0
    api_errors: int = 0
    reconnect_count: int = 0
    last_message_time: float | None = None
    connected_since: float | None = None
    last_error: str | None = None


class TickStreamError(Exception):
    """Base exception for tick stream errors."""


class TickConnectionError(TickStreamError):
    """Raised when connection to WebSocket fails."""


TickCallback = Callable[[TickEvent], Awaitable[None]]
ErrorCallback = Callable[[str], Awaitable[None]]
StateCallback = Callable[[ConnectionState], Awaitable[None]]


def subscribe_message(symbol: str) -> dict[str, object]:
    return {"ticks": symbol, "subscribe": 1}


FORGET_TICKS_MESSAGE = {"forget_all": "ticks"}
PING_MESSAGE = {"ping": 1}


class TickStreamHandler:
    """WebSocket client for the Deriv ``ticks`` subscription."""

    def __init__(
        self,
        *,
        url: str,
        symbol: str,
        on_tick: TickCallback | None = None,
        on_api_error: ErrorCallback | None = None,
        on_state_change: StateCallback | None = None,
        ping_interval: float = DEFAULT_PING_INTERVAL,
        max_reconnect_delay: float = DEFAULT_MAX_RECONNECT_DELAY,
        initial_reconnect_delay: float = DEFAULT_INITIAL_RECONNECT_DELAY,
    ) -> None:
        self._url = url
        self._symbol = symbol
        self._on_tick = on_tick
        self._on_api_error = on_api_error
        self._on_state_change = on_state_change
        self._ping_interval = ping_interval
        self._max_reconnect_delay = max_reconnect_delay
        self._initial_reconnect_delay = initial_reconnect_delay

        self._state = ConnectionState.DISCONNECTED
        self._stats = StreamStats()

        self._ws: ClientConnection | None = None
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._pending_symbol: str | None = None
        self._last_ping: float = 0.0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def stats(self) -> StreamStats:
        return self._stats

    @property
    def symbol(self) -> str:
        return self._pending_symbol or self._symbol

    async def _set_state(self, new_state: ConnectionState) -> None:
        if self._state != new_state:
            old = self._state
            self._state = new_state
            logger.info("Tick stream state: %s -> %s", old.value, new_state.value)
            if self._on_state_change:
                try:
                    await self._on_state_change(new_state)
                except Exception as e:  # pragma: no cover
                    logger.error("Error in state change callback: %s", e)

    def request_symbol(self, symbol: str) -> None:
        """Switch the subscription to ``symbol`` on the next listen cycle."""
        if symbol and symbol != self.symbol:
            self._pending_symbol = symbol

    async def _send_json(self, ws: ClientConnection, payload: dict[str, object]) -> None:
        await ws.send(json.dumps(payload))

    async def _apply_pending_symbol(self, ws: ClientConnection) -> None:
        symbol = self._pending_symbol
        if symbol is None:
            return
        self._pending_symbol = None
        await self._send_json(ws, FORGET_TICKS_MESSAGE)
        await self._send_json(ws, subscribe_message(symbol))
        logger.info("Tick subscription switched: %s -> %s", self._symbol, symbol)
        self._symbol = symbol

    async def _maybe_ping(self, ws: ClientConnection) -> None:
        now = time.monotonic()
        if now - self._last_ping >= self._ping_interval:
            self._last_ping = now
            await self._send_json(ws, PING_MESSAGE)

    async def _connect(self) -> ClientConnection:
        await self._set_state(ConnectionState.CONNECTING)
        try:
            ws = await websockets.connect(self._url)
        except Exception as e:
            self._stats.last_error = str(e)
            raise TickConnectionError(f"Failed to connect to {self._url}: {e}") from e

        if self._pending_symbol is not None:
            self._symbol = self._pending_symbol
            self._pending_symbol = None
        await self._send_json(ws, subscribe_message(self._symbol))
        self._last_ping = time.monotonic()

        await self._set_state(ConnectionState.CONNECTED)
        self._stats.connected_since = time.time()
        logger.info("Connected to Deriv ticks stream: %s (symbol=%s)", self._url, self._symbol)
        return ws

    async def _handle_message(self, message: str) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON message on tick stream")
            return
        if not isinstance(data, dict):
            logger.debug("Ignoring non-object tick stream message")
            return

        error = data.get("error")
        if error:
            text = "API error"
            if isinstance(error, dict) and error.get("message"):
                text = str(error["message"])
            self._stats.api_errors += 1
            self._stats.last_error = text
            logger.warning("Deriv API error: %s", text)
            if self._on_api_error:
                await self._on_api_error(text)
            return

        msg_type = data.get("msg_type")
        if msg_type == "tick" and isinstance(data.get("tick"), dict):
            try:
                tick = TickEvent.from_websocket_message(data)
            except Exception as e:  # pragma: no cover
                logger.warning("Failed to parse tick event: %s", e)
                return
            self._stats.ticks_received += 1
            self._stats.last_message_time = time.time()
            if self._on_tick:
                await self._on_tick(tick)
            return

        logger.debug("Ignoring tick-stream msg_type=%r", msg_type)

    async def _listen(self, ws: ClientConnection) -> None:
        try:
            while self._running:
                try:
                    message = await asyncio.wait_for(ws.recv(), timeout=RECV_POLL_TIMEOUT)
                except TimeoutError:
                    message = None

                if isinstance(message, str):
                    await self._handle_message(message)
                elif message is not None:
                    logger.debug("Ignoring non-text tick-stream message")

                await self._apply_pending_symbol(ws)
                await self._maybe_ping(ws)
        except websockets.ConnectionClosed as e:
            logger.warning("Tick stream connection closed: %s", e)
            raise

    async def start(self) -> None:
        """Connect and stream until ``stop()``; reconnects on failure."""
        if self._running:
            raise RuntimeError("Tick stream already running")
        self._running = True
        self._stop_event = asyncio.Event()

        delay = self._initial_reconnect_delay
        while self._running and self._stop_event and not self._stop_event.is_set():
            try:
                self._ws = await self._connect()
                delay = self._initial_reconnect_delay
                await self._listen(self._ws)
            except Exception as e:
                if not self._running:
                    break
                self._stats.reconnect_count += 1
                self._stats.last_error = str(e)
                await self._set_state(ConnectionState.RECONNECTING)
                logger.info("Reconnecting tick stream in %.1fs", delay)
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                delay = min(self._max_reconnect_delay, delay * 2)
            finally:
                with contextlib.suppress(Exception):
                    if self._ws:
                        await self._ws.close()
                self._ws = None

        await self._set_state(ConnectionState.DISCONNECTED)

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._ws:
            with contextlib.suppress(Exception):
                await self._ws.close()
