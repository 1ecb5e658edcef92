"""Tracking session: lifecycle, event queue and collaborators.

This module provides the DigitSession class that wires the tick stream, the
statistics core and the optional Redis publisher together.

All mutations of the statistics core (ticks, resets, resizes, symbol
switches, rule changes) are submitted as events to one asyncio queue and
applied by a single consumer task, in arrival order and each to completion.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from redis.asyncio import Redis

from deriv_digit_tracker.alerter.formatter import AlertFormatter, format_status_line
from deriv_digit_tracker.config import Settings, get_settings
from deriv_digit_tracker.detector.models import AlertEvent, AlertRule
from deriv_digit_tracker.ingestor.models import TickEvent
from deriv_digit_tracker.ingestor.tick_websocket import ConnectionState, TickStreamHandler
from deriv_digit_tracker.storage.publisher import SnapshotPublisher
from deriv_digit_tracker.tracker import DigitTracker, TrackerView

logger = logging.getLogger(__name__)

DEFAULT_STATUS_INTERVAL = 10.0  # seconds


class SessionState(str, Enum):
    """Session lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class SessionStats:
    """Statistics for the session."""

    started_at: datetime | None = None
    ticks_processed: int = 0
    ticks_dropped: int = 0
    malformed_ticks: int = 0
    alerts_fired: int = 0
    api_errors: int = 0
    last_tick_time: datetime | None = None
    last_error: str | None = None


@dataclass(frozen=True)
class TickReceived:
    tick: TickEvent


@dataclass(frozen=True)
class ResetRequested:
    """Clear rolling statistics (``full`` also clears minute history and alerts)."""

    full: bool = False


@dataclass(frozen=True)
class ResizeRequested:
    window_size: int


@dataclass(frozen=True)
class SymbolChanged:
    symbol: str


@dataclass(frozen=True)
class AlertRuleChanged:
    rule: AlertRule


SessionEvent = TickReceived | ResetRequested | ResizeRequested | SymbolChanged | AlertRuleChanged

_STOP = object()


def build_tracker(settings: Settings, *, clock: Callable[[], float] | None = None) -> DigitTracker:
    """Create a DigitTracker from settings."""
    return DigitTracker(
        window_size=settings.tracker.window_size,
        retention_minutes=settings.tracker.retention_minutes,
        snapshot_throttle_ms=settings.tracker.snapshot_throttle_ms,
        alpha=settings.tracker.alpha,
        alert_rule=settings.alert.to_rule(),
        count_malformed=settings.tracker.count_malformed,
        clock=clock,
    )


class DigitSession:
    """Owns one tracking session for one symbol at a time.

    Example:
        ```python
        from deriv_digit_tracker.config import get_settings
        from deriv_digit_tracker.session import DigitSession

        async with DigitSession(get_settings()) as session:
            await session.request_resize(500)
            ...
            print(session.view().decision)
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        tracker: DigitTracker | None = None,
        stream: TickStreamHandler | None = None,
        publisher: SnapshotPublisher | None = None,
        clock: Callable[[], float] | None = None,
        dry_run: bool | None = None,
        status_interval: float = DEFAULT_STATUS_INTERVAL,
    ) -> None:
        """Initialize the session.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            tracker: Statistics core; built from settings if not provided.
            stream: Tick stream; built from settings on start() if not provided.
            publisher: Redis publisher; built from REDIS_URL on start() unless dry-run.
            clock: Wall-clock source in epoch seconds (defaults to time.time).
            dry_run: If True, never publish to Redis. Overrides settings.dry_run.
            status_interval: Seconds between status log lines (0 disables).
        """
        self._settings = settings or get_settings()
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run
        self._clock = clock or time.time
        self._tracker = tracker or build_tracker(self._settings, clock=self._clock)
        self._stream = stream
        self._publisher = publisher
        self._owns_publisher = False
        self._status_interval = status_interval
        self._formatter = AlertFormatter(verbosity="compact")

        self._symbol = self._settings.deriv.symbol
        self._state = SessionState.STOPPED
        self._stats = SessionStats()

        self._queue: asyncio.Queue[Any] | None = None
        self._stop_event: asyncio.Event | None = None
        self._event_task: asyncio.Task[None] | None = None
        self._stream_task: asyncio.Task[None] | None = None
        self._publish_task: asyncio.Task[None] | None = None
        self._status_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def stats(self) -> SessionStats:
        """Current session statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        return self._state == SessionState.RUNNING

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def tracker(self) -> DigitTracker:
        return self._tracker

    @property
    def connection_state(self) -> ConnectionState:
        if self._stream is None:
            return ConnectionState.DISCONNECTED
        return self._stream.state

    async def start(self) -> None:
        """Start the session.

        Raises:
            RuntimeError: If the session is already running.
        """
        if self._state != SessionState.STOPPED:
            raise RuntimeError(f"Cannot start session in state {self._state}")

        self._state = SessionState.STARTING
        self._stop_event = asyncio.Event()
        self._queue = asyncio.Queue()
        logger.info("Starting session for %s...", self._symbol)

        try:
            self._initialize_components()
            self._event_task = asyncio.create_task(self._run_event_loop())
            if self._stream is not None:
                self._stream_task = asyncio.create_task(self._stream.start())
            if self._publisher is not None:
                self._publish_task = asyncio.create_task(self._run_publish_loop())
            if self._status_interval > 0:
                self._status_task = asyncio.create_task(self._run_status_loop())
            self._stats.started_at = datetime.now(UTC)
            self._state = SessionState.RUNNING
            logger.info("Session started")
        except Exception as e:
            self._state = SessionState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start session: %s", e)
            await self._cleanup()
            raise

    def _initialize_components(self) -> None:
        settings = self._settings
        if self._stream is None:
            self._stream = TickStreamHandler(
                url=settings.deriv.url,
                symbol=self._symbol,
                on_tick=self._on_tick,
                on_api_error=self._on_api_error,
                ping_interval=settings.deriv.ping_interval_seconds,
                max_reconnect_delay=settings.deriv.max_reconnect_delay_seconds,
                initial_reconnect_delay=settings.deriv.initial_reconnect_delay_seconds,
            )
        if self._publisher is None and not self._dry_run and settings.redis.url:
            self._publisher = SnapshotPublisher(
                Redis.from_url(settings.redis.url),
                key_prefix=settings.redis.key_prefix,
                alert_stream_maxlen=settings.redis.alert_stream_maxlen,
            )
            self._owns_publisher = True

    async def stop(self) -> None:
        """Stop the session; events already queued are applied first."""
        if self._state not in (SessionState.RUNNING, SessionState.ERROR):
            return

        self._state = SessionState.STOPPING
        logger.info("Stopping session...")
        if self._stop_event:
            self._stop_event.set()

        if self._stream is not None:
            await self._stream.stop()
        if self._stream_task is not None:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._stream_task

        if self._queue is not None and self._event_task is not None:
            await self._queue.put(_STOP)
            await self._event_task

        await self._cleanup()
        self._state = SessionState.STOPPED
        logger.info("Session stopped")

    async def _cleanup(self) -> None:
        for task in (self._publish_task, self._status_task, self._event_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._publish_task = None
        self._status_task = None
        self._event_task = None
        self._stream_task = None
        if self._publisher is not None and self._owns_publisher:
            with contextlib.suppress(Exception):
                await self._publisher.close()
            self._publisher = None
            self._owns_publisher = False

    async def submit(self, event: SessionEvent) -> None:
        """Queue an event for the consumer task."""
        if self._queue is None:
            raise RuntimeError("Session is not running")
        await self._queue.put(event)

    async def drain(self) -> None:
        """Wait until every queued event has been applied."""
        if self._queue is not None:
            await self._queue.join()

    async def request_reset(self, *, full: bool = False) -> None:
        await self.submit(ResetRequested(full=full))

    async def request_resize(self, window_size: int) -> None:
        await self.submit(ResizeRequested(window_size))

    async def request_symbol(self, symbol: str) -> None:
        await self.submit(SymbolChanged(symbol))

    async def request_alert_rule(self, rule: AlertRule) -> None:
        await self.submit(AlertRuleChanged(rule))

    async def _on_tick(self, tick: TickEvent) -> None:
        await self.submit(TickReceived(tick))

    async def _on_api_error(self, message: str) -> None:
        self._stats.api_errors += 1
        self._stats.last_error = message

    def apply(self, event: SessionEvent) -> AlertEvent | None:
        """Apply one event to the statistics core.

        This is the only place the core is mutated while the session runs.
        """
        if isinstance(event, TickReceived):
            return self._apply_tick(event.tick)
        if isinstance(event, ResetRequested):
            if event.full:
                self._tracker.reset_all()
            else:
                self._tracker.reset()
            return None
        if isinstance(event, ResizeRequested):
            self._tracker.resize(event.window_size)
            return None
        if isinstance(event, SymbolChanged):
            self._apply_symbol(event.symbol)
            return None
        if isinstance(event, AlertRuleChanged):
            self._tracker.update_alert_rule(event.rule)
            return None
        logger.warning("Ignoring unknown session event %r", event)
        return None

    def _apply_tick(self, tick: TickEvent) -> AlertEvent | None:
        if tick.symbol and tick.symbol != self._symbol:
            # Ticks of the previous subscription still in flight after a switch.
            self._stats.ticks_dropped += 1
            return None
        outcome = self._tracker.ingest(tick, now=self._clock())
        self._stats.ticks_processed += 1
        self._stats.last_tick_time = datetime.fromtimestamp(self._clock(), tz=UTC)
        if outcome.reading.malformed:
            self._stats.malformed_ticks += 1
        if outcome.alert is not None:
            self._stats.alerts_fired += 1
            logger.warning("%s", self._formatter.banner(outcome.alert))
        return outcome.alert

    def _apply_symbol(self, symbol: str) -> None:
        symbol = symbol.strip()
        if not symbol or symbol == self._symbol:
            return
        logger.info("Switching symbol %s -> %s; statistics reset", self._symbol, symbol)
        self._symbol = symbol
        self._tracker.reset_all()
        if self._stream is not None:
            self._stream.request_symbol(symbol)

    async def _run_event_loop(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                if event is _STOP:
                    return
                alert = self.apply(event)
                if alert is not None and self._publisher is not None:
                    try:
                        await self._publisher.publish_alert(self._symbol, alert)
                    except Exception as e:
                        self._stats.last_error = str(e)
                        logger.error("Failed to publish alert: %s", e)
            except Exception as e:
                self._stats.last_error = str(e)
                logger.exception("Failed to apply session event %r", event)
            finally:
                self._queue.task_done()

    async def _run_publish_loop(self) -> None:
        assert self._publisher is not None
        interval = self._settings.redis.publish_interval_ms / 1000.0
        while self._stop_event is not None and not self._stop_event.is_set():
            try:
                view = self.view()
                await self._publisher.publish_history(self._symbol, view.minute_history)
            except Exception as e:
                self._stats.last_error = str(e)
                logger.error("Failed to publish minute history: %s", e)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)

    async def _run_status_loop(self) -> None:
        while self._stop_event is not None and not self._stop_event.is_set():
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._status_interval)
            if self._stop_event.is_set():
                return
            logger.info(format_status_line(self.view(), symbol=self._symbol))

    def view(self) -> TrackerView:
        """Presentation snapshot of the current statistics."""
        return self._tracker.view(now=self._clock())

    async def run(self) -> None:
        """Run the session until stop() is called or the task is cancelled."""
        await self.start()
        try:
            assert self._stop_event is not None
            await self._stop_event.wait()
        finally:
            await self.stop()

    async def __aenter__(self) -> DigitSession:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
