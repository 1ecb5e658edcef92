"""Statistics core: one synchronous entry point per tick.

``DigitTracker`` owns the rolling window, the minute aggregator, the latest
chi-square result and the alert engine. It does no I/O and never raises on
tick input; the session applies events to it one at a time.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from deriv_digit_tracker.detector.alerts import AlertEngine, argmax_digit
from deriv_digit_tracker.detector.chi_square import evaluate_uniformity
from deriv_digit_tracker.detector.models import AlertEvent, AlertRule, ChiSquareResult
from deriv_digit_tracker.ingestor.digits import read_digit
from deriv_digit_tracker.ingestor.minutes import (
    DEFAULT_RETENTION_MINUTES,
    DEFAULT_SNAPSHOT_THROTTLE_MS,
    MinuteAggregator,
)
from deriv_digit_tracker.ingestor.models import DigitReading, MinuteRow, TickEvent
from deriv_digit_tracker.ingestor.window import DEFAULT_WINDOW_SIZE, RollingDigitWindow

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class TickOutcome:
    """What a single tick did to the tracker."""

    reading: DigitReading
    counted: bool
    alert: AlertEvent | None = None


@dataclass(frozen=True)
class TrackerView:
    """Presentation snapshot of the tracker."""

    counts: tuple[int, ...]
    total: int
    window_size: int
    last_digit: int | None
    all_time_total: int
    malformed_total: int
    percentages: tuple[float, ...]
    top_digit: int | None
    top_pct: float
    chi_square: ChiSquareResult
    alpha: float
    minute_history: list[MinuteRow]
    latest_alert: AlertEvent | None
    alert_log: list[AlertEvent]

    @property
    def reliable(self) -> bool:
        return self.chi_square.reliable

    @property
    def decision(self) -> str:
        return self.chi_square.decision(self.alpha)


class DigitTracker:
    """Rolling and per-minute last-digit statistics."""

    def __init__(
        self,
        *,
        window_size: int = DEFAULT_WINDOW_SIZE,
        retention_minutes: int = DEFAULT_RETENTION_MINUTES,
        snapshot_throttle_ms: int = DEFAULT_SNAPSHOT_THROTTLE_MS,
        alpha: float = 0.05,
        alert_rule: AlertRule | None = None,
        count_malformed: bool = True,
        clock: Clock | None = None,
    ) -> None:
        self._clock = clock or time.time
        self._alpha = alpha
        self._count_malformed = count_malformed
        self._window = RollingDigitWindow(window_size)
        self._minutes = MinuteAggregator(
            retention_minutes=retention_minutes,
            throttle_ms=snapshot_throttle_ms,
        )
        self._alerts = AlertEngine(alert_rule)
        self._chi_square = evaluate_uniformity(self._window.counts)
        self._last_digit: int | None = None
        self._all_time_total = 0
        self._malformed_total = 0

    @property
    def window(self) -> RollingDigitWindow:
        return self._window

    @property
    def minutes(self) -> MinuteAggregator:
        return self._minutes

    @property
    def alerts(self) -> AlertEngine:
        return self._alerts

    @property
    def chi_square(self) -> ChiSquareResult:
        return self._chi_square

    @property
    def alpha(self) -> float:
        return self._alpha

    def ingest(self, tick: TickEvent, *, now: float | None = None) -> TickOutcome:
        """Apply one tick.

        Args:
            tick: The received tick.
            now: Wall-clock seconds used for the alert cooldown; defaults to
                the tracker clock.
        """
        epoch = tick.epoch
        if not (isinstance(epoch, (int, float)) and math.isfinite(epoch)):
            logger.warning("Tick %r has no usable epoch; using the wall clock", tick.tick_id)
            epoch = self._clock()

        reading = read_digit(tick.quote, tick.pip_size)
        self._all_time_total += 1
        if reading.malformed:
            self._malformed_total += 1
            logger.debug("Malformed quote %r (pip_size=%r)", tick.quote, tick.pip_size)
            if not self._count_malformed:
                return TickOutcome(reading=reading, counted=False)

        digit = reading.digit
        self._last_digit = digit
        self._window.push(digit)
        self._minutes.record(epoch, digit)
        alert = self._histogram_changed(now)
        return TickOutcome(reading=reading, counted=True, alert=alert)

    def _histogram_changed(self, now: float | None) -> AlertEvent | None:
        self._chi_square = evaluate_uniformity(self._window.counts, self._window.total)
        now_s = self._clock() if now is None else now
        return self._alerts.evaluate(self._window.counts, now_ms=now_s * 1000.0)

    def resize(self, window_size: int, *, now: float | None = None) -> int:
        size = self._window.resize(window_size)
        self._histogram_changed(now)
        logger.info("Rolling window resized to %d (%d digits retained)", size, self._window.total)
        return size

    def reset(self) -> None:
        """Clear rolling statistics; the all-time counter and minute history survive."""
        self._window.reset()
        self._last_digit = None
        self._histogram_changed(None)
        logger.info("Rolling statistics reset")

    def reset_all(self) -> None:
        """Clear rolling statistics, minute history and alerts, e.g. on a symbol switch.

        The all-time and malformed tick counters are never reset.
        """
        self.reset()
        self._minutes.reset()
        self._alerts.reset()

    def update_alert_rule(self, rule: AlertRule) -> None:
        self._alerts.update_rule(rule)

    def view(self, *, now: float | None = None, force_history: bool = False) -> TrackerView:
        """Build the presentation snapshot (minute history is throttled)."""
        now_s = self._clock() if now is None else now
        percentages = self._window.percentages()
        total = self._window.total
        top = argmax_digit(percentages) if total else None
        return TrackerView(
            counts=self._window.counts,
            total=total,
            window_size=self._window.window_size,
            last_digit=self._last_digit,
            all_time_total=self._all_time_total,
            malformed_total=self._malformed_total,
            percentages=percentages,
            top_digit=top,
            top_pct=percentages[top] if top is not None else 0.0,
            chi_square=self._chi_square,
            alpha=self._alpha,
            minute_history=self._minutes.snapshot(now_s * 1000.0, force=force_history),
            latest_alert=self._alerts.latest,
            alert_log=self._alerts.log,
        )
