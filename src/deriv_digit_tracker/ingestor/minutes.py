"""Per-minute digit histograms with a bounded retention horizon.

Bins are keyed by the minute start (``floor(epoch / 60) * 60``). Every
``record`` prunes bins older than the retention horizon, which is a scan of
the live bins (O(bins) per tick; at most 120 bins with the default horizon).
The consumer-facing snapshot is throttled so that high tick rates do not
force a copy of the whole history on every tick.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from deriv_digit_tracker.ingestor.models import DIGITS, MinuteRow

logger = logging.getLogger(__name__)

MINUTE_SECONDS = 60
DEFAULT_RETENTION_MINUTES = 120
DEFAULT_SNAPSHOT_THROTTLE_MS = 700


def minute_key(epoch_seconds: float) -> int:
    return int(epoch_seconds // MINUTE_SECONDS) * MINUTE_SECONDS


@dataclass
class MinuteBin:
    """Mutable histogram for one minute."""

    minute: int
    counts: list[int] = field(default_factory=lambda: [0] * DIGITS)
    total: int = 0

    def add(self, digit: int) -> None:
        self.counts[digit] += 1
        self.total += 1

    def to_row(self) -> MinuteRow:
        return MinuteRow(minute=self.minute, total=self.total, counts=tuple(self.counts))


class MinuteAggregator:
    """Mapping of minute key -> histogram, pruned to a trailing horizon."""

    def __init__(
        self,
        *,
        retention_minutes: int = DEFAULT_RETENTION_MINUTES,
        throttle_ms: int = DEFAULT_SNAPSHOT_THROTTLE_MS,
    ) -> None:
        self._retention_seconds = max(1, int(retention_minutes)) * MINUTE_SECONDS
        self._throttle_ms = max(0, int(throttle_ms))
        self._bins: dict[int, MinuteBin] = {}
        self._snapshot: list[MinuteRow] = []
        self._snapshot_at_ms: float | None = None

    @property
    def retention_minutes(self) -> int:
        return self._retention_seconds // MINUTE_SECONDS

    def __len__(self) -> int:
        return len(self._bins)

    def record(self, epoch_seconds: float, digit: int) -> None:
        """Count ``digit`` in the minute of ``epoch_seconds`` and prune old bins."""
        if not (isinstance(digit, int) and 0 <= digit < DIGITS):
            logger.warning("Ignoring out-of-range digit %r", digit)
            return
        if not (isinstance(epoch_seconds, (int, float)) and math.isfinite(epoch_seconds)):
            logger.warning("Ignoring digit with non-finite epoch %r", epoch_seconds)
            return
        key = minute_key(epoch_seconds)
        b = self._bins.get(key)
        if b is None:
            b = MinuteBin(minute=key)
            self._bins[key] = b
        b.add(digit)
        self._prune_before(key - self._retention_seconds)

    def prune(self, now_epoch: float) -> int:
        """Drop bins that fell out of the horizon as of ``now_epoch``."""
        return self._prune_before(minute_key(now_epoch) - self._retention_seconds)

    def _prune_before(self, cutoff: int) -> int:
        expired = [k for k in self._bins if k < cutoff]
        for k in expired:
            del self._bins[k]
        if expired:
            logger.debug("Pruned %d minute bins older than %d", len(expired), cutoff)
        return len(expired)

    def snapshot(
        self,
        now_ms: float,
        throttle_ms: int | None = None,
        *,
        force: bool = False,
    ) -> list[MinuteRow]:
        """Return the minute history, newest first.

        The list is recomputed only if ``throttle_ms`` (default: the
        configured throttle) elapsed since the last recomputation; otherwise
        the previous list is returned unchanged. A clock that stepped
        backwards also forces a recomputation.

        Args:
            now_ms: Current wall-clock time in milliseconds since the epoch.
            throttle_ms: Override of the configured throttle interval.
            force: Recompute regardless of the throttle.
        """
        interval = self._throttle_ms if throttle_ms is None else max(0, throttle_ms)
        if (
            not force
            and self._snapshot_at_ms is not None
            and 0 <= (now_ms - self._snapshot_at_ms) < interval
        ):
            return list(self._snapshot)

        self.prune(now_ms / 1000.0)
        self._snapshot = [self._bins[k].to_row() for k in sorted(self._bins, reverse=True)]
        self._snapshot_at_ms = now_ms
        return list(self._snapshot)

    def reset(self) -> None:
        self._bins.clear()
        self._snapshot = []
        self._snapshot_at_ms = None
