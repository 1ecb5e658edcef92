"""Data models for the ingestor module."""

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

DIGITS = 10
DEFAULT_PIP_SIZE = 2


@dataclass(frozen=True)
class DigitReading:
    """A digit extracted from a quote.

    ``malformed`` is True when the quote could not be formatted or parsed and
    the fallback digit 0 was substituted.
    """

    digit: int
    malformed: bool = False


@dataclass(frozen=True)
class TickEvent:
    """Represents a tick from the Deriv ``ticks`` subscription.

    The quote is kept as received (usually a float) so that the digit
    extractor decides how to format it.
    """

    symbol: str
    epoch: float  # seconds since the Unix epoch
    quote: Any
    pip_size: int = DEFAULT_PIP_SIZE
    tick_id: str = ""

    @classmethod
    def from_websocket_message(cls, data: dict[str, Any]) -> "TickEvent":
        """Create a TickEvent from a WebSocket ``tick`` message.

        Args:
            data: Either the full message (with a ``tick`` object) or the
                ``tick`` object itself.

        Returns:
            TickEvent instance.
        """
        tick = data.get("tick") if isinstance(data.get("tick"), dict) else data

        raw_epoch = tick.get("epoch")
        if (
            isinstance(raw_epoch, (int, float))
            and not isinstance(raw_epoch, bool)
            and math.isfinite(raw_epoch)
        ):
            epoch = float(raw_epoch)
        else:
            epoch = datetime.now(UTC).timestamp()

        pip_raw = tick.get("pip_size")
        pip_size = DEFAULT_PIP_SIZE if pip_raw is None else pip_raw

        return cls(
            symbol=str(tick.get("symbol", "")),
            epoch=epoch,
            quote=tick.get("quote"),
            pip_size=pip_size,
            tick_id=str(tick.get("id", "")),
        )

    @property
    def timestamp(self) -> datetime:
        """Return the tick time as a timezone-aware datetime."""
        return datetime.fromtimestamp(self.epoch, tz=UTC)


@dataclass(frozen=True)
class MinuteRow:
    """One entry of the minute history view (an independent copy of a bin)."""

    minute: int  # epoch seconds, aligned to the minute
    total: int
    counts: tuple[int, ...]

    @property
    def minute_label(self) -> str:
        """Return the minute as an ISO-8601 UTC label (``2024-01-01T12:30Z``)."""
        return datetime.fromtimestamp(self.minute, tz=UTC).strftime("%Y-%m-%dT%H:%MZ")

    @property
    def percentages(self) -> tuple[float, ...]:
        """Return per-digit percentages (0-100) for this minute."""
        if self.total <= 0:
            return tuple(0.0 for _ in self.counts)
        return tuple(c / self.total * 100.0 for c in self.counts)

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "minute": self.minute,
            "label": self.minute_label,
            "total": self.total,
            "counts": list(self.counts),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MinuteRow":
        """Create a MinuteRow from a dictionary produced by ``to_dict``."""
        counts = tuple(int(c) for c in data["counts"])
        if len(counts) != DIGITS:
            raise ValueError(f"expected {DIGITS} digit counts, got {len(counts)}")
        return cls(
            minute=int(data["minute"]),
            total=int(data["total"]),
            counts=counts,
        )
