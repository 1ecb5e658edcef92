"""Data ingestion layer - Deriv tick streaming and digit bookkeeping."""

from deriv_digit_tracker.ingestor.digits import extract_digit, read_digit
from deriv_digit_tracker.ingestor.minutes import MinuteAggregator
from deriv_digit_tracker.ingestor.models import DigitReading, MinuteRow, TickEvent
from deriv_digit_tracker.ingestor.window import RollingDigitWindow, clamp_window_size

__all__ = [
    "DigitReading",
    "MinuteAggregator",
    "MinuteRow",
    "RollingDigitWindow",
    "TickEvent",
    "clamp_window_size",
    "extract_digit",
    "read_digit",
]
