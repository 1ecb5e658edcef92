"""Rolling last-N digit window with a live histogram."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable

from deriv_digit_tracker.ingestor.models import DIGITS

logger = logging.getLogger(__name__)

MIN_WINDOW_SIZE = 20
MAX_WINDOW_SIZE = 5000
DEFAULT_WINDOW_SIZE = 200


def clamp_window_size(size: int) -> int:
    """Clamp a requested window size into [MIN_WINDOW_SIZE, MAX_WINDOW_SIZE].

    Infinite sizes clamp to the nearest bound; anything else that is not a
    number (NaN, None, text) falls back to DEFAULT_WINDOW_SIZE.
    """
    try:
        n = int(size)
    except OverflowError:
        return MAX_WINDOW_SIZE if size > 0 else MIN_WINDOW_SIZE
    except (TypeError, ValueError):
        logger.warning("Invalid window size %r, using %d", size, DEFAULT_WINDOW_SIZE)
        return DEFAULT_WINDOW_SIZE
    return max(MIN_WINDOW_SIZE, min(MAX_WINDOW_SIZE, n))


def count_digits(digits: Iterable[int]) -> list[int]:
    counts = [0] * DIGITS
    for d in digits:
        counts[d] += 1
    return counts


class RollingDigitWindow:
    """Fixed-capacity FIFO of the most recent digits plus their counts.

    The histogram is updated incrementally on ``push`` and rebuilt from the
    retained digits on ``resize``, so ``sum(counts) == len(digits)`` holds
    after every operation.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE) -> None:
        self._window_size = clamp_window_size(window_size)
        self._digits: deque[int] = deque()
        self._counts = [0] * DIGITS

    @property
    def window_size(self) -> int:
        return self._window_size

    @property
    def counts(self) -> tuple[int, ...]:
        return tuple(self._counts)

    @property
    def total(self) -> int:
        return len(self._digits)

    @property
    def digits(self) -> tuple[int, ...]:
        """Retained digits, oldest first."""
        return tuple(self._digits)

    def push(self, digit: int) -> int | None:
        """Append a digit; return the evicted digit if the window overflowed.

        Values outside 0-9 are logged and ignored.
        """
        if not (isinstance(digit, int) and 0 <= digit < DIGITS):
            logger.warning("Ignoring out-of-range digit %r", digit)
            return None
        self._digits.append(digit)
        self._counts[digit] += 1
        if len(self._digits) > self._window_size:
            removed = self._digits.popleft()
            self._counts[removed] -= 1
            return removed
        return None

    def resize(self, window_size: int) -> int:
        """Change the capacity, keeping only the newest digits.

        Returns the effective (clamped) window size.
        """
        new_size = clamp_window_size(window_size)
        if new_size != window_size:
            logger.warning("Window size %s clamped to %d", window_size, new_size)
        self._window_size = new_size
        if len(self._digits) > new_size:
            kept = list(self._digits)[-new_size:]
            self._digits = deque(kept)
            self._counts = count_digits(kept)
        return new_size

    def reset(self) -> None:
        self._digits.clear()
        self._counts = [0] * DIGITS

    def percentages(self) -> tuple[float, ...]:
        """Return per-digit percentages (0-100) of the current window."""
        total = self.total
        if total <= 0:
            return tuple(0.0 for _ in range(DIGITS))
        return tuple(c / total * 100.0 for c in self._counts)
