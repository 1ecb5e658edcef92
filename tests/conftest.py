"""Pytest configuration and fixtures."""

from collections.abc import Callable

import pytest

from deriv_digit_tracker.detector.models import AlertRule
from deriv_digit_tracker.ingestor.models import TickEvent

START_EPOCH = 1_700_000_040.0  # minute-aligned


class FakeClock:
    """Settable wall clock (epoch seconds)."""

    def __init__(self, now: float = START_EPOCH) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at a fixed, minute-aligned epoch."""
    return FakeClock()


@pytest.fixture
def focus_rule() -> AlertRule:
    """Alert rule on the 8/9 pair with the default thresholds."""
    return AlertRule(
        focus_digits=(8, 9),
        high_threshold=15.0,
        pair_threshold=10.0,
        cooldown_seconds=20.0,
    )


@pytest.fixture
def make_tick() -> Callable[..., TickEvent]:
    """Factory for R_100 ticks whose last digit at pip size 2 is ``digit``."""

    def _make(
        digit: int | None = None,
        *,
        quote: object = None,
        epoch: float = START_EPOCH,
        pip_size: int = 2,
        symbol: str = "R_100",
    ) -> TickEvent:
        if quote is None:
            quote = round(1234.5 + (digit or 0) / 100.0, 2)
        return TickEvent(symbol=symbol, epoch=epoch, quote=quote, pip_size=pip_size)

    return _make
