"""Data models for the detector module."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

CHI_SQUARE_DEGREES_OF_FREEDOM = 9
MIN_EXPECTED_PER_CATEGORY = 5.0

DECISION_REJECT = "reject uniformity"
DECISION_CANNOT_REJECT = "cannot reject uniformity"


@dataclass(frozen=True)
class ChiSquareResult:
    """Goodness-of-fit of a 10-digit histogram against the uniform distribution.

    Attributes:
        statistic: Pearson chi-square statistic.
        degrees_of_freedom: Always 9 for ten categories.
        p_value: Upper-tail probability of the statistic under uniformity.
        total: Number of observations the result was computed from.
        expected: Expected count per digit (total / 10).
    """

    statistic: float
    p_value: float
    total: int
    expected: float
    degrees_of_freedom: int = CHI_SQUARE_DEGREES_OF_FREEDOM

    @property
    def reliable(self) -> bool:
        """Return True if every expected count reaches the validity threshold."""
        return self.total > 0 and self.expected >= MIN_EXPECTED_PER_CATEGORY

    def rejects_uniformity(self, alpha: float) -> bool:
        return self.p_value < alpha

    def decision(self, alpha: float) -> str:
        """Return the decision text for significance level ``alpha``."""
        return DECISION_REJECT if self.rejects_uniformity(alpha) else DECISION_CANNOT_REJECT

    def to_dict(self) -> dict[str, object]:
        return {
            "statistic": self.statistic,
            "degrees_of_freedom": self.degrees_of_freedom,
            "p_value": self.p_value,
            "total": self.total,
            "expected": self.expected,
            "reliable": self.reliable,
        }


@dataclass(frozen=True)
class AlertRule:
    """Compound threshold rule over a pair of focus digits.

    The rule fires when the most frequent digit is one of the focus digits,
    its share is at least ``high_threshold`` percent, and the other focus
    digit's share is at least ``pair_threshold`` percent.
    """

    enabled: bool = True
    focus_digits: tuple[int, ...] = (8, 9)
    high_threshold: float = 15.0
    pair_threshold: float = 10.0
    cooldown_seconds: float = 20.0
    min_samples: int = 20
    log_limit: int = 50

    @property
    def has_valid_pair(self) -> bool:
        """Return True if ``focus_digits`` holds exactly two distinct digits."""
        pair = self.focus_digits
        return (
            len(pair) == 2
            and pair[0] != pair[1]
            and all(isinstance(d, int) and not isinstance(d, bool) and 0 <= d <= 9 for d in pair)
        )

    @property
    def cooldown_ms(self) -> float:
        return self.cooldown_seconds * 1000.0


@dataclass
class AlertState:
    """Debounce state, mutated only by the alert engine."""

    last_fired_key: str | None = None
    last_fired_at_ms: float | None = None
    active: bool = False


@dataclass(frozen=True)
class AlertEvent:
    """An alert emitted when the focus pair dominates the rolling window."""

    key: str
    text: str
    timestamp_ms: float
    top_digit: int
    other_digit: int
    top_pct: float
    other_pct: float
    total: int

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000.0, tz=UTC)

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary for Redis stream publishing."""
        return {
            "key": self.key,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "timestamp_ms": self.timestamp_ms,
            "top_digit": self.top_digit,
            "other_digit": self.other_digit,
            "top_pct": self.top_pct,
            "other_pct": self.other_pct,
            "total": self.total,
        }
