"""Statistics layer - uniformity testing and focus-pair alerting."""

from deriv_digit_tracker.detector.alerts import AlertEngine
from deriv_digit_tracker.detector.chi_square import evaluate_uniformity
from deriv_digit_tracker.detector.models import (
    AlertEvent,
    AlertRule,
    AlertState,
    ChiSquareResult,
)

__all__ = [
    "AlertEngine",
    "AlertEvent",
    "AlertRule",
    "AlertState",
    "ChiSquareResult",
    "evaluate_uniformity",
]
