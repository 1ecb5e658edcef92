"""Storage layer - minute history export and Redis publication."""

from deriv_digit_tracker.storage.export import (
    history_from_json,
    history_to_csv,
    history_to_json,
)
from deriv_digit_tracker.storage.publisher import SnapshotPublisher

__all__ = [
    "SnapshotPublisher",
    "history_from_json",
    "history_to_csv",
    "history_to_json",
]
