"""Alert presentation layer - human-readable alert and decision text."""

from deriv_digit_tracker.alerter.formatter import AlertFormatter, FormattedAlert

__all__ = [
    "AlertFormatter",
    "FormattedAlert",
]
