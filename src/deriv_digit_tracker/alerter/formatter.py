"""Alert and status message formatting.

This module turns AlertEvent objects and tracker views into human-readable
text for the banner, log lines and plain-text notifications.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from deriv_digit_tracker.detector.models import AlertEvent, ChiSquareResult

if TYPE_CHECKING:
    from deriv_digit_tracker.tracker import TrackerView

ALERT_EMOJI = "🚨"
UNRELIABLE_NOTE = "expected count per digit below 5, result unreliable"


def format_pct(value: float) -> str:
    """Format a percentage with one decimal place."""
    return f"{value:.1f}%"


def format_p_value(p: float) -> str:
    """Format a p-value; very small values use scientific notation."""
    if p < 1e-4:
        return f"{p:.2e}"
    return f"{p:.4f}"


def format_chi_square(result: ChiSquareResult, alpha: float) -> str:
    """One-line summary of a chi-square result and its decision."""
    text = (
        f"chi2={result.statistic:.2f} df={result.degrees_of_freedom} "
        f"p={format_p_value(result.p_value)} -> {result.decision(alpha)} (alpha={alpha:g})"
    )
    if not result.reliable:
        text += f" [{UNRELIABLE_NOTE}]"
    return text


@dataclass(frozen=True)
class FormattedAlert:
    """An alert rendered for the different outputs."""

    title: str
    body: str
    banner: str
    plain_text: str


class AlertFormatter:
    """Render AlertEvents for display.

    Attributes:
        verbosity: "compact" for a one-line body, "detailed" for a multi-line one.
    """

    def __init__(self, verbosity: Literal["compact", "detailed"] = "detailed") -> None:
        self.verbosity = verbosity

    def format(self, event: AlertEvent, *, symbol: str = "") -> FormattedAlert:
        """Format an alert for every output."""
        title = f"{ALERT_EMOJI} Digit pair {event.key} alert"
        if symbol:
            title += f" on {symbol}"
        body = self._build_body(event)
        banner = self.banner(event)
        plain_text = "\n".join([title, body])
        return FormattedAlert(title=title, body=body, banner=banner, plain_text=plain_text)

    def banner(self, event: AlertEvent) -> str:
        """Short text for the latest-alert banner."""
        time_label = event.timestamp.strftime("%H:%M:%S")
        return f"{ALERT_EMOJI} {time_label} {event.text}"

    def _build_body(self, event: AlertEvent) -> str:
        if self.verbosity == "compact":
            return event.text

        lines = [
            f"Top digit: {event.top_digit} ({format_pct(event.top_pct)})",
            f"Pair digit: {event.other_digit} ({format_pct(event.other_pct)})",
            f"Window ticks: {event.total}",
            f"Time: {event.timestamp.isoformat()}",
        ]
        return "\n".join(lines)


def format_status_line(view: TrackerView, *, symbol: str = "") -> str:
    """One-line status summary for periodic logging."""
    parts = []
    if symbol:
        parts.append(symbol)
    parts.append(f"all-time={view.all_time_total}")
    parts.append(f"rolling={view.total}/{view.window_size}")
    parts.append(f"last={view.last_digit if view.last_digit is not None else '-'}")
    if view.top_digit is not None:
        parts.append(f"top={view.top_digit} ({format_pct(view.top_pct)})")
    parts.append(format_chi_square(view.chi_square, view.alpha))
    return " | ".join(parts)
