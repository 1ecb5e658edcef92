"""Focus-pair alert engine.

Watches the rolling histogram and fires when the most frequent digit is one
of the two focus digits and both focus digits clear their thresholds. The
same condition re-fires only after the cooldown; once the condition stops
holding the engine is re-armed immediately.

The current time is passed in by the caller, so the engine is a pure
function of (histogram, rule, now, prior state).
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Sequence

from deriv_digit_tracker.detector.models import AlertEvent, AlertRule, AlertState

logger = logging.getLogger(__name__)


def argmax_digit(values: Sequence[float]) -> int:
    """Index of the largest value; the lowest index wins ties."""
    best = 0
    for i in range(1, len(values)):
        if values[i] > values[best]:
            best = i
    return best


def alert_key(top_digit: int, other_digit: int) -> str:
    return f"{top_digit}-{other_digit}"


class AlertEngine:
    """Debounced threshold alerts over a digit histogram."""

    def __init__(self, rule: AlertRule | None = None) -> None:
        self._rule = rule or AlertRule()
        self._state = AlertState()
        self._log: deque[AlertEvent] = deque(maxlen=max(1, self._rule.log_limit))
        if not self._rule.has_valid_pair:
            logger.warning(
                "Alert focus digits %r are not two distinct digits; alerts stay inactive",
                self._rule.focus_digits,
            )

    @property
    def rule(self) -> AlertRule:
        return self._rule

    @property
    def state(self) -> AlertState:
        return self._state

    @property
    def log(self) -> list[AlertEvent]:
        """Fired alerts, newest first."""
        return list(self._log)

    @property
    def latest(self) -> AlertEvent | None:
        return self._log[0] if self._log else None

    def update_rule(self, rule: AlertRule) -> None:
        """Swap the rule; the log is kept (trimmed to the new limit) and the state re-armed."""
        self._rule = rule
        self._log = deque(list(self._log), maxlen=max(1, rule.log_limit))
        self._state.active = False
        if not rule.has_valid_pair:
            logger.warning(
                "Alert focus digits %r are not two distinct digits; alerts stay inactive",
                rule.focus_digits,
            )

    def reset(self) -> None:
        """Forget the debounce state and the alert log."""
        self._state = AlertState()
        self._log.clear()

    def evaluate(self, counts: Sequence[int], *, now_ms: float) -> AlertEvent | None:
        """Evaluate the rule against ``counts``; return the event if one fired."""
        rule = self._rule
        total = sum(counts)
        if not rule.enabled or not rule.has_valid_pair or total < rule.min_samples:
            self._state.active = False
            return None

        percentages = [c / total * 100.0 for c in counts]
        top = argmax_digit(percentages)
        if top not in rule.focus_digits:
            self._state.active = False
            return None

        other = rule.focus_digits[1] if top == rule.focus_digits[0] else rule.focus_digits[0]
        top_pct = percentages[top]
        other_pct = percentages[other]
        if not (top_pct >= rule.high_threshold and other_pct >= rule.pair_threshold):
            self._state.active = False
            return None

        key = alert_key(top, other)
        state = self._state
        if (
            state.active
            and state.last_fired_key == key
            and state.last_fired_at_ms is not None
            and (now_ms - state.last_fired_at_ms) < rule.cooldown_ms
        ):
            return None

        event = AlertEvent(
            key=key,
            text=(
                f"Digit {top} leads at {top_pct:.1f}% with pair digit {other} "
                f"at {other_pct:.1f}% over {total} ticks"
            ),
            timestamp_ms=now_ms,
            top_digit=top,
            other_digit=other,
            top_pct=top_pct,
            other_pct=other_pct,
            total=total,
        )
        state.active = True
        state.last_fired_key = key
        state.last_fired_at_ms = now_ms
        self._log.appendleft(event)
        logger.info("Alert fired: %s", event.text)
        return event
