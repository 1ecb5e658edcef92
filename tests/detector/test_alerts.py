"""Tests for the focus-pair alert engine."""

from dataclasses import replace

import pytest

from deriv_digit_tracker.detector.alerts import AlertEngine, alert_key, argmax_digit
from deriv_digit_tracker.detector.models import AlertRule

# total 50: digit 8 = 20%, digit 9 = 12%
EIGHT_LEADS = [5, 5, 4, 4, 4, 4, 4, 4, 10, 6]
# total 50: digit 9 = 20%, digit 8 = 12%
NINE_LEADS = [5, 5, 4, 4, 4, 4, 4, 4, 6, 10]
# total 50: digit 8 = 20%, digit 9 = 8%
PAIR_TOO_LOW = [5, 5, 5, 5, 4, 4, 4, 4, 10, 4]
# total 50: digit 0 leads
ZERO_LEADS = [10, 5, 4, 4, 4, 4, 4, 4, 5, 6]


class TestArgmaxDigit:
    def test_lowest_index_wins_ties(self) -> None:
        assert argmax_digit([1, 3, 3, 0]) == 1
        assert argmax_digit([0, 0, 0]) == 0

    def test_key(self) -> None:
        assert alert_key(8, 9) == "8-9"


class TestAlertEngine:
    """Tests for AlertEngine.evaluate."""

    def test_fires_once_then_respects_cooldown(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)

        first = engine.evaluate(EIGHT_LEADS, now_ms=0)
        second = engine.evaluate(EIGHT_LEADS, now_ms=10_000)
        third = engine.evaluate(EIGHT_LEADS, now_ms=20_000)

        assert first is not None
        assert first.key == "8-9"
        assert first.top_digit == 8
        assert first.other_digit == 9
        assert first.top_pct == pytest.approx(20.0)
        assert first.other_pct == pytest.approx(12.0)
        assert first.total == 50
        assert second is None
        assert third is not None
        assert engine.log == [third, first]
        assert engine.latest is third

    def test_state_tracks_last_firing(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        engine.evaluate(EIGHT_LEADS, now_ms=1234)

        assert engine.state.active is True
        assert engine.state.last_fired_key == "8-9"
        assert engine.state.last_fired_at_ms == 1234

    def test_condition_is_an_and_of_both_thresholds(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        assert engine.evaluate(PAIR_TOO_LOW, now_ms=0) is None
        assert engine.state.active is False

        strict = replace(focus_rule, high_threshold=25.0)
        assert AlertEngine(strict).evaluate(EIGHT_LEADS, now_ms=0) is None

    def test_top_digit_outside_pair_rearms(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        assert engine.evaluate(EIGHT_LEADS, now_ms=0) is not None

        assert engine.evaluate(ZERO_LEADS, now_ms=1_000) is None
        assert engine.state.active is False

        # Re-armed: fires again even though the cooldown has not elapsed.
        assert engine.evaluate(EIGHT_LEADS, now_ms=2_000) is not None

    def test_false_condition_rearms(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        engine.evaluate(EIGHT_LEADS, now_ms=0)
        engine.evaluate(PAIR_TOO_LOW, now_ms=1_000)

        assert engine.evaluate(EIGHT_LEADS, now_ms=2_000) is not None

    def test_tie_goes_to_lowest_digit(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        counts = [4, 4, 4, 4, 4, 4, 4, 10, 10, 2]
        assert engine.evaluate(counts, now_ms=0) is None

    def test_new_key_fires_within_cooldown(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        a = engine.evaluate(EIGHT_LEADS, now_ms=0)
        b = engine.evaluate(NINE_LEADS, now_ms=5_000)

        assert a is not None and a.key == "8-9"
        assert b is not None and b.key == "9-8"

    def test_minimum_sample_gate(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        counts = [0, 0, 0, 0, 0, 0, 0, 0, 10, 9]  # total 19
        assert engine.evaluate(counts, now_ms=0) is None

    @pytest.mark.parametrize("pair", [(8, 8), (8,), (8, 9, 1), (8, 10), (-1, 9), ()])
    def test_malformed_pair_stays_inactive(self, focus_rule: AlertRule, pair: tuple[int, ...]) -> None:
        engine = AlertEngine(replace(focus_rule, focus_digits=pair))
        assert engine.evaluate(EIGHT_LEADS, now_ms=0) is None
        assert engine.state.active is False

    def test_disabled_rule(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(replace(focus_rule, enabled=False))
        assert engine.evaluate(EIGHT_LEADS, now_ms=0) is None

    def test_log_is_bounded_newest_first(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(replace(focus_rule, log_limit=3, cooldown_seconds=0))
        fired = [engine.evaluate(EIGHT_LEADS, now_ms=t) for t in range(5)]

        assert all(e is not None for e in fired)
        assert [e.timestamp_ms for e in engine.log] == [4, 3, 2]

    def test_does_not_mutate_histogram(self, focus_rule: AlertRule) -> None:
        counts = list(EIGHT_LEADS)
        AlertEngine(focus_rule).evaluate(counts, now_ms=0)
        assert counts == EIGHT_LEADS

    def test_reset_and_update_rule(self, focus_rule: AlertRule) -> None:
        engine = AlertEngine(focus_rule)
        engine.evaluate(EIGHT_LEADS, now_ms=0)

        engine.update_rule(replace(focus_rule, log_limit=1))
        assert engine.state.active is False
        assert len(engine.log) == 1

        engine.reset()
        assert engine.log == []
        assert engine.state.last_fired_key is None
