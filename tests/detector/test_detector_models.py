"""Tests for detector data models."""

import pytest

from deriv_digit_tracker.detector.models import AlertEvent, AlertRule, ChiSquareResult


class TestAlertRule:
    def test_defaults(self) -> None:
        rule = AlertRule()
        assert rule.focus_digits == (8, 9)
        assert rule.cooldown_ms == 20_000
        assert rule.has_valid_pair is True

    def test_bool_is_not_a_digit(self) -> None:
        assert AlertRule(focus_digits=(True, 9)).has_valid_pair is False


class TestChiSquareResult:
    def test_to_dict(self) -> None:
        result = ChiSquareResult(statistic=1.5, p_value=0.99, total=100, expected=10.0)
        data = result.to_dict()
        assert data["degrees_of_freedom"] == 9
        assert data["reliable"] is True

    def test_rejects_uniformity(self) -> None:
        result = ChiSquareResult(statistic=30.0, p_value=0.001, total=100, expected=10.0)
        assert result.rejects_uniformity(0.05) is True
        assert result.rejects_uniformity(0.0001) is False


class TestAlertEvent:
    def test_to_dict(self) -> None:
        event = AlertEvent(
            key="8-9",
            text="t",
            timestamp_ms=1_700_000_040_000,
            top_digit=8,
            other_digit=9,
            top_pct=20.0,
            other_pct=12.0,
            total=50,
        )
        data = event.to_dict()
        assert data["key"] == "8-9"
        assert data["timestamp"] == "2023-11-14T22:14:00+00:00"

    def test_frozen(self) -> None:
        event = AlertEvent("k", "t", 0, 8, 9, 20.0, 12.0, 50)
        with pytest.raises(AttributeError):
            event.key = "x"  # type: ignore[misc]
