"""Tests for ingestor data models."""

import json
from datetime import UTC, datetime

import pytest

from deriv_digit_tracker.ingestor.models import MinuteRow, TickEvent


class TestTickEvent:
    """Tests for TickEvent model."""

    def test_from_full_websocket_message(self) -> None:
        data = {
            "echo_req": {"ticks": "R_100", "subscribe": 1},
            "msg_type": "tick",
            "subscription": {"id": "abc"},
            "tick": {
                "ask": 1234.58,
                "bid": 1234.38,
                "epoch": 1700000041,
                "id": "f00d",
                "pip_size": 2,
                "quote": 1234.48,
                "symbol": "R_100",
            },
        }
        tick = TickEvent.from_websocket_message(data)

        assert tick.symbol == "R_100"
        assert tick.epoch == 1700000041.0
        assert tick.quote == 1234.48
        assert tick.pip_size == 2
        assert tick.tick_id == "f00d"
        assert tick.timestamp == datetime.fromtimestamp(1700000041, tz=UTC)

    def test_from_inner_tick_object(self) -> None:
        tick = TickEvent.from_websocket_message({"epoch": 10, "quote": 5.5, "pip_size": 1, "symbol": "R_10"})
        assert tick.symbol == "R_10"
        assert tick.pip_size == 1

    def test_pip_size_defaults_to_two(self) -> None:
        tick = TickEvent.from_websocket_message({"tick": {"epoch": 10, "quote": 5.5}})
        assert tick.pip_size == 2

    def test_missing_epoch_uses_current_time(self) -> None:
        before = datetime.now(UTC).timestamp()
        tick = TickEvent.from_websocket_message({"tick": {"quote": 1.0}})
        assert tick.epoch >= before

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_epoch_uses_current_time(self, raw: str) -> None:
        before = datetime.now(UTC).timestamp()
        message = json.loads(
            '{"msg_type": "tick", "tick": {"symbol": "R_100", "quote": 1.23, "epoch": ' + raw + "}}"
        )
        tick = TickEvent.from_websocket_message(message)
        assert tick.epoch >= before

    def test_frozen(self) -> None:
        tick = TickEvent(symbol="R_100", epoch=1.0, quote=1.0)
        with pytest.raises(AttributeError):
            tick.quote = 2.0  # type: ignore[misc]


class TestMinuteRow:
    """Tests for MinuteRow model."""

    def test_label_and_percentages(self) -> None:
        row = MinuteRow(minute=1700000040, total=4, counts=(1, 0, 0, 3, 0, 0, 0, 0, 0, 0))
        assert row.minute_label == "2023-11-14T22:14Z"
        assert row.percentages[0] == pytest.approx(25.0)
        assert row.percentages[3] == pytest.approx(75.0)

    def test_empty_percentages(self) -> None:
        row = MinuteRow(minute=0, total=0, counts=(0,) * 10)
        assert row.percentages == (0.0,) * 10

    def test_dict_round_trip(self) -> None:
        row = MinuteRow(minute=1700000040, total=10, counts=(1,) * 10)
        assert MinuteRow.from_dict(row.to_dict()) == row

    def test_from_dict_rejects_wrong_digit_count(self) -> None:
        with pytest.raises(ValueError):
            MinuteRow.from_dict({"minute": 0, "total": 1, "counts": [1]})
