"""Tests for last-digit extraction."""

import math
from decimal import Decimal

import pytest

from deriv_digit_tracker.ingestor.digits import extract_digit, read_digit


class TestExtractDigit:
    """Tests for extract_digit."""

    @pytest.mark.parametrize(
        ("quote", "pip_size", "expected"),
        [
            (1234.56, 2, 6),
            (1234.5, 2, 0),
            (1234.5, 1, 5),
            (987.123, 3, 3),
            (42, 0, 2),
            (0.1 + 0.2, 2, 0),
            (-5.47, 2, 7),
            ("6543.21", 2, 1),
            (Decimal("100.09"), 2, 9),
        ],
    )
    def test_last_digit_at_pip_size(self, quote: object, pip_size: int, expected: int) -> None:
        assert extract_digit(quote, pip_size) == expected

    def test_rounds_to_pip_size_before_taking_digit(self) -> None:
        """1.996 at 2 decimals formats to 2.00."""
        assert extract_digit(1.996, 2) == 0

    @pytest.mark.parametrize(
        ("quote", "pip_size", "expected"),
        [
            (1.125, 2, 3),
            (0.5, 0, 1),
            (2.5, 0, 3),
            (-2.5, 0, 3),
            (1.005, 2, 0),  # binary value is just below 1.005
        ],
    )
    def test_ties_round_up_like_to_fixed(self, quote: float, pip_size: int, expected: int) -> None:
        assert extract_digit(quote, pip_size) == expected

    def test_large_quote_at_max_pip_size(self) -> None:
        reading = read_digit(1e300, 100)
        assert reading.digit == 0
        assert reading.malformed is False

    def test_default_pip_size_is_two(self) -> None:
        assert extract_digit(10.25) == 5

    def test_float_pip_size_with_integral_value(self) -> None:
        assert extract_digit(10.257, 3.0) == 7

    @pytest.mark.parametrize("quote", [1.0, 123.456, 99999.99, 0.0, 1e-9, 12345678.9])
    @pytest.mark.parametrize("pip_size", [0, 1, 2, 3, 4, 5])
    def test_always_in_range(self, quote: float, pip_size: int) -> None:
        assert 0 <= extract_digit(quote, pip_size) <= 9


class TestReadDigit:
    """Tests for read_digit malformed handling."""

    def test_valid_quote_is_not_malformed(self) -> None:
        reading = read_digit(1234.50, 2)
        assert reading.digit == 0
        assert reading.malformed is False

    @pytest.mark.parametrize(
        "quote",
        [None, "abc", "", math.nan, math.inf, -math.inf, object(), [1.0]],
    )
    def test_malformed_quote_falls_back_to_zero(self, quote: object) -> None:
        reading = read_digit(quote, 2)
        assert reading.digit == 0
        assert reading.malformed is True

    @pytest.mark.parametrize("pip_size", [-1, 1.5, "2", None, True, 1000])
    def test_invalid_pip_size_is_malformed(self, pip_size: object) -> None:
        reading = read_digit(1234.56, pip_size)
        assert reading.digit == 0
        assert reading.malformed is True

    def test_never_raises_on_garbage(self) -> None:
        for quote in (b"1.2", {}, complex(1, 2), "1e400"):
            reading = read_digit(quote, 2)
            assert 0 <= reading.digit <= 9
