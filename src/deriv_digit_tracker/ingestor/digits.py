"""Last-digit extraction for price quotes.

The digit is taken from the quote formatted at the feed's pip size, so
``123.40`` at pip size 2 yields 0 even though the float is ``123.4``.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from deriv_digit_tracker.ingestor.models import DEFAULT_PIP_SIZE, DigitReading

MAX_PIP_SIZE = 100
# Enough significant digits for any finite double at MAX_PIP_SIZE places.
_DECIMAL_PRECISION = 512

_MALFORMED = DigitReading(digit=0, malformed=True)


def _pip_places(pip_size: Any) -> int | None:
    if isinstance(pip_size, bool):
        return None
    if isinstance(pip_size, int):
        places = pip_size
    elif isinstance(pip_size, float) and pip_size.is_integer():
        places = int(pip_size)
    else:
        return None
    if not 0 <= places <= MAX_PIP_SIZE:
        return None
    return places


def _format_fixed(value: float, places: int) -> str:
    """Format like JavaScript's ``toFixed``: exact binary value, ties rounded up."""
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        quantized = Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    return format(quantized, "f")


def read_digit(quote: Any, pip_size: Any = DEFAULT_PIP_SIZE) -> DigitReading:
    """Extract the last digit of ``quote`` formatted with ``pip_size`` decimals.

    Never raises: anything that cannot be formatted (non-numeric quote,
    NaN/inf, invalid pip size) yields digit 0 with ``malformed=True``.
    """
    places = _pip_places(pip_size)
    if places is None:
        return _MALFORMED
    try:
        value = float(quote)
    except (TypeError, ValueError, OverflowError):
        return _MALFORMED
    if not math.isfinite(value):
        return _MALFORMED

    last = _format_fixed(value, places)[-1]
    if not last.isdigit():
        return _MALFORMED
    return DigitReading(digit=int(last))


def extract_digit(quote: Any, pip_size: Any = DEFAULT_PIP_SIZE) -> int:
    """Return the last digit of ``quote`` at ``pip_size`` decimals (0 on bad input)."""
    return read_digit(quote, pip_size).digit
