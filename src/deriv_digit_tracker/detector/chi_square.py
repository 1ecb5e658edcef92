"""Chi-square uniformity test for last-digit histograms.

Pure Python (no scipy). The chi-square upper tail is the regularized upper
incomplete gamma function Q(k/2, x/2), evaluated with the usual split:

- series expansion of P(a, x) for x < a + 1
- Lentz continued fraction for Q(a, x) otherwise

The series converges slowly and loses precision when x is large relative to
a, and the continued fraction converges quickly exactly there.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from deriv_digit_tracker.detector.models import CHI_SQUARE_DEGREES_OF_FREEDOM, ChiSquareResult
from deriv_digit_tracker.ingestor.models import DIGITS

GAMMA_EPS = 3e-7
GAMMA_MAX_ITER = 200
_FPMIN = 1e-300

# Lanczos approximation, g=7, n=9.
_LANCZOS_G = 7.0
_LANCZOS_COEF = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)


def log_gamma(x: float) -> float:
    """Natural log of the gamma function for x > 0 (Lanczos approximation)."""
    if x <= 0:
        raise ValueError("log_gamma is only defined here for x > 0")
    if x < 0.5:
        # Reflection keeps the approximation accurate near zero.
        return math.log(math.pi / math.sin(math.pi * x)) - log_gamma(1.0 - x)
    x -= 1.0
    t = _LANCZOS_COEF[0]
    for i in range(1, len(_LANCZOS_COEF)):
        t += _LANCZOS_COEF[i] / (x + i)
    w = x + _LANCZOS_G + 0.5
    return 0.5 * math.log(2.0 * math.pi) + (x + 0.5) * math.log(w) - w + math.log(t)


def _gamma_series(a: float, x: float) -> float:
    """P(a, x) by its power series; use for x < a + 1."""
    ap = a
    term = 1.0 / a
    total = term
    for _ in range(GAMMA_MAX_ITER):
        ap += 1.0
        term *= x / ap
        total += term
        if abs(term) < abs(total) * GAMMA_EPS:
            break
    return total * math.exp(-x + a * math.log(x) - log_gamma(a))


def _gamma_continued_fraction(a: float, x: float) -> float:
    """Q(a, x) by the modified Lentz continued fraction; use for x >= a + 1."""
    b = x + 1.0 - a
    c = 1.0 / _FPMIN
    d = 1.0 / b
    h = d
    for i in range(1, GAMMA_MAX_ITER + 1):
        an = -i * (i - a)
        b += 2.0
        d = an * d + b
        if abs(d) < _FPMIN:
            d = _FPMIN
        c = b + an / c
        if abs(c) < _FPMIN:
            c = _FPMIN
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < GAMMA_EPS:
            break
    return math.exp(-x + a * math.log(x) - log_gamma(a)) * h


def regularized_gamma_p(a: float, x: float) -> float:
    """Regularized lower incomplete gamma P(a, x)."""
    if a <= 0:
        raise ValueError("a must be > 0")
    if x <= 0:
        return 0.0
    if x < a + 1.0:
        p = _gamma_series(a, x)
    else:
        p = 1.0 - _gamma_continued_fraction(a, x)
    return min(1.0, max(0.0, p))


def regularized_gamma_q(a: float, x: float) -> float:
    """Regularized upper incomplete gamma Q(a, x) = 1 - P(a, x)."""
    if a <= 0:
        raise ValueError("a must be > 0")
    if x <= 0:
        return 1.0
    if x < a + 1.0:
        q = 1.0 - _gamma_series(a, x)
    else:
        q = _gamma_continued_fraction(a, x)
    return min(1.0, max(0.0, q))


def chi_square_p_value(statistic: float, degrees_of_freedom: int = CHI_SQUARE_DEGREES_OF_FREEDOM) -> float:
    """Upper-tail probability of a chi-square distribution."""
    if not math.isfinite(statistic):
        return 0.0
    return regularized_gamma_q(degrees_of_freedom / 2.0, statistic / 2.0)


def evaluate_uniformity(counts: Sequence[int], total: int | None = None) -> ChiSquareResult:
    """Test a 10-digit histogram against the uniform distribution.

    Args:
        counts: Observed count per digit 0-9.
        total: Declared total; defaults to ``sum(counts)``.

    Returns:
        The result, always defined. With no observations the statistic is 0
        and the p-value 1; with fewer than 5 expected per digit the result is
        flagged unreliable rather than suppressed.
    """
    observed = [max(0, int(c)) for c in list(counts)[:DIGITS]]
    observed += [0] * (DIGITS - len(observed))
    n = sum(observed) if total is None else int(total)

    if n <= 0:
        return ChiSquareResult(statistic=0.0, p_value=1.0, total=0, expected=0.0)

    expected = n / DIGITS
    statistic = sum((o - expected) ** 2 / expected for o in observed)
    return ChiSquareResult(
        statistic=statistic,
        p_value=chi_square_p_value(statistic),
        total=n,
        expected=expected,
    )
