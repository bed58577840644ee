"""Floating-point comparison methods used to order agents.

An ordered for-each sorts agents by a numeric attribute. Whether two values
count as equal is a modelling decision, so the comparison is injected through
RunContext rather than fixed. Each factory returns a three-way ``cmp(a, b)``
that yields -1, 0 or 1, suitable for functools.cmp_to_key.
"""

from __future__ import annotations

import math
from typing import Callable

Comparison = Callable[[float, float], int]


def _sign(a: float, b: float) -> int:
    return (a > b) - (a < b)


def exact_comparison(a: float, b: float) -> int:
    """Plain ``<``/``==``/``>`` comparison."""
    return _sign(a, b)


def tolerance_comparison(epsilon: float) -> Comparison:
    """Values within ``epsilon`` of each other compare equal."""
    if not epsilon >= 0:
        raise ValueError(f"epsilon must be non-negative, got {epsilon}")

    def compare(a: float, b: float) -> int:
        if abs(a - b) <= epsilon:
            return 0
        return _sign(a, b)

    return compare


def relative_comparison(rel_tol: float) -> Comparison:
    """Values equal to within a relative tolerance (math.isclose) compare equal."""
    if not rel_tol >= 0:
        raise ValueError(f"rel_tol must be non-negative, got {rel_tol}")

    def compare(a: float, b: float) -> int:
        if math.isclose(a, b, rel_tol=rel_tol, abs_tol=0.0):
            return 0
        return _sign(a, b)

    return compare


def significant_figures_comparison(figures: int) -> Comparison:
    """Values that agree to ``figures`` significant figures compare equal."""
    if figures < 1:
        raise ValueError(f"figures must be at least 1, got {figures}")

    def rounded(value: float) -> float:
        return float(f"{value:.{figures - 1}e}")

    def compare(a: float, b: float) -> int:
        return _sign(rounded(a), rounded(b))

    return compare
