"""
Field scoring skill.

Ranks numeric columns relative to each other for use as a chart measure.
Scores are only meaningful as a sort key; there is no absolute threshold.
"""

from __future__ import annotations

from typing import Sequence

from core.models import Scalar
from core.utils import numeric_values, population_variance

NON_ZERO_EPSILON = 0.001


def score(values: Sequence[Scalar]) -> float:
    """
    variance x uniqueness ratio x 100 over the parseable-numeric values.

    Constant or heavily repeated columns score low; an empty numeric subset
    scores 0.
    """
    nums = numeric_values(values)
    if not nums:
        return 0.0
    variance = population_variance(nums)
    unique_ratio = len(set(nums)) / len(nums)
    return variance * unique_ratio * 100


def has_non_zero_values(values: Sequence[Scalar]) -> bool:
    """True iff some numeric value has magnitude above NON_ZERO_EPSILON."""
    return any(abs(v) > NON_ZERO_EPSILON for v in numeric_values(values))
