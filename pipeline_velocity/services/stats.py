"""
Statistical and date helpers shared by the velocity analyses.

Averages use numpy on float64 arrays. The "upper median" (element at n // 2
of the sorted values) is used wherever a bucket or cohort reports a median
in whole days, so the reported value is always an observed sample.
"""

import math
from datetime import datetime
from typing import Optional, Sequence

import numpy as np


MS_PER_DAY = 86_400_000


def mean(values: Sequence[float]) -> float:
    """
    Arithmetic mean of a list of values.

    Returns:
        Mean as a float, or 0 for an empty list.
    """
    if not values:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def median(values: Sequence[float]) -> float:
    """
    True median (average of the two middle values for even counts).

    Returns:
        Median as a float, or 0 for an empty list.
    """
    if not values:
        return 0.0
    return float(np.median(np.asarray(values, dtype=np.float64)))


def upper_median(values: Sequence[float]) -> Optional[float]:
    """Element at index n // 2 of the sorted values, or None for an empty list."""
    if not values:
        return None
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def days_between(start: datetime, end: datetime) -> int:
    """
    Whole days from start to end, truncated toward zero.

    Negative when end precedes start; callers decide whether to drop those.
    """
    elapsed_ms = (end - start).total_seconds() * 1000
    return int(elapsed_ms / MS_PER_DAY)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)
