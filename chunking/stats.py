"""
Small statistics toolkit shared by the chunker and the coherence scorer.

Variance and standard deviation are population statistics (ddof=0).
"""

import math
from typing import Sequence

import numpy as np

from shared.schemas import DistanceStats


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def median(values: Sequence[float]) -> float:
    """Median, averaging the two middle values for even lengths."""
    if len(values) == 0:
        return 0.0
    return float(np.median(values))


def variance(values: Sequence[float]) -> float:
    """Population variance. Fewer than two samples have no spread."""
    if len(values) < 2:
        return 0.0
    return float(np.var(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    return math.sqrt(variance(values))


def percentile_index(n: int, percentile: float) -> int:
    """
    Index into an ascending array of length n for a percentile.

    Non-interpolated: floor(p/100 * (n - 1)).
    """
    if n <= 0:
        raise ValueError("percentile_index requires a non-empty array")
    return int(math.floor((percentile / 100) * (n - 1)))


def describe_distances(distances: Sequence[float]) -> DistanceStats:
    """
    Summarise a distance sequence.

    Mean, median and std_dev are rounded to 4 decimals for metadata.
    """
    if len(distances) == 0:
        return DistanceStats()

    return DistanceStats(
        min=float(min(distances)),
        max=float(max(distances)),
        mean=round(mean(distances), 4),
        median=round(median(distances), 4),
        std_dev=round(std_dev(distances), 4),
    )
