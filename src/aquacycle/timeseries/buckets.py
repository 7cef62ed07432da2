"""Adaptive bucket sizing for downsampled charts.

The bucket width grows with the requested range so that a chart gets
roughly ``target_points`` points, but never narrower than five minutes.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

__all__ = [
    "DEFAULT_TARGET_POINTS",
    "MIN_BUCKET_MINUTES",
    "bucket_index",
    "bucket_window",
    "compute_bucket_minutes",
]

MIN_BUCKET_MINUTES = 5
DEFAULT_TARGET_POINTS = 100


def compute_bucket_minutes(start: datetime, end: datetime, target_points: int = DEFAULT_TARGET_POINTS) -> int:
    """Compute bucket width in minutes for a range.

    Parameters
    ----------
    start, end
        Range boundaries
    target_points
        Rendering budget (number of points wanted on the chart)

    Returns
    -------
    int
        ``max(5, ceil(total_minutes / target_points))`` where
        ``total_minutes`` is at least 1

    Raises
    ------
    ValueError
        If target_points < 1

    Examples
    --------
    >>> compute_bucket_minutes(datetime(2024, 1, 1), datetime(2024, 1, 2), 100)
    15
    >>> compute_bucket_minutes(datetime(2024, 1, 1), datetime(2024, 1, 1, 1), 200)
    5
    """
    if target_points < 1:
        raise ValueError(f"target_points must be >= 1, got {target_points}")

    total_minutes = max(1, math.ceil((end - start).total_seconds() / 60))
    bucket = math.ceil(total_minutes / target_points)
    return max(MIN_BUCKET_MINUTES, bucket)


def bucket_index(timestamp: datetime, start: datetime, bucket_minutes: int) -> int:
    """Index of the bucket ``timestamp`` falls into, counted from ``start``."""
    return math.floor((timestamp - start) / timedelta(minutes=bucket_minutes))


def bucket_window(start: datetime, bucket_minutes: int, index: int) -> tuple[datetime, datetime]:
    """Boundaries ``[window_start, window_end)`` of bucket ``index``."""
    width = timedelta(minutes=bucket_minutes)
    window_start = start + index * width
    return window_start, window_start + width
