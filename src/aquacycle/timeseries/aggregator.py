"""Reading aggregation into fixed-width time buckets.

Readings are assigned to ``floor((timestamp - start) / bucket_minutes)``
and each bucket gets a mean:

- sample-count weighted when any reading in the input is a pre-aggregate
  (``sample_count > 1``), e.g. when merging pages of upstream averages
- plain arithmetic mean otherwise, with ``sample_count`` = readings

Empty buckets are omitted, never zero-filled. Non-finite values are
excluded reading by reading.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime

from ..core.errors import AggregationInconsistency
from ..core.time import ensure_timezone
from ..observability import get_logger
from .buckets import bucket_index, bucket_window
from .models import Bucket, RawReading, SeriesSummary

__all__ = [
    "aggregate",
    "merge_buckets",
    "reading_weight",
    "summarize",
    "weighted_mean",
]

log = get_logger("pipeline")


def reading_weight(reading: RawReading) -> int:
    """Sample count of a reading; missing or invalid counts weigh 1."""
    count = reading.sample_count
    if count is None:
        return 1
    try:
        numeric = float(count)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(numeric) or numeric <= 0:
        return 1
    return max(1, int(numeric))


def _finite_value(reading: RawReading) -> float:
    try:
        value = float(reading.value)
    except (TypeError, ValueError) as exc:
        raise AggregationInconsistency(f"Non-numeric value {reading.value!r} from sensor {reading.sensor_id}") from exc
    if not math.isfinite(value):
        raise AggregationInconsistency(f"Non-finite value {value} from sensor {reading.sensor_id}")
    return value


def weighted_mean(pairs: Sequence[tuple[float, int]]) -> tuple[float, int]:
    """Weighted mean of ``(value, weight)`` pairs.

    Deviations are summed around the first value, so a set of identical
    values yields exactly that value.

    Returns
    -------
    tuple[float, int]
        (mean, total weight)

    Raises
    ------
    ValueError
        If pairs is empty or the total weight is not positive
    """
    if not pairs:
        raise ValueError("weighted_mean() requires at least one value")

    total_weight = sum(weight for _, weight in pairs)
    if total_weight <= 0:
        raise ValueError("weighted_mean() requires a positive total weight")

    reference = pairs[0][0]
    deviation = math.fsum((value - reference) * weight for value, weight in pairs)
    return reference + deviation / total_weight, total_weight


def aggregate(
    readings: Iterable[RawReading],
    bucket_minutes: int,
    start: datetime,
    end: datetime,
) -> list[Bucket]:
    """Bucket readings within ``[start, end]`` and average each bucket.

    Parameters
    ----------
    readings
        Raw readings (any order, any sensor mix)
    bucket_minutes
        Bucket width in minutes
    start, end
        Inclusive window; readings outside are discarded

    Returns
    -------
    list[Bucket]
        Non-empty buckets in ascending time order

    Raises
    ------
    ValueError
        If bucket_minutes < 1
    """
    if bucket_minutes < 1:
        raise ValueError(f"bucket_minutes must be >= 1, got {bucket_minutes}")

    start = ensure_timezone(start)
    end = ensure_timezone(end)

    in_window = [r for r in readings if start <= r.timestamp <= end]

    usable: list[tuple[RawReading, float]] = []
    for reading in in_window:
        try:
            usable.append((reading, _finite_value(reading)))
        except AggregationInconsistency as exc:
            log.debug("Reading excluded: {}", exc)
    excluded = len(in_window) - len(usable)

    weighted = any(reading_weight(r) > 1 for r, _ in usable)

    grouped: dict[int, list[tuple[float, int]]] = {}
    for reading, value in usable:
        weight = reading_weight(reading) if weighted else 1
        index = bucket_index(reading.timestamp, start, bucket_minutes)
        grouped.setdefault(index, []).append((value, weight))

    if excluded:
        log.warning(f"Excluded {excluded} non-finite reading(s) from aggregation")

    buckets = []
    for index in sorted(grouped):
        average, count = weighted_mean(grouped[index])
        window_start, window_end = bucket_window(start, bucket_minutes, index)
        buckets.append(Bucket(window_start, window_end, average, count))

    return buckets


def merge_buckets(series: Iterable[Sequence[Bucket]]) -> list[Bucket]:
    """Combine bucket series of several sensors into one trend line.

    Buckets sharing ``window_start`` are merged with the sample-count
    weighted mean.
    """
    grouped: dict[datetime, list[tuple[float, int]]] = {}
    ends: dict[datetime, datetime] = {}

    for buckets in series:
        for bucket in buckets:
            if not math.isfinite(bucket.average):
                continue
            grouped.setdefault(bucket.window_start, []).append((bucket.average, max(1, bucket.sample_count)))
            ends.setdefault(bucket.window_start, bucket.window_end)

    merged = []
    for window_start in sorted(grouped):
        average, count = weighted_mean(grouped[window_start])
        merged.append(Bucket(window_start, ends[window_start], average, count))
    return merged


def summarize(buckets: Sequence[Bucket]) -> SeriesSummary:
    """Overall weighted mean, sample total and extremes of a series."""
    finite = [b for b in buckets if math.isfinite(b.average)]
    if not finite:
        return SeriesSummary(mean=None, sample_count=0, minimum=None, maximum=None)

    mean, count = weighted_mean([(b.average, max(1, b.sample_count)) for b in finite])
    return SeriesSummary(
        mean=mean,
        sample_count=count,
        minimum=min(b.average for b in finite),
        maximum=max(b.average for b in finite),
    )
