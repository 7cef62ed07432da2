"""Sensor time-series downsampling."""

from .aggregator import aggregate, merge_buckets, summarize, weighted_mean
from .buckets import DEFAULT_TARGET_POINTS, MIN_BUCKET_MINUTES, compute_bucket_minutes
from .concurrency import BoundedConcurrencyRunner, TaskOutcome
from .models import Bucket, RawReading, ReadingPage, SeriesSummary

__all__ = [
    "DEFAULT_TARGET_POINTS",
    "MIN_BUCKET_MINUTES",
    "BoundedConcurrencyRunner",
    "Bucket",
    "RawReading",
    "ReadingPage",
    "SeriesSummary",
    "TaskOutcome",
    "aggregate",
    "compute_bucket_minutes",
    "merge_buckets",
    "summarize",
    "weighted_mean",
]
