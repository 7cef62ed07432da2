"""Value types for sensor readings and downsampled series."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.time import ensure_timezone, format_utc_iso8601

__all__ = ["Bucket", "RawReading", "ReadingPage", "SeriesSummary"]


@dataclass(frozen=True)
class RawReading:
    """A single reading, or a pre-aggregate when sample_count > 1.

    Attributes
    ----------
    sensor_id : str
        Installed sensor identifier
    timestamp : datetime
        Absolute instant (naive values are taken as UTC)
    value : float
        Measured (or averaged) value
    sample_count : int | None
        Number of raw samples behind ``value``; None means an atomic reading
    """

    sensor_id: str
    timestamp: datetime
    value: float
    sample_count: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "sensor_id", str(self.sensor_id))
        object.__setattr__(self, "timestamp", ensure_timezone(self.timestamp))


@dataclass(frozen=True)
class Bucket:
    """Fixed-width window ``[window_start, window_end)`` with its mean."""

    window_start: datetime
    window_end: datetime
    average: float
    sample_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_start": format_utc_iso8601(self.window_start),
            "window_end": format_utc_iso8601(self.window_end),
            "average": self.average,
            "sample_count": self.sample_count,
        }


@dataclass
class ReadingPage:
    """One page returned by a reading store."""

    readings: list[RawReading] = field(default_factory=list)
    has_more: bool = False


@dataclass(frozen=True)
class SeriesSummary:
    """Overall figures of a bucket series (mean is sample weighted)."""

    mean: float | None
    sample_count: int
    minimum: float | None
    maximum: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mean": self.mean,
            "sample_count": self.sample_count,
            "minimum": self.minimum,
            "maximum": self.maximum,
        }
