"""Error taxonomy for aquacycle.

Lifecycle errors are raised synchronously to the caller and are never
recovered locally. Fetch failures are recovered inside the series
pipeline (one relaxed retry, then a per-sensor error entry).
"""

from __future__ import annotations

__all__ = [
    "AquacycleError",
    "InvalidRange",
    "InvalidExtension",
    "NotExtendable",
    "FetchFailure",
    "AggregationInconsistency",
    "ProcessNotFound",
    "ProcessStoreError",
]


class AquacycleError(Exception):
    """Base exception for aquacycle operations."""

    pass


class InvalidRange(AquacycleError):
    """Raised when a date range violates ordering or duration rules."""

    pass


class InvalidExtension(AquacycleError):
    """Raised for malformed extension requests (days, reason)."""

    pass


class NotExtendable(AquacycleError):
    """Raised when extending a process that is not in the completed state."""

    pass


class FetchFailure(AquacycleError):
    """Raised when the reading store cannot deliver readings for a sensor.

    Attributes
    ----------
    sensor_id
        Sensor whose readings could not be fetched (if known)
    """

    def __init__(self, message: str, *, sensor_id: str | None = None) -> None:
        super().__init__(message)
        self.sensor_id = sensor_id


class AggregationInconsistency(AquacycleError):
    """Raised for a single reading that cannot take part in a bucket mean.

    The aggregator catches it per reading and excludes that reading.
    """

    pass


class ProcessNotFound(AquacycleError):
    """Raised when the process store has no process with the given id."""

    pass


class ProcessStoreError(AquacycleError):
    """Raised when the process store fails to read or persist a process."""

    pass
