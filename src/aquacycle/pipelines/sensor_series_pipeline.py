"""Sensor series pipeline - downsampled per-sensor charts for a date range.

For every requested sensor the pipeline pages through the reading store,
buckets the readings and averages each bucket. Sensors are fetched
through a bounded worker pool so the store never sees more than
``concurrency_limit`` parallel requests.

Failure policy: a failed or timed out fetch is retried exactly once with a
relaxed query (no server-side date filter, the window is applied
client-side). If the retry fails too, that sensor's result carries the
error and no buckets; the other sensors are unaffected.
"""

from __future__ import annotations

import asyncio
import math
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from ..core.errors import FetchFailure
from ..core.lifecycle import CultivationProcess, DateRange, ProcessLifecycleCalculator
from ..observability import get_logger, timing_context
from ..timeseries.aggregator import aggregate, merge_buckets, summarize
from ..timeseries.buckets import DEFAULT_TARGET_POINTS, compute_bucket_minutes
from ..timeseries.concurrency import BoundedConcurrencyRunner
from ..timeseries.models import Bucket, RawReading, SeriesSummary

if TYPE_CHECKING:
    from ..adapters.readings import ReadingStore

__all__ = [
    "SensorSeriesConfig",
    "SensorSeriesPipeline",
    "SeriesResult",
    "TrendResult",
    "create_sensor_series_pipeline",
]

log = get_logger("pipeline")

SENSOR_LIMIT_ERROR = "sensor limit exceeded"


@dataclass
class SensorSeriesConfig:
    """Configuration for the sensor series pipeline."""

    concurrency_limit: int = 3
    target_points: int = DEFAULT_TARGET_POINTS
    page_size: int = 500
    fetch_timeout_seconds: float = 15.0
    max_pages: int = 200
    max_sensors: int = 20


@dataclass
class SeriesResult:
    """Downsampled series of one sensor, or the reason it is missing."""

    sensor_id: str
    buckets: list[Bucket] = field(default_factory=list)
    error: str | None = None
    attempts: int = 0
    used_fallback: bool = False
    summary: SeriesSummary = field(default_factory=lambda: summarize([]))

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sensor_id": self.sensor_id,
            "buckets": [b.to_dict() for b in self.buckets],
            "error": self.error,
            "attempts": self.attempts,
            "used_fallback": self.used_fallback,
            "summary": self.summary.to_dict(),
        }


@dataclass
class TrendResult:
    """Cross-sensor trend line plus the per-sensor series behind it."""

    buckets: list[Bucket]
    series: list[SeriesResult]
    bucket_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket_minutes": self.bucket_minutes,
            "buckets": [b.to_dict() for b in self.buckets],
            "series": [s.to_dict() for s in self.series],
        }


def _ranking_key(result: SeriesResult) -> tuple[int, float]:
    mean = result.summary.mean
    if result.ok and result.buckets and mean is not None and math.isfinite(mean):
        return (0, -mean)
    return (1, 0.0)


class SensorSeriesPipeline:
    """Builds downsampled series for many sensors with partial-failure tolerance.

    Example:
        store = HttpReadingStore(base_url="http://localhost:3001")
        pipeline = create_sensor_series_pipeline(store=store)
        results = pipeline.run(["1", "2", "3"], DateRange(start, end))
    """

    def __init__(
        self,
        store: ReadingStore,
        config: SensorSeriesConfig | None = None,
        *,
        calculator: ProcessLifecycleCalculator | None = None,
    ) -> None:
        """Initialize sensor series pipeline.

        Parameters
        ----------
        store
            Reading store to fetch from (read only)
        config
            Pipeline configuration
        calculator
            Lifecycle calculator used to resolve process windows
        """
        self.store = store
        self.config = config or SensorSeriesConfig()
        self.calculator = calculator or ProcessLifecycleCalculator()

    async def build_series(
        self,
        sensor_ids: Sequence[str | int],
        date_range: DateRange,
        target_points: int | None = None,
        *,
        rank: bool = True,
    ) -> list[SeriesResult]:
        """Build one series per sensor over ``date_range``.

        Parameters
        ----------
        sensor_ids
            Installed sensor identifiers
        date_range
            Window to chart
        target_points
            Rendering budget (defaults to config.target_points)
        rank
            Sort by descending mean (failed or empty series last); when
            False results keep the order of ``sensor_ids``

        Returns
        -------
        list[SeriesResult]
            One result per requested sensor; never raises for fetch failures
        """
        results, _ = await self._build(sensor_ids, date_range, target_points)
        if rank:
            results = sorted(results, key=_ranking_key)
        return results

    async def build_trend(
        self,
        sensor_ids: Sequence[str | int],
        date_range: DateRange,
        target_points: int | None = None,
    ) -> TrendResult:
        """Build the per-sensor series and merge them into one trend line."""
        results, bucket_minutes = await self._build(sensor_ids, date_range, target_points)
        merged = merge_buckets(r.buckets for r in results if r.ok)
        return TrendResult(buckets=merged, series=results, bucket_minutes=bucket_minutes)

    async def build_process_series(
        self,
        process: CultivationProcess,
        sensor_ids: Sequence[str | int],
        now: datetime | date | None = None,
        *,
        target_points: int | None = None,
        rank: bool = True,
    ) -> list[SeriesResult]:
        """Build series over the monitoring window of ``process``.

        Raises
        ------
        InvalidRange
            If the process has not started yet
        """
        window = self.calculator.process_window(process, now)
        return await self.build_series(sensor_ids, window, target_points, rank=rank)

    def run(
        self,
        sensor_ids: Sequence[str | int],
        date_range: DateRange,
        target_points: int | None = None,
        *,
        rank: bool = True,
    ) -> list[SeriesResult]:
        """Synchronous ``build_series`` for callers outside an event loop."""
        return asyncio.run(self.build_series(sensor_ids, date_range, target_points, rank=rank))

    async def _build(
        self,
        sensor_ids: Sequence[str | int],
        date_range: DateRange,
        target_points: int | None,
    ) -> tuple[list[SeriesResult], int]:
        trace_id = str(uuid.uuid4())
        start_time = time.time()

        points = self.config.target_points if target_points is None else target_points
        bucket_minutes = compute_bucket_minutes(date_range.start, date_range.end, points)

        ids = [str(s) for s in sensor_ids]
        accepted = ids[: self.config.max_sensors]
        rejected = ids[self.config.max_sensors :]

        log.info(
            "Series pipeline started",
            trace_id=trace_id,
            sensors=len(ids),
            bucket_minutes=bucket_minutes,
            concurrency_limit=self.config.concurrency_limit,
        )
        if rejected:
            log.warning(
                "Sensor limit exceeded, extra sensors not fetched",
                trace_id=trace_id,
                max_sensors=self.config.max_sensors,
                rejected=rejected,
            )

        runner = BoundedConcurrencyRunner(self.config.concurrency_limit)

        async def task(sensor_id: str) -> SeriesResult:
            return await self._build_sensor(sensor_id, date_range, bucket_minutes, trace_id)

        with timing_context("build_series", component="pipeline", trace_id=trace_id) as ctx:
            outcomes = await runner.run(accepted, task)
            ctx["sensors"] = len(accepted)

        results: list[SeriesResult] = []
        for sensor_id, outcome in zip(accepted, outcomes):
            if outcome.ok and outcome.value is not None:
                results.append(outcome.value)
            else:
                log.error(
                    "Sensor series crashed",
                    trace_id=trace_id,
                    sensor_id=sensor_id,
                    error=str(outcome.error),
                    error_type=type(outcome.error).__name__,
                )
                results.append(SeriesResult(sensor_id=sensor_id, error=str(outcome.error), attempts=1))

        results.extend(SeriesResult(sensor_id=sensor_id, error=SENSOR_LIMIT_ERROR) for sensor_id in rejected)

        failed = sum(1 for r in results if not r.ok)
        duration_ms = (time.time() - start_time) * 1000
        log.info(
            "Series pipeline completed",
            trace_id=trace_id,
            sensors_ok=len(results) - failed,
            sensors_failed=failed,
            duration_ms=duration_ms,
            outcome="success" if failed == 0 else "partial_failure",
        )

        return results, bucket_minutes

    async def _build_sensor(
        self,
        sensor_id: str,
        date_range: DateRange,
        bucket_minutes: int,
        trace_id: str,
    ) -> SeriesResult:
        """Fetch and aggregate one sensor, with one relaxed retry."""
        attempts = 0
        used_fallback = False

        try:
            attempts += 1
            readings = await self._fetch_with_timeout(sensor_id, date_range.start, date_range.end)
        except FetchFailure as first:
            log.warning(
                "Sensor fetch failed, retrying with relaxed query",
                trace_id=trace_id,
                sensor_id=sensor_id,
                error=str(first),
            )
            try:
                attempts += 1
                used_fallback = True
                readings = await self._fetch_with_timeout(sensor_id, None, None)
            except FetchFailure as second:
                log.error(
                    "Sensor series failed",
                    trace_id=trace_id,
                    sensor_id=sensor_id,
                    attempts=attempts,
                    error=str(second),
                    outcome="failure",
                )
                return SeriesResult(
                    sensor_id=sensor_id,
                    error=str(second),
                    attempts=attempts,
                    used_fallback=used_fallback,
                )

        # Relaxed fetches carry the whole history; aggregate() clips to the window
        buckets = aggregate(readings, bucket_minutes, date_range.start, date_range.end)
        log.debug(
            "Sensor series built",
            trace_id=trace_id,
            sensor_id=sensor_id,
            readings=len(readings),
            buckets=len(buckets),
            attempts=attempts,
            used_fallback=used_fallback,
        )
        return SeriesResult(
            sensor_id=sensor_id,
            buckets=buckets,
            attempts=attempts,
            used_fallback=used_fallback,
            summary=summarize(buckets),
        )

    async def _fetch_with_timeout(
        self,
        sensor_id: str,
        start: datetime | None,
        end: datetime | None,
    ) -> list[RawReading]:
        timeout = self.config.fetch_timeout_seconds
        try:
            return await asyncio.wait_for(self._fetch_all_pages(sensor_id, start, end), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise FetchFailure(f"Fetch for sensor {sensor_id} timed out after {timeout}s", sensor_id=sensor_id) from e
        except FetchFailure:
            raise
        except Exception as e:
            raise FetchFailure(f"Fetch for sensor {sensor_id} failed: {e}", sensor_id=sensor_id) from e

    async def _fetch_all_pages(
        self,
        sensor_id: str,
        start: datetime | None,
        end: datetime | None,
    ) -> list[RawReading]:
        readings: list[RawReading] = []
        page = 1
        while True:
            if page > self.config.max_pages:
                raise FetchFailure(
                    f"Sensor {sensor_id} has more than {self.config.max_pages} pages of readings",
                    sensor_id=sensor_id,
                )

            result = await self.store.fetch_readings(sensor_id, start, end, page, self.config.page_size)
            readings.extend(r for r in result.readings if r.sensor_id == sensor_id)

            if not result.has_more:
                return readings
            page += 1


def create_sensor_series_pipeline(
    *,
    store: ReadingStore,
    calculator: ProcessLifecycleCalculator | None = None,
    **config_kwargs: Any,
) -> SensorSeriesPipeline:
    """Factory function to create a sensor series pipeline.

    Parameters
    ----------
    store
        Reading store to fetch from
    calculator
        Optional lifecycle calculator (process windows)
    **config_kwargs
        SensorSeriesConfig fields

    Example:
        pipeline = create_sensor_series_pipeline(
            store=store,
            concurrency_limit=3,
            fetch_timeout_seconds=10.0,
        )
    """
    config = SensorSeriesConfig(**config_kwargs)
    return SensorSeriesPipeline(store, config, calculator=calculator)
