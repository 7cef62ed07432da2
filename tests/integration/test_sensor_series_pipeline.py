"""Integration tests for the sensor series pipeline.

These tests drive the pipeline end to end against the in-memory and the
HTTP reading stores: bounded concurrency, relaxed retries, partial
failure isolation and ranking.
"""

from __future__ import annotations

import doctest
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from aquacycle.adapters.readings import HttpReadingStore, InMemoryReadingStore
from aquacycle.core.errors import InvalidRange
from aquacycle.core.lifecycle import CultivationProcess, DateRange, ProcessLifecycleCalculator
from aquacycle.core.time import FixedClock
from aquacycle.pipelines import sensor_series_pipeline
from aquacycle.pipelines.sensor_series_pipeline import (
    SENSOR_LIMIT_ERROR,
    SensorSeriesConfig,
    SensorSeriesPipeline,
    create_sensor_series_pipeline,
)
from aquacycle.timeseries.models import RawReading, ReadingPage

pytestmark = pytest.mark.integration

START = datetime(2024, 5, 1, tzinfo=timezone.utc)
DAY = DateRange(START, START + timedelta(days=1))


def hourly(sensor_id: str, value: float, hours: int = 24, start: datetime = START) -> list[RawReading]:
    return [RawReading(sensor_id, start + timedelta(hours=h), value) for h in range(hours)]


def five_sensor_store(**kwargs) -> InMemoryReadingStore:
    readings = []
    for n in range(1, 6):
        readings += hourly(str(n), float(n * 10))
    return InMemoryReadingStore(readings, **kwargs)


@pytest.mark.asyncio
class TestPartialFailure:
    """One failing sensor never takes the others down."""

    async def test_five_sensors_one_failing(self):
        store = five_sensor_store(fail_always={"2"}, latency=0.01)
        pipeline = create_sensor_series_pipeline(store=store, concurrency_limit=3)

        results = await pipeline.build_series(["1", "2", "3", "4", "5"], DAY, rank=False)

        assert [r.sensor_id for r in results] == ["1", "2", "3", "4", "5"]
        ok = [r for r in results if r.ok]
        assert len(ok) == 4
        assert all(r.buckets for r in ok)

        failed = results[1]
        assert failed.error
        assert failed.buckets == []
        assert failed.attempts == 2
        assert failed.summary.mean is None

    async def test_concurrency_ceiling_is_respected(self):
        store = five_sensor_store(latency=0.02)
        pipeline = create_sensor_series_pipeline(store=store, concurrency_limit=3)

        await pipeline.build_series(["1", "2", "3", "4", "5"], DAY)

        assert 1 <= store.max_in_flight <= 3

    async def test_relaxed_retry_recovers(self):
        older = hourly("7", 99.0, start=START - timedelta(days=3))
        store = InMemoryReadingStore(hourly("7", 5.0) + older, fail_filtered={"7"})
        pipeline = SensorSeriesPipeline(store)

        (result,) = await pipeline.build_series(["7"], DAY)

        assert result.ok
        assert result.used_fallback is True
        assert result.attempts == 2
        # The unfiltered retry returns older history; only the window is kept
        assert result.summary.mean == 5.0
        assert sum(b.sample_count for b in result.buckets) == 24

        relaxed_call = store.calls[-1]
        assert relaxed_call[1] is None and relaxed_call[2] is None

    async def test_timeout_becomes_error_result(self):
        store = InMemoryReadingStore(hourly("1", 1.0), latency=0.2)
        pipeline = create_sensor_series_pipeline(store=store, fetch_timeout_seconds=0.05)

        (result,) = await pipeline.build_series(["1"], DAY)

        assert not result.ok
        assert "timed out" in result.error
        assert result.attempts == 2
        assert result.used_fallback is True

    async def test_too_many_pages_is_a_fetch_failure(self):
        store = InMemoryReadingStore(hourly("1", 1.0, hours=10))
        pipeline = create_sensor_series_pipeline(store=store, page_size=2, max_pages=2)

        (result,) = await pipeline.build_series(["1"], DAY)

        assert not result.ok
        assert "more than 2 pages" in result.error

    async def test_store_crash_is_isolated(self):
        class CrashingStore(InMemoryReadingStore):
            async def fetch_readings(self, sensor_id, start, end, page, page_size):
                if sensor_id == "3":
                    raise RuntimeError("connection reset")
                return await super().fetch_readings(sensor_id, start, end, page, page_size)

        store = CrashingStore(hourly("1", 1.0) + hourly("3", 3.0))
        pipeline = SensorSeriesPipeline(store)

        results = await pipeline.build_series(["1", "3"], DAY, rank=False)

        assert results[0].ok
        assert not results[1].ok
        assert "connection reset" in results[1].error


@pytest.mark.asyncio
class TestSeriesShape:
    """Paging, ranking, sensor cap and trend merging."""

    async def test_pages_are_concatenated(self):
        store = InMemoryReadingStore(hourly("1", 4.0))
        pipeline = create_sensor_series_pipeline(store=store, page_size=5)

        (result,) = await pipeline.build_series(["1"], DAY)

        assert result.ok
        assert len(result.buckets) == 24
        assert [call[3] for call in store.calls] == [1, 2, 3, 4, 5]

    async def test_ranked_by_descending_mean_failures_last(self):
        store = five_sensor_store(fail_always={"5"})
        pipeline = SensorSeriesPipeline(store)

        results = await pipeline.build_series(["1", "5", "3", "9", "4"], DAY)

        ids = [r.sensor_id for r in results]
        assert ids[:3] == ["4", "3", "1"]
        # Sensor 9 has no readings, sensor 5 failed: both after ranked series
        assert set(ids[3:]) == {"9", "5"}

    async def test_empty_sensor_is_ok_without_buckets(self):
        pipeline = SensorSeriesPipeline(InMemoryReadingStore())

        (result,) = await pipeline.build_series([42], DAY)

        assert result.sensor_id == "42"
        assert result.ok
        assert result.buckets == []
        assert result.attempts == 1

    async def test_sensor_cap(self):
        store = five_sensor_store()
        pipeline = create_sensor_series_pipeline(store=store, max_sensors=3)

        results = await pipeline.build_series(["1", "2", "3", "4", "5"], DAY, rank=False)

        assert [r.error for r in results[3:]] == [SENSOR_LIMIT_ERROR, SENSOR_LIMIT_ERROR]
        assert all(r.ok for r in results[:3])
        assert {call[0] for call in store.calls} == {"1", "2", "3"}

    async def test_readings_of_other_sensors_are_ignored(self):
        class LeakyStore:
            async def fetch_readings(self, sensor_id, start, end, page, page_size):
                return ReadingPage(readings=hourly(sensor_id, 1.0) + hourly("other", 500.0))

        pipeline = SensorSeriesPipeline(LeakyStore())

        (result,) = await pipeline.build_series(["1"], DAY)

        assert result.summary.mean == 1.0
        assert result.summary.sample_count == 24

    async def test_build_trend_merges_sensors(self):
        store = five_sensor_store(fail_always={"2"})
        pipeline = SensorSeriesPipeline(store)

        trend = await pipeline.build_trend(["1", "2", "3"], DAY)

        assert trend.bucket_minutes == 15
        assert len(trend.series) == 3
        assert len(trend.buckets) == 24
        assert all(b.average == pytest.approx(20.0) for b in trend.buckets)
        assert all(b.sample_count == 2 for b in trend.buckets)

    async def test_process_series_uses_monitoring_window(self):
        readings = hourly("1", 7.0, hours=24 * 6, start=START - timedelta(days=1))
        store = InMemoryReadingStore(readings)
        calculator = ProcessLifecycleCalculator(FixedClock(date(2024, 5, 3)))
        pipeline = SensorSeriesPipeline(store, calculator=calculator)
        process = CultivationProcess("p-1", date(2024, 5, 1), date(2024, 6, 30))

        (result,) = await pipeline.build_process_series(process, ["1"])

        window = calculator.process_window(process)
        assert window.start == START
        assert window.end == START + timedelta(days=3)
        # Readings from 05-01 00:00 through 05-04 00:00 inclusive
        assert result.summary.sample_count == 73
        assert all(window.start <= b.window_start <= window.end for b in result.buckets)

    async def test_process_not_started(self):
        calculator = ProcessLifecycleCalculator(FixedClock(date(2024, 4, 1)))
        pipeline = SensorSeriesPipeline(InMemoryReadingStore(), calculator=calculator)
        process = CultivationProcess("p-1", date(2024, 5, 1), date(2024, 6, 30))

        with pytest.raises(InvalidRange):
            await pipeline.build_process_series(process, ["1"])

    async def test_http_store_end_to_end(self):
        def handler(request: httpx.Request) -> httpx.Response:
            sensor_id = request.url.params["sensorInstaladoId"]
            if sensor_id == "2":
                return httpx.Response(500, json={"error": "database unavailable"})
            page = int(request.url.params["page"])
            rows = [
                {
                    "id_sensor_instalado": int(sensor_id),
                    "timestamp": (START + timedelta(hours=h)).isoformat(),
                    "valor": float(sensor_id) + h % 2,
                }
                for h in range((page - 1) * 12, page * 12)
            ]
            return httpx.Response(
                200, json={"data": rows, "pagination": {"page": page, "limit": 12, "totalPages": 2}}
            )

        store = HttpReadingStore(base_url="http://store.test", transport=httpx.MockTransport(handler))
        pipeline = create_sensor_series_pipeline(store=store, page_size=12)

        results = await pipeline.build_series(["1", "2", "3"], DAY)

        assert [r.sensor_id for r in results] == ["3", "1", "2"]
        assert results[0].summary.mean == pytest.approx(3.5)
        assert results[0].summary.sample_count == 24
        assert "database unavailable" in results[2].error
        assert results[2].attempts == 2

    async def test_null_value_only_drops_that_reading(self):
        rows = [
            {"id_sensor_instalado": 1, "timestamp": (START + timedelta(hours=h)).isoformat(), "valor": 8.0}
            for h in range(24)
        ]
        rows[3]["valor"] = None

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": rows, "pagination": {"page": 1, "totalPages": 1}})

        store = HttpReadingStore(base_url="http://store.test", transport=httpx.MockTransport(handler))
        pipeline = SensorSeriesPipeline(store)

        (result,) = await pipeline.build_series(["1"], DAY)

        assert result.ok
        assert result.attempts == 1
        assert result.used_fallback is False
        assert len(result.buckets) == 23
        assert result.summary.mean == 8.0


def test_module_examples_run_as_doctests():
    failures, _ = doctest.testmod(sensor_series_pipeline)
    assert failures == 0


def test_run_outside_event_loop():
    store = five_sensor_store()
    pipeline = SensorSeriesPipeline(store, SensorSeriesConfig(concurrency_limit=2))

    results = pipeline.run(["1", "2"], DAY)

    assert [r.sensor_id for r in results] == ["2", "1"]
    assert store.max_in_flight <= 2
