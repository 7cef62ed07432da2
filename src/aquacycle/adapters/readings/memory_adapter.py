"""In-memory reading store for tests and demos."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime

from ...core.errors import FetchFailure
from ...core.time import ensure_timezone
from ...timeseries.models import RawReading, ReadingPage

__all__ = ["InMemoryReadingStore"]


class InMemoryReadingStore:
    """Reading store holding readings in a dict keyed by sensor id.

    Failure injection:

    - ``fail_always``: sensors whose every fetch raises FetchFailure
    - ``fail_filtered``: sensors failing only date-filtered queries, so a
      relaxed (unfiltered) retry succeeds
    - ``latency``: seconds to sleep per fetch

    The store records every call in ``calls`` and tracks the peak number
    of concurrent fetches in ``max_in_flight``.
    """

    def __init__(
        self,
        readings: Iterable[RawReading] = (),
        *,
        fail_always: Iterable[str] = (),
        fail_filtered: Iterable[str] = (),
        latency: float = 0.0,
    ) -> None:
        self._readings: dict[str, list[RawReading]] = {}
        self.add(readings)
        self.fail_always = {str(s) for s in fail_always}
        self.fail_filtered = {str(s) for s in fail_filtered}
        self.latency = latency
        self.calls: list[tuple[str, datetime | None, datetime | None, int, int]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, readings: Iterable[RawReading]) -> None:
        for reading in readings:
            self._readings.setdefault(reading.sensor_id, []).append(reading)
        for sensor_readings in self._readings.values():
            sensor_readings.sort(key=lambda r: r.timestamp)

    async def fetch_readings(
        self,
        sensor_id: str,
        start: datetime | None,
        end: datetime | None,
        page: int,
        page_size: int,
    ) -> ReadingPage:
        sensor_id = str(sensor_id)
        self.calls.append((sensor_id, start, end, page, page_size))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)

            if sensor_id in self.fail_always:
                raise FetchFailure(f"Injected failure for sensor {sensor_id}", sensor_id=sensor_id)
            if sensor_id in self.fail_filtered and (start is not None or end is not None):
                raise FetchFailure(f"Injected filtered-query failure for sensor {sensor_id}", sensor_id=sensor_id)

            selected = [
                r
                for r in self._readings.get(sensor_id, [])
                if (start is None or r.timestamp >= ensure_timezone(start))
                and (end is None or r.timestamp <= ensure_timezone(end))
            ]
        finally:
            self.in_flight -= 1

        offset = (page - 1) * page_size
        chunk = selected[offset : offset + page_size]
        return ReadingPage(readings=chunk, has_more=offset + page_size < len(selected))
