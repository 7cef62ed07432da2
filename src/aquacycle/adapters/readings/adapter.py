"""Reading store protocol.

A reading store serves raw readings of one installed sensor, page by
page. Implementations:

- HttpReadingStore: remote readings API over httpx
- InMemoryReadingStore: fixtures and failure injection for tests
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ...timeseries.models import ReadingPage

__all__ = ["ReadingStore"]


class ReadingStore(Protocol):
    """Source of raw readings."""

    async def fetch_readings(
        self,
        sensor_id: str,
        start: datetime | None,
        end: datetime | None,
        page: int,
        page_size: int,
    ) -> ReadingPage:
        """Fetch one page of readings of a sensor.

        Parameters
        ----------
        sensor_id
            Installed sensor identifier
        start, end
            Range filter; None means unbounded on that side (relaxed query)
        page
            1-based page number
        page_size
            Maximum readings per page

        Returns
        -------
        ReadingPage
            Readings of the page and whether more pages follow

        Raises
        ------
        FetchFailure
            On transport errors, error statuses or malformed payloads
        """
        ...
