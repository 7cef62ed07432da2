"""HTTP reading store over the readings REST API.

Endpoint: ``GET {base_url}/api/lecturas`` with query parameters
``sensorInstaladoId``, ``page``, ``limit`` and optional ``desde``/``hasta``.
The response is a paginated envelope::

    {"data": [...], "pagination": {"page": 1, "limit": 500, "total": 1234, "totalPages": 3}}

Readings carry either an absolute ``timestamp`` or a ``fecha``/``hora``
pair in the store's local timezone.
"""

from __future__ import annotations

import math
from datetime import datetime, time
from typing import Any

import httpx

from ...core.errors import FetchFailure
from ...core.time import format_utc_iso8601, parse_utc_iso8601, resolve_timezone
from ...observability import get_logger
from ...timeseries.models import RawReading, ReadingPage

__all__ = ["HttpReadingStore"]

log = get_logger("store")


class HttpReadingStore:
    """Reading store backed by the readings API.

    Example:
        store = HttpReadingStore(base_url="http://localhost:3001", timezone_name="America/Mexico_City")
        page = await store.fetch_readings("12", start, end, page=1, page_size=500)
    """

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:3001",
        timeout: float = 15.0,
        timezone_name: str = "UTC",
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP reading store.

        Parameters
        ----------
        base_url
            API base URL
        timeout
            Request timeout in seconds
        timezone_name
            Timezone of ``fecha``/``hora`` readings
        headers
            Extra request headers (e.g. Authorization)
        client
            Shared client; when omitted a client is opened per request
        transport
            Transport for per-request clients (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.tz = resolve_timezone(timezone_name)
        self.headers = dict(headers or {})
        self._client = client
        self._transport = transport

    def _params(
        self,
        sensor_id: str,
        start: datetime | None,
        end: datetime | None,
        page: int,
        page_size: int,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "sensorInstaladoId": sensor_id,
            "page": page,
            "limit": page_size,
        }
        if start is not None:
            params["desde"] = format_utc_iso8601(start)
        if end is not None:
            params["hasta"] = format_utc_iso8601(end)
        return params

    async def _get(self, params: dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/api/lecturas"
        if self._client is not None:
            return await self._client.get(url, params=params, headers=self.headers, timeout=self.timeout)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.get(url, params=params, headers=self.headers)

    async def fetch_readings(
        self,
        sensor_id: str,
        start: datetime | None,
        end: datetime | None,
        page: int,
        page_size: int,
    ) -> ReadingPage:
        """Fetch one page of readings (see ReadingStore)."""
        sensor_id = str(sensor_id)
        params = self._params(sensor_id, start, end, page, page_size)

        try:
            response = await self._get(params)
        except httpx.TimeoutException as e:
            raise FetchFailure(
                f"Readings request for sensor {sensor_id} timed out after {self.timeout}s",
                sensor_id=sensor_id,
            ) from e
        except httpx.ConnectError as e:
            raise FetchFailure(f"Reading store not available: {e}", sensor_id=sensor_id) from e
        except httpx.HTTPError as e:
            raise FetchFailure(f"Reading store HTTP error: {e}", sensor_id=sensor_id) from e

        if response.status_code >= 400:
            error_msg = response.text
            try:
                error_data = response.json()
                if isinstance(error_data, dict):
                    error_msg = error_data.get("error", error_msg)
            except ValueError:
                pass
            raise FetchFailure(
                f"Reading store error ({response.status_code}): {error_msg}",
                sensor_id=sensor_id,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchFailure(f"Reading store returned invalid JSON: {e}", sensor_id=sensor_id) from e

        result = self._parse_page(payload, sensor_id, page)
        log.debug(
            "Fetched readings page",
            sensor_id=sensor_id,
            page=page,
            has_more=result.has_more,
        )
        return result

    def _parse_page(self, payload: Any, sensor_id: str, page: int) -> ReadingPage:
        if isinstance(payload, list):
            # Unpaginated listing
            items, has_more = payload, False
        elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
            items = payload["data"]
            pagination = payload.get("pagination") or {}
            try:
                total_pages = int(pagination.get("totalPages", page))
            except (TypeError, ValueError) as e:
                raise FetchFailure(f"Malformed pagination: {pagination!r}", sensor_id=sensor_id) from e
            has_more = page < total_pages
        else:
            raise FetchFailure(f"Unexpected readings payload for sensor {sensor_id}", sensor_id=sensor_id)

        readings = [self._parse_reading(item, sensor_id) for item in items]
        return ReadingPage(readings=readings, has_more=has_more)

    def _parse_reading(self, item: Any, default_sensor_id: str) -> RawReading:
        if not isinstance(item, dict):
            raise FetchFailure(f"Malformed reading: {item!r}", sensor_id=default_sensor_id)

        raw_sensor = item.get("id_sensor_instalado", item.get("sensor_instalado_id", default_sensor_id))
        raw_value = item.get("valor", item.get("promedio"))

        try:
            timestamp = self._parse_timestamp(item)
        except (TypeError, ValueError) as e:
            raise FetchFailure(f"Malformed reading: {item!r}", sensor_id=default_sensor_id) from e

        # Unusable values become NaN; aggregate() excludes them one by one
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            value = math.nan

        sample_count = item.get("muestras")
        if sample_count is not None:
            try:
                numeric = float(sample_count)
            except (TypeError, ValueError):
                numeric = math.nan
            sample_count = int(numeric) if math.isfinite(numeric) else None

        return RawReading(
            sensor_id=str(raw_sensor),
            timestamp=timestamp,
            value=value,
            sample_count=sample_count,
        )

    def _parse_timestamp(self, item: dict[str, Any]) -> datetime:
        for key in ("timestamp", "tomada_en"):
            if item.get(key):
                return parse_utc_iso8601(str(item[key]))

        fecha, hora = item.get("fecha"), item.get("hora")
        if not fecha:
            raise ValueError("reading has no timestamp")

        # fecha and hora may come back as full ISO datetimes (1970-01-01T08:30:00.000Z)
        day = datetime.fromisoformat(str(fecha)[:10]).date()
        clock = time(0, 0)
        if hora:
            clock_text = str(hora).split("T")[-1][:8]
            clock = time.fromisoformat(clock_text)
        return datetime.combine(day, clock, tzinfo=self.tz)
