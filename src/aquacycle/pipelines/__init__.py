"""Pipelines orchestrating stores, aggregation and concurrency."""

from .sensor_series_pipeline import (
    SensorSeriesConfig,
    SensorSeriesPipeline,
    SeriesResult,
    TrendResult,
    create_sensor_series_pipeline,
)

__all__ = [
    "SensorSeriesConfig",
    "SensorSeriesPipeline",
    "SeriesResult",
    "TrendResult",
    "create_sensor_series_pipeline",
]
