"""CLI commands for downsampled sensor series."""

from __future__ import annotations

from dataclasses import replace

import click

from ..adapters.readings import HttpReadingStore
from ..core.errors import FetchFailure
from ..core.lifecycle import DateRange
from ..core.time import parse_instant
from ..pipelines.sensor_series_pipeline import SensorSeriesPipeline, SeriesResult
from .cli_common import CLIContext, cli_command, handle_cli_error, handle_cli_success

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="Downsampled sensor series from the reading store",
)
def cli() -> None:
    """Root command for sensor series."""


def _describe(result: SeriesResult) -> str:
    if not result.ok:
        return f"sensor {result.sensor_id}: error: {result.error}"
    if not result.buckets:
        return f"sensor {result.sensor_id}: no readings"
    summary = result.summary
    fallback = " (relaxed query)" if result.used_fallback else ""
    return (
        f"sensor {result.sensor_id}: {len(result.buckets)} buckets, "
        f"mean {summary.mean:.2f}, min {summary.minimum:.2f}, max {summary.maximum:.2f}{fallback}"
    )


@cli.command("build")
@click.argument("sensor_ids", nargs=-1, required=True)
@click.option("--from", "start", required=True, help="Range start (YYYY-MM-DD or ISO datetime)")
@click.option("--to", "end", required=True, help="Range end (YYYY-MM-DD or ISO datetime)")
@click.option("--target-points", type=int, help="Points per series (default from settings)")
@click.option("--concurrency", type=int, help="Parallel sensor fetches (default from settings)")
@click.option("--store-url", type=str, help="Readings API base URL (default from settings)")
@click.option("--no-rank", is_flag=True, help="Keep the requested sensor order")
@cli_command
def build_command(
    ctx: CLIContext,
    sensor_ids: tuple[str, ...],
    start: str,
    end: str,
    target_points: int | None,
    concurrency: int | None,
    store_url: str | None,
    no_rank: bool,
) -> int:
    """Build downsampled series for SENSOR_IDS over a date range."""
    cmd = "series.build"
    try:
        settings = ctx.settings
        date_range = DateRange(
            start=parse_instant(start, settings.timezone),
            end=parse_instant(end, settings.timezone),
        )

        config = settings.pipeline_config()
        if concurrency is not None:
            config = replace(config, concurrency_limit=concurrency)

        store = HttpReadingStore(
            base_url=store_url or settings.store_url,
            timeout=settings.fetch_timeout,
            timezone_name=settings.timezone,
        )
        pipeline = SensorSeriesPipeline(store, config)
        results = pipeline.run(list(sensor_ids), date_range, target_points, rank=not no_rank)

        failed = [r for r in results if not r.ok]
        if failed and len(failed) == len(results):
            raise FetchFailure(f"All {len(results)} sensor fetches failed: {failed[0].error}")

        meta = {"sensors": len(results), "failed": len(failed)}
        if ctx.json_output:
            return handle_cli_success(ctx, [r.to_dict() for r in results], cmd, meta=meta)
        return handle_cli_success(ctx, [_describe(r) for r in results], cmd, meta=meta)
    except Exception as exc:
        return handle_cli_error(ctx, exc, cmd)
