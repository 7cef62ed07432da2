"""CLI commands for cultivation process lifecycle."""

from __future__ import annotations

import click

from ..core.lifecycle import CultivationProcess, ProcessLifecycleCalculator
from ..core.process_codes import generate_process_code, parse_process_code
from ..core.time import FixedClock, SystemClock, format_duration, parse_date
from .cli_common import CLIContext, cli_command, handle_cli_error, handle_cli_success

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(
    context_settings=CONTEXT_SETTINGS,
    help="Cultivation process lifecycle: progress, validation and extensions",
)
def cli() -> None:
    """Root command for processes."""


def _calculator(ctx: CLIContext, today: str | None) -> ProcessLifecycleCalculator:
    tz = ctx.settings.timezone
    clock = FixedClock(parse_date(today), tz) if today else SystemClock(tz)
    return ProcessLifecycleCalculator(clock)


def _process(start: str, end: str, extension_days: int, reason: str | None) -> CultivationProcess:
    return CultivationProcess(
        id="cli",
        start_date=parse_date(start),
        end_date=parse_date(end),
        extension_days=extension_days,
        extension_reason=reason,
    )


@cli.command("view")
@click.option("--start", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--end", required=True, help="Planned end date (YYYY-MM-DD)")
@click.option("--extension-days", type=int, default=0, show_default=True, help="Days already extended")
@click.option("--reason", type=str, help="Reason of the existing extension")
@click.option("--today", type=str, help="Evaluate as of this date instead of the wall clock")
@cli_command
def view_command(
    ctx: CLIContext,
    start: str,
    end: str,
    extension_days: int,
    reason: str | None,
    today: str | None,
) -> int:
    """Show state, progress and remaining days of a process."""
    cmd = "process.view"
    try:
        calculator = _calculator(ctx, today)
        process = _process(start, end, extension_days, reason)
        view = calculator.derive_process_view(process)

        data = view.to_dict()
        data["duration"] = format_duration(view.total_days)
        return handle_cli_success(ctx, data, cmd)
    except Exception as exc:
        return handle_cli_error(ctx, exc, cmd)


@cli.command("validate")
@click.option("--start", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--end", required=True, help="Planned end date (YYYY-MM-DD)")
@click.option("--today", type=str, help="Validate as of this date instead of the wall clock")
@cli_command
def validate_command(ctx: CLIContext, start: str, end: str, today: str | None) -> int:
    """Check the dates of a new process (30 to 730 days, not in the past)."""
    cmd = "process.validate"
    try:
        calculator = _calculator(ctx, today)
        span = calculator.validate_date_range(parse_date(start), parse_date(end))
        data = {"valid": True, "span_days": span, "duration": format_duration(span)}
        return handle_cli_success(ctx, data, cmd)
    except Exception as exc:
        return handle_cli_error(ctx, exc, cmd)


@cli.command("extend")
@click.option("--start", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--end", required=True, help="Planned end date (YYYY-MM-DD)")
@click.option("--days", "additional_days", type=int, required=True, help="Days to add")
@click.option("--reason", required=True, help="Why the cycle is extended")
@click.option("--extension-days", type=int, default=0, show_default=True, help="Days already extended")
@click.option("--prior-reason", type=str, help="Reason of the existing extension")
@click.option("--today", type=str, help="Evaluate as of this date instead of the wall clock")
@cli_command
def extend_command(
    ctx: CLIContext,
    start: str,
    end: str,
    additional_days: int,
    reason: str,
    extension_days: int,
    prior_reason: str | None,
    today: str | None,
) -> int:
    """Extend a completed process and show the resulting view."""
    cmd = "process.extend"
    try:
        calculator = _calculator(ctx, today)
        process = _process(start, end, extension_days, prior_reason)
        extended = calculator.apply_extension(process, additional_days, reason)
        view = calculator.derive_process_view(extended)

        data = view.to_dict()
        data["extension_reason"] = extended.extension_reason
        data["duration"] = format_duration(view.total_days)
        return handle_cli_success(ctx, data, cmd)
    except Exception as exc:
        return handle_cli_error(ctx, exc, cmd)


@cli.command("code")
@click.argument("species")
@click.option("--start", required=True, help="Start date (YYYY-MM-DD)")
@click.option("--sequence", type=int, default=1, show_default=True, help="Sequence within the month (1-26)")
@cli_command
def code_command(ctx: CLIContext, species: str, start: str, sequence: int) -> int:
    """Generate the code of a process (e.g. 202501OSTA)."""
    cmd = "process.code"
    try:
        code = generate_process_code(species, parse_date(start), sequence)
        parsed = parse_process_code(code)
        data = {
            "code": code,
            "species_code": parsed.species_code if parsed else None,
            "sequence": parsed.sequence if parsed else None,
        }
        return handle_cli_success(ctx, data, cmd)
    except Exception as exc:
        return handle_cli_error(ctx, exc, cmd)
