"""Common CLI utilities: JSON output, stable exit codes, settings and logging setup."""

from __future__ import annotations

import functools
import json
import traceback
import uuid
from enum import IntEnum
from typing import Any

import click

from ..config.settings import ConfigError, Settings
from ..core.errors import (
    FetchFailure,
    InvalidExtension,
    InvalidRange,
    NotExtendable,
    ProcessNotFound,
    ProcessStoreError,
)
from ..observability import configure_loguru, get_logger

log = get_logger("cli")


class ExitCode(IntEnum):
    """Stable exit codes for CLI commands."""

    SUCCESS = 0  # Successful execution
    VALIDATION_ERROR = 2  # Invalid range, invalid extension or bad input
    LIFECYCLE_ERROR = 4  # Process not in a state allowing the operation
    IO_ERROR = 5  # Reading or process store failure
    CONFIG_ERROR = 6  # Configuration error
    UNKNOWN_ERROR = 7  # Unknown/unexpected error


class CLIContext:
    """Context for CLI execution with JSON output and trace ID."""

    def __init__(
        self,
        json_output: bool = False,
        trace_id: str | None = None,
        verbose: bool = False,
        settings: Settings | None = None,
    ):
        self.json_output = json_output
        self.trace_id = trace_id or f"trace-{uuid.uuid4().hex[:12]}"
        self.verbose = verbose
        self.settings = settings or Settings()

    def output(
        self, data: Any, status: str = "success", error: str | None = None, meta: dict[str, Any] | None = None
    ) -> None:
        """Print a command result.

        JSON mode prints a single envelope on stdout:
        ``{"status", "trace_id", "data" | "error", "meta"}``.
        Text mode prints ``key: value`` lines for mappings and one line per
        item for lists; errors go to stderr.
        """
        if self.json_output:
            envelope: dict[str, Any] = {"status": status, "trace_id": self.trace_id}
            envelope["error" if error else "data"] = error or data
            if meta:
                envelope["meta"] = meta
            click.echo(json.dumps(envelope, ensure_ascii=False, indent=2, default=str))
            return

        if error:
            click.echo(f"❌ {error}", err=True)
            return

        if isinstance(data, dict):
            for key, value in data.items():
                click.echo(f"{key}: {value}")
        elif isinstance(data, list):
            for item in data:
                click.echo(f"  - {item}")
        else:
            click.echo(data)

        if meta:
            click.echo(", ".join(f"{key}={value}" for key, value in meta.items()))


def cli_command(func):
    """Decorator adding the common options and context to a command.

    Adds:
    - --json: JSON output mode
    - --trace-id: Trace ID for correlation
    - --verbose: Verbose output (DEBUG logs, tracebacks)
    - --env-file: .env file to load settings from

    Settings are loaded and loguru configured before the command runs;
    configuration errors end the command with ExitCode.CONFIG_ERROR.
    """

    @click.option("--json", "json_output", is_flag=True, help="Output as JSON (machine-readable)")
    @click.option("--trace-id", type=str, help="Trace ID for correlation")
    @click.option("--verbose", "-v", is_flag=True, help="Verbose output")
    @click.option("--env-file", type=click.Path(dir_okay=False), default=None, help="Settings .env file")
    @functools.wraps(func)
    def wrapper(
        json_output: bool,
        trace_id: str | None,
        verbose: bool,
        env_file: str | None,
        *args: Any,
        **kwargs: Any,
    ) -> int:
        ctx = CLIContext(json_output=json_output, trace_id=trace_id, verbose=verbose)
        try:
            ctx.settings = Settings.from_env(env_file)
        except ConfigError as exc:
            return handle_cli_error(ctx, exc, func.__name__)

        configure_loguru(
            log_dir=ctx.settings.log_dir,
            level="DEBUG" if verbose else ctx.settings.log_level,
            enable_console=not json_output,
        )
        return func(ctx, *args, **kwargs)

    return wrapper


def exit_code_for(exc: Exception) -> ExitCode:
    """Map an exception to its stable exit code."""
    if isinstance(exc, (InvalidRange, InvalidExtension, ValueError, click.BadParameter)):
        return ExitCode.VALIDATION_ERROR
    if isinstance(exc, NotExtendable):
        return ExitCode.LIFECYCLE_ERROR
    if isinstance(exc, (FetchFailure, ProcessNotFound, ProcessStoreError, OSError)):
        return ExitCode.IO_ERROR
    if isinstance(exc, ConfigError):
        return ExitCode.CONFIG_ERROR
    return ExitCode.UNKNOWN_ERROR


def handle_cli_error(ctx: CLIContext, exc: Exception, cmd: str) -> int:
    """Report an error and return the matching exit code."""
    exit_code = exit_code_for(exc)
    error_msg = str(exc)

    log.bind(trace_id=ctx.trace_id).error(
        "Command failed",
        command=cmd,
        error=error_msg,
        error_type=type(exc).__name__,
        exit_code=int(exit_code),
    )

    ctx.output(None, status="error", error=error_msg, meta={"exit_code": int(exit_code)})

    if ctx.verbose and not ctx.json_output:
        click.echo("\nTraceback:", err=True)
        click.echo(traceback.format_exc(), err=True)

    return int(exit_code)


def handle_cli_success(ctx: CLIContext, data: Any, cmd: str, meta: dict[str, Any] | None = None) -> int:
    """Report a result and return the success code."""
    log.bind(trace_id=ctx.trace_id).debug("Command succeeded", command=cmd)
    ctx.output(data, status="success", meta=meta)
    return int(ExitCode.SUCCESS)
