"""Loguru setup for aquacycle.

Records carry a ``component`` extra (lifecycle, pipeline, store, cli).
Sinks:

- stderr, colored, for interactive use
- ``aquacycle.jsonl`` with every record, serialized
- ``{component}.jsonl`` per component
- ``errors.jsonl`` with WARNING and above, where failed sensor fetches
  and store write failures end up

Library modules only bind component loggers; ``configure_loguru`` is
called by the CLI or by the embedding application.
"""

from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

__all__ = [
    "COMPONENTS",
    "configure_loguru",
    "get_logger",
    "timing_context",
]

COMPONENTS = ("lifecycle", "pipeline", "store", "cli")
DEFAULT_COMPONENT = "aquacycle"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "<level>{message}</level>"
)


def configure_loguru(
    *,
    log_dir: Path | str | None = None,
    level: str = "INFO",
    rotation: str = "20 MB",
    retention: str = "14 days",
    compression: str = "zip",
    enable_console: bool = True,
) -> None:
    """Replace all loguru sinks with the aquacycle ones.

    Parameters
    ----------
    log_dir
        Directory for the JSONL files; console only when None
    level
        Minimum level for every sink (``errors.jsonl`` never goes below WARNING)
    rotation, retention, compression
        Passed to loguru for the file sinks
    enable_console
        Log to stderr (disabled for ``--json`` output)
    """
    logger.remove()

    if enable_console:
        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            diagnose=False,
            filter=_with_component_default,
        )

    if log_dir is None:
        return

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    def add_jsonl(name: str, sink_level: str, record_filter: Callable[[Any], bool] | None = None) -> None:
        logger.add(
            log_dir / f"{name}.jsonl",
            level=sink_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            serialize=True,
            enqueue=True,
            filter=record_filter,
        )

    add_jsonl(DEFAULT_COMPONENT, level)
    for component in COMPONENTS:
        add_jsonl(component, level, _component_filter(component))
    add_jsonl("errors", _at_least_warning(level))

    logger.bind(component="cli").debug("Log sinks installed", log_dir=str(log_dir), level=level)


def _with_component_default(record: Any) -> bool:
    record["extra"].setdefault("component", DEFAULT_COMPONENT)
    return True


def _component_filter(component: str) -> Callable[[Any], bool]:
    return lambda record: record["extra"].get("component") == component


def _at_least_warning(level: str) -> str:
    if logger.level(level.upper()).no >= logger.level("WARNING").no:
        return level.upper()
    return "WARNING"


def get_logger(component: str = DEFAULT_COMPONENT) -> Any:
    """Loguru logger bound to ``component``."""
    return logger.bind(component=component)


@contextmanager
def timing_context(
    operation: str,
    *,
    component: str = DEFAULT_COMPONENT,
    trace_id: str | None = None,
    **metadata: Any,
) -> Generator[dict[str, Any], None, None]:
    """Log START and END records around a block, with ``duration_ms`` on END.

    Keys the block stores in the yielded dict are added to the END record.

    Example
    -------
    >>> with timing_context("build_series", component="pipeline", trace_id="abc") as ctx:
    ...     ctx["sensors"] = 5
    """
    started = time.perf_counter()
    bound = logger.bind(component=component, operation=operation, trace_id=trace_id)

    context: dict[str, Any] = {}
    bound.debug("START: " + operation, phase="start", **metadata)
    try:
        yield context
    finally:
        bound.debug(
            "END: " + operation,
            phase="end",
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
            **{**metadata, **context},
        )
