"""Core components: lifecycle rules, process codes, clock and errors."""

from .errors import (
    AggregationInconsistency,
    AquacycleError,
    FetchFailure,
    InvalidExtension,
    InvalidRange,
    NotExtendable,
    ProcessNotFound,
    ProcessStoreError,
)
from .lifecycle import (
    CultivationProcess,
    DateRange,
    ProcessLifecycleCalculator,
    ProcessState,
    ProcessView,
    apply_extension,
    derive_process_view,
    process_state,
    progress_percent,
    validate_date_range,
)
from .process_codes import ProcessCode, generate_process_code, parse_process_code
from .process_service import ProcessService
from .time import Clock, FixedClock, SystemClock, format_duration

__all__ = [
    "AggregationInconsistency",
    "AquacycleError",
    "Clock",
    "CultivationProcess",
    "DateRange",
    "FetchFailure",
    "FixedClock",
    "InvalidExtension",
    "InvalidRange",
    "NotExtendable",
    "ProcessCode",
    "ProcessLifecycleCalculator",
    "ProcessNotFound",
    "ProcessService",
    "ProcessState",
    "ProcessStoreError",
    "ProcessView",
    "SystemClock",
    "apply_extension",
    "derive_process_view",
    "format_duration",
    "generate_process_code",
    "parse_process_code",
    "process_state",
    "progress_percent",
    "validate_date_range",
]
