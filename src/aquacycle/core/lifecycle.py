"""Cultivation process lifecycle.

Derives state, progress and remaining duration of a cultivation cycle
from its calendar dates, and guards how a cycle may be extended.

States: planned → active → completed → extended

- planned: today < start_date
- active: start_date <= today <= start_date + total_days
- completed: past the end boundary and never extended
- extended: extension_days > 0 (stays extended until an external close)

planned → active and active → completed are clock driven. completed →
extended only happens through ``apply_extension``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

from ..observability import get_logger
from .errors import InvalidExtension, InvalidRange, NotExtendable
from .time import Clock, FixedClock, SystemClock, add_days, clamp, days_between, ensure_timezone, start_of_day, to_date

__all__ = [
    "MAX_EXTENSION_DAYS",
    "MAX_PROCESS_DAYS",
    "MAX_REASON_LENGTH",
    "MIN_PROCESS_DAYS",
    "CultivationProcess",
    "DateRange",
    "ProcessLifecycleCalculator",
    "ProcessState",
    "ProcessView",
    "apply_extension",
    "derive_process_view",
    "process_state",
    "progress_percent",
    "validate_date_range",
]

MIN_PROCESS_DAYS = 30
MAX_PROCESS_DAYS = 730
MAX_EXTENSION_DAYS = 180
MAX_REASON_LENGTH = 200

log = get_logger("lifecycle")


class ProcessState(str, Enum):
    """Cultivation process states."""

    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    EXTENDED = "extended"


@dataclass(frozen=True)
class CultivationProcess:
    """One bounded-time production run on an installation.

    Attributes
    ----------
    id
        Opaque process identifier
    start_date, end_date
        Calendar dates of the original plan (end_date excludes extensions)
    species_id, facility_id
        Foreign references, opaque here
    extension_days
        Accumulated extension days (0 if never extended)
    extension_reason
        Reason of the latest extension, required when extension_days > 0
    """

    id: str
    start_date: date
    end_date: date
    species_id: str | None = None
    facility_id: str | None = None
    extension_days: int = 0
    extension_reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", to_date(self.start_date))
        object.__setattr__(self, "end_date", to_date(self.end_date))

        if self.end_date <= self.start_date:
            raise InvalidRange(
                f"Process {self.id}: end date {self.end_date} must be after start date {self.start_date}"
            )
        if self.extension_days < 0:
            raise InvalidExtension(f"Process {self.id}: extension_days cannot be negative")
        if self.extension_days > 0 and not (self.extension_reason or "").strip():
            raise InvalidExtension(f"Process {self.id}: extension_reason is required for extended processes")

    @property
    def original_days(self) -> int:
        """Planned span in days, before extensions."""
        return days_between(self.start_date, self.end_date)

    @property
    def total_days(self) -> int:
        """Planned span plus accumulated extensions."""
        return self.original_days + self.extension_days

    @property
    def extended_end_date(self) -> date:
        """End date including extensions."""
        return add_days(self.end_date, self.extension_days)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["start_date"] = self.start_date.isoformat()
        data["end_date"] = self.end_date.isoformat()
        return data


@dataclass(frozen=True)
class DateRange:
    """Closed time window ``[start, end]`` of absolute instants.

    Naive datetimes are taken as UTC. ``end`` must be after ``start``.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", ensure_timezone(self.start))
        object.__setattr__(self, "end", ensure_timezone(self.end))
        if self.end <= self.start:
            raise InvalidRange(f"Range end {self.end.isoformat()} must be after start {self.start.isoformat()}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= ensure_timezone(instant) <= self.end


@dataclass(frozen=True)
class ProcessView:
    """Derived, never stored, view of a process at a given day."""

    process_id: str
    state: ProcessState
    total_days: int
    days_elapsed: int
    days_remaining: int
    progress_percent: int
    original_days: int
    extension_days: int
    end_date: date
    can_extend: bool

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["end_date"] = self.end_date.isoformat()
        return data


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ProcessLifecycleCalculator:
    """Date arithmetic rules for cultivation processes.

    All arithmetic works on calendar dates: an instant is reduced to the
    clock's calendar day before it is compared with process dates.

    Example:
        >>> calc = ProcessLifecycleCalculator(FixedClock(date(2024, 2, 15)))
        >>> process = CultivationProcess("p-1", date(2024, 1, 1), date(2024, 3, 31))
        >>> calc.derive_process_view(process).state
        <ProcessState.ACTIVE: 'active'>
    """

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        min_days: int = MIN_PROCESS_DAYS,
        max_days: int = MAX_PROCESS_DAYS,
        max_extension_days: int = MAX_EXTENSION_DAYS,
        max_reason_length: int = MAX_REASON_LENGTH,
    ) -> None:
        self.clock = clock or SystemClock()
        self.min_days = min_days
        self.max_days = max_days
        self.max_extension_days = max_extension_days
        self.max_reason_length = max_reason_length

    # ------------------------------------------------------------------
    # Clock helpers
    # ------------------------------------------------------------------

    def now(self, now: datetime | date | None = None) -> datetime:
        """Resolve an optional "now" against the injected clock."""
        if now is None:
            return self.clock.now()
        if not isinstance(now, datetime):
            return start_of_day(now, self.clock.tz)
        return ensure_timezone(now, self.clock.tz)

    def today(self, now: datetime | date | None = None) -> date:
        return to_date(self.now(now), self.clock.tz)

    # ------------------------------------------------------------------
    # Derivations
    # ------------------------------------------------------------------

    def state(self, process: CultivationProcess, now: datetime | date | None = None) -> ProcessState:
        """Current lifecycle state of ``process``."""
        if process.extension_days > 0:
            return ProcessState.EXTENDED

        today = self.today(now)
        if today < process.start_date:
            return ProcessState.PLANNED
        if today <= add_days(process.start_date, process.total_days):
            return ProcessState.ACTIVE
        return ProcessState.COMPLETED

    def days_elapsed(self, process: CultivationProcess, now: datetime | date | None = None) -> int:
        elapsed = days_between(process.start_date, self.today(now))
        return clamp(elapsed, 0, process.total_days)

    def progress_percent(self, process: CultivationProcess, now: datetime | date | None = None) -> int:
        """Progress in [0, 100], rounded half up."""
        today = self.today(now)
        if today <= process.start_date:
            return 0
        if today >= add_days(process.start_date, process.total_days):
            return 100

        elapsed = self.days_elapsed(process, today)
        return clamp(_round_half_up(100 * elapsed / process.total_days), 0, 100)

    def can_extend(self, process: CultivationProcess, now: datetime | date | None = None) -> bool:
        return self.state(process, now) is ProcessState.COMPLETED

    def derive_process_view(self, process: CultivationProcess, now: datetime | date | None = None) -> ProcessView:
        """Compute the presentation view of ``process`` at ``now``."""
        today = self.today(now)
        elapsed = self.days_elapsed(process, today)
        return ProcessView(
            process_id=process.id,
            state=self.state(process, today),
            total_days=process.total_days,
            days_elapsed=elapsed,
            days_remaining=max(0, process.total_days - elapsed),
            progress_percent=self.progress_percent(process, today),
            original_days=process.original_days,
            extension_days=process.extension_days,
            end_date=process.extended_end_date,
            can_extend=self.can_extend(process, today),
        )

    def process_window(self, process: CultivationProcess, now: datetime | date | None = None) -> DateRange:
        """Monitoring window of ``process``: start day up to today or its end.

        Raises
        ------
        InvalidRange
            If the process has not started yet
        """
        today = self.today(now)
        if today < process.start_date:
            raise InvalidRange(f"Process {process.id} starts on {process.start_date}, no readings window yet")

        last_day = min(today, process.extended_end_date)
        return DateRange(
            start=start_of_day(process.start_date, self.clock.tz),
            end=start_of_day(add_days(last_day, 1), self.clock.tz),
        )

    # ------------------------------------------------------------------
    # Validation and mutation
    # ------------------------------------------------------------------

    def validate_date_range(self, start_date: date | datetime, end_date: date | datetime) -> int:
        """Validate the dates of a new process.

        Returns
        -------
        int
            Span in days

        Raises
        ------
        InvalidRange
            If end <= start, the span is outside [min_days, max_days] or
            the start date is before today
        """
        start = to_date(start_date, self.clock.tz)
        end = to_date(end_date, self.clock.tz)

        if end <= start:
            raise InvalidRange(f"End date {end} must be after start date {start}")

        span = days_between(start, end)
        if span < self.min_days:
            raise InvalidRange(f"Process must last at least {self.min_days} days (got {span})")
        if span > self.max_days:
            raise InvalidRange(f"Process cannot last more than {self.max_days} days (got {span})")

        today = self.today()
        if start < today:
            raise InvalidRange(f"Start date {start} cannot be in the past (today is {today})")

        return span

    def create_process(
        self,
        process_id: str,
        start_date: date | datetime,
        end_date: date | datetime,
        *,
        species_id: str | None = None,
        facility_id: str | None = None,
    ) -> CultivationProcess:
        """Build a new process after validating its date range."""
        span = self.validate_date_range(start_date, end_date)
        process = CultivationProcess(
            id=process_id,
            start_date=to_date(start_date, self.clock.tz),
            end_date=to_date(end_date, self.clock.tz),
            species_id=species_id,
            facility_id=facility_id,
        )
        log.info("Process created", process_id=process_id, span_days=span)
        return process

    def validate_extension(self, additional_days: int, reason: str | None) -> str:
        """Check an extension request and return the trimmed reason.

        Raises
        ------
        InvalidExtension
            If days are not a positive integer within the limit, or the
            reason is empty or too long
        """
        if isinstance(additional_days, bool) or not isinstance(additional_days, int):
            raise InvalidExtension(f"Additional days must be an integer, got {additional_days!r}")
        if additional_days <= 0:
            raise InvalidExtension("Additional days must be greater than 0")
        if additional_days > self.max_extension_days:
            raise InvalidExtension(f"Additional days cannot exceed {self.max_extension_days}")

        cleaned = (reason or "").strip()
        if not cleaned:
            raise InvalidExtension("An extension reason is required")
        if len(cleaned) > self.max_reason_length:
            raise InvalidExtension(f"Extension reason cannot exceed {self.max_reason_length} characters")
        return cleaned

    def apply_extension(
        self,
        process: CultivationProcess,
        additional_days: int,
        reason: str | None,
        now: datetime | date | None = None,
    ) -> CultivationProcess:
        """Extend a completed process.

        Repeated calls accumulate; guarding against double submission is
        the caller's job.

        Returns
        -------
        CultivationProcess
            Updated process (the input value is left untouched)

        Raises
        ------
        InvalidExtension
            If the request is malformed
        NotExtendable
            If the process is not in the completed state
        """
        cleaned = self.validate_extension(additional_days, reason)

        current = self.state(process, now)
        if current is not ProcessState.COMPLETED:
            raise NotExtendable(f"Process {process.id} is {current.value}; only completed processes can be extended")

        extended = replace(
            process,
            extension_days=process.extension_days + additional_days,
            extension_reason=cleaned,
        )
        log.info(
            "Process extended",
            process_id=process.id,
            additional_days=additional_days,
            total_days=extended.total_days,
        )
        return extended


def _calculator(now: datetime | date | None) -> ProcessLifecycleCalculator:
    if now is None:
        return ProcessLifecycleCalculator()
    tz = now.tzinfo if isinstance(now, datetime) else None
    return ProcessLifecycleCalculator(FixedClock(now, tz or timezone.utc))


def process_state(process: CultivationProcess, now: datetime | date | None = None) -> ProcessState:
    return _calculator(now).state(process)


def progress_percent(process: CultivationProcess, now: datetime | date | None = None) -> int:
    return _calculator(now).progress_percent(process)


def derive_process_view(process: CultivationProcess, now: datetime | date | None = None) -> ProcessView:
    """Derive the view of ``process`` at ``now`` (wall clock if None)."""
    return _calculator(now).derive_process_view(process)


def apply_extension(
    process: CultivationProcess,
    additional_days: int,
    reason: str | None,
    now: datetime | date | None = None,
) -> CultivationProcess:
    return _calculator(now).apply_extension(process, additional_days, reason)


def validate_date_range(
    start_date: date | datetime,
    end_date: date | datetime,
    *,
    today: date | None = None,
) -> int:
    """Validate the dates of a new process against ``today``."""
    return _calculator(today).validate_date_range(start_date, end_date)
