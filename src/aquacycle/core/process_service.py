"""Process operations over a process store."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from ..observability import get_logger
from .errors import AquacycleError, ProcessStoreError
from .lifecycle import ProcessLifecycleCalculator, ProcessView

if TYPE_CHECKING:
    from ..adapters.processes import ProcessStore

__all__ = ["ProcessService"]

log = get_logger("lifecycle")


class ProcessService:
    """Reads processes and records extensions through a ProcessStore.

    Every request is validated by the calculator before the store is
    written, so a rejected extension never leaves a partial update.
    """

    def __init__(self, store: ProcessStore, calculator: ProcessLifecycleCalculator | None = None) -> None:
        self.store = store
        self.calculator = calculator or ProcessLifecycleCalculator()

    def get_view(self, process_id: str, now: datetime | date | None = None) -> ProcessView:
        process = self.store.get_process(process_id)
        return self.calculator.derive_process_view(process, now)

    def extend(
        self,
        process_id: str,
        additional_days: int,
        reason: str,
        now: datetime | date | None = None,
    ) -> ProcessView:
        """Extend a completed process and return its new view.

        Raises
        ------
        ProcessNotFound
            If the store has no such process
        InvalidExtension, NotExtendable
            If the request is rejected by the lifecycle rules
        ProcessStoreError
            If the store fails to record the extension
        """
        process = self.store.get_process(process_id)
        extended = self.calculator.apply_extension(process, additional_days, reason, now)

        try:
            stored = self.store.save_extension(process_id, additional_days, extended.extension_reason or "")
        except AquacycleError:
            raise
        except Exception as exc:
            log.error("Saving extension failed", process_id=process_id, error=str(exc))
            raise ProcessStoreError(f"Could not save extension for process {process_id}: {exc}") from exc

        return self.calculator.derive_process_view(stored, now)
