"""In-memory process store."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import replace

from ...core.errors import ProcessNotFound, ProcessStoreError
from ...core.lifecycle import CultivationProcess
from ...observability import get_logger

__all__ = ["InMemoryProcessStore"]

log = get_logger("store")


class InMemoryProcessStore:
    """Thread-safe process store backed by a dict.

    ``fail_writes`` makes every ``save_extension`` raise ProcessStoreError,
    which lets callers exercise the write-failure path.
    """

    def __init__(self, processes: Iterable[CultivationProcess] = (), *, fail_writes: bool = False) -> None:
        self._processes: dict[str, CultivationProcess] = {p.id: p for p in processes}
        self._lock = threading.Lock()
        self.fail_writes = fail_writes

    def add(self, process: CultivationProcess) -> None:
        with self._lock:
            self._processes[process.id] = process

    def get_process(self, process_id: str) -> CultivationProcess:
        with self._lock:
            try:
                return self._processes[process_id]
            except KeyError:
                raise ProcessNotFound(f"Process not found: {process_id}") from None

    def save_extension(self, process_id: str, additional_days: int, reason: str) -> CultivationProcess:
        with self._lock:
            if self.fail_writes:
                raise ProcessStoreError(f"Write rejected for process {process_id}")
            current = self._processes.get(process_id)
            if current is None:
                raise ProcessNotFound(f"Process not found: {process_id}")

            updated = replace(
                current,
                extension_days=current.extension_days + additional_days,
                extension_reason=reason,
            )
            self._processes[process_id] = updated

        log.info(
            "Extension saved",
            process_id=process_id,
            additional_days=additional_days,
            extension_days=updated.extension_days,
        )
        return updated
