"""Process store protocol."""

from __future__ import annotations

from typing import Protocol

from ...core.lifecycle import CultivationProcess

__all__ = ["ProcessStore"]


class ProcessStore(Protocol):
    """Persistence of cultivation processes.

    The lifecycle core only reads processes and records extensions; it
    never creates or deletes them through this interface.
    """

    def get_process(self, process_id: str) -> CultivationProcess:
        """Load a process.

        Raises
        ------
        ProcessNotFound
            If no process has this id
        ProcessStoreError
            On storage failures
        """
        ...

    def save_extension(self, process_id: str, additional_days: int, reason: str) -> CultivationProcess:
        """Record an extension (additive) and return the stored process.

        Raises
        ------
        ProcessNotFound
            If no process has this id
        ProcessStoreError
            On storage failures
        """
        ...
