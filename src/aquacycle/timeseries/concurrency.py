"""Bounded-concurrency task runner.

Runs an async task over a list of items with at most ``concurrency_limit``
tasks in flight. Results keep input order regardless of completion order
and a failing item never cancels its siblings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar, cast

from ..observability import get_logger

__all__ = ["BoundedConcurrencyRunner", "TaskOutcome"]

T = TypeVar("T")
R = TypeVar("R")

log = get_logger("pipeline")

DEFAULT_CONCURRENCY_LIMIT = 3


@dataclass
class TaskOutcome(Generic[R]):
    """Outcome of one item: a value or the exception it raised."""

    index: int
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedConcurrencyRunner:
    """Worker pool over a shared claim counter.

    Each worker repeatedly claims the next unprocessed index under a lock
    and runs the task for it, so an index is processed exactly once.

    Example:
        runner = BoundedConcurrencyRunner(concurrency_limit=3)
        outcomes = await runner.run(sensor_ids, fetch_series)
    """

    def __init__(self, concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT) -> None:
        if concurrency_limit < 1:
            log.warning(f"concurrency_limit {concurrency_limit} < 1, using 1")
            concurrency_limit = 1
        self.concurrency_limit = concurrency_limit

    async def run(
        self,
        items: Sequence[T],
        task: Callable[[T], Awaitable[R]],
    ) -> list[TaskOutcome[R]]:
        """Run ``task`` for every item.

        Returns
        -------
        list[TaskOutcome]
            One outcome per item, ``outcomes[i]`` belonging to ``items[i]``

        Notes
        -----
        Exceptions raised by a task are captured in its outcome.
        Cancellation is not captured and propagates to the caller.
        """
        outcomes: list[TaskOutcome[R] | None] = [None] * len(items)
        if not items:
            return []

        next_index = 0
        claim_lock = asyncio.Lock()

        async def claim() -> int | None:
            nonlocal next_index
            async with claim_lock:
                if next_index >= len(items):
                    return None
                index = next_index
                next_index += 1
                return index

        async def worker() -> None:
            while True:
                index = await claim()
                if index is None:
                    return
                try:
                    value = await task(items[index])
                except Exception as exc:
                    outcomes[index] = TaskOutcome(index=index, error=exc)
                else:
                    outcomes[index] = TaskOutcome(index=index, value=value)

        worker_count = min(self.concurrency_limit, len(items))
        await asyncio.gather(*(worker() for _ in range(worker_count)))

        missing = [i for i, outcome in enumerate(outcomes) if outcome is None]
        if missing:
            raise RuntimeError(f"Worker pool finished without outcomes for indexes {missing}")
        return cast("list[TaskOutcome[R]]", outcomes)
