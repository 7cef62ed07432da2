"""Tests for the bounded-concurrency runner."""

import asyncio

import pytest

from aquacycle.timeseries.concurrency import BoundedConcurrencyRunner, TaskOutcome

pytestmark = pytest.mark.asyncio


class InFlightCounter:
    """Instrumented task tracking how many calls run at once."""

    def __init__(self, delays=None):
        self.delays = delays or {}
        self.current = 0
        self.peak = 0
        self.started = []
        self.completed = []

    async def __call__(self, item):
        self.current += 1
        self.peak = max(self.peak, self.current)
        self.started.append(item)
        try:
            await asyncio.sleep(self.delays.get(item, 0.01))
            return item * 10
        finally:
            self.current -= 1
            self.completed.append(item)


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
async def test_never_exceeds_limit(limit):
    task = InFlightCounter()
    outcomes = await BoundedConcurrencyRunner(limit).run(list(range(12)), task)

    assert len(outcomes) == 12
    assert task.peak <= limit
    assert task.peak == limit


async def test_output_order_matches_input_when_completion_is_reversed():
    items = [1, 2, 3, 4, 5, 6]
    # Earlier items take longer, so they finish last
    delays = {item: 0.01 * (len(items) - i) for i, item in enumerate(items)}
    task = InFlightCounter(delays)

    outcomes = await BoundedConcurrencyRunner(6).run(items, task)

    assert task.completed == list(reversed(items))
    assert [o.index for o in outcomes] == list(range(6))
    assert [o.value for o in outcomes] == [10, 20, 30, 40, 50, 60]


async def test_each_item_processed_exactly_once():
    task = InFlightCounter()
    await BoundedConcurrencyRunner(4).run(list(range(25)), task)

    assert sorted(task.started) == list(range(25))


async def test_failures_are_captured_per_index():
    async def task(item):
        await asyncio.sleep(0)
        if item == 2:
            raise RuntimeError("sensor 2 down")
        return item

    outcomes = await BoundedConcurrencyRunner(3).run([0, 1, 2, 3, 4], task)

    assert [o.ok for o in outcomes] == [True, True, False, True, True]
    assert isinstance(outcomes[2].error, RuntimeError)
    assert outcomes[2].value is None
    assert [o.value for o in outcomes if o.ok] == [0, 1, 3, 4]


@pytest.mark.parametrize("limit", [0, -4])
async def test_limit_below_one_runs_serially(limit):
    runner = BoundedConcurrencyRunner(limit)
    task = InFlightCounter()

    outcomes = await runner.run([1, 2, 3], task)

    assert runner.concurrency_limit == 1
    assert task.peak == 1
    assert all(o.ok for o in outcomes)


async def test_no_more_workers_than_items():
    task = InFlightCounter()
    outcomes = await BoundedConcurrencyRunner(10).run([1, 2], task)

    assert task.peak == 2
    assert len(outcomes) == 2


async def test_empty_items():
    async def task(item):
        raise AssertionError("never called")

    assert await BoundedConcurrencyRunner(3).run([], task) == []


async def test_cancellation_propagates():
    async def task(item):
        await asyncio.sleep(10)

    run = asyncio.ensure_future(BoundedConcurrencyRunner(2).run([1, 2, 3], task))
    await asyncio.sleep(0.01)
    run.cancel()

    with pytest.raises(asyncio.CancelledError):
        await run


async def test_task_outcome_ok():
    assert TaskOutcome(index=0, value=1).ok
    assert not TaskOutcome(index=0, error=ValueError("x")).ok


async def test_outcomes_stay_aligned_with_items_when_tasks_fail():
    async def task(item):
        await asyncio.sleep(0.001 * (5 - item))
        if item % 2:
            raise ValueError(f"bad {item}")
        return item

    outcomes = await BoundedConcurrencyRunner(2).run([0, 1, 2, 3, 4], task)

    assert len(outcomes) == 5
    assert [o.index for o in outcomes] == [0, 1, 2, 3, 4]
    assert [o.ok for o in outcomes] == [True, False, True, False, True]
    assert str(outcomes[3].error) == "bad 3"


async def test_uncaptured_abort_raises_instead_of_short_result():
    class Halt(BaseException):
        pass

    async def task(item):
        if item == 1:
            raise Halt()
        return item

    with pytest.raises(Halt):
        await BoundedConcurrencyRunner(3).run([0, 1, 2], task)
