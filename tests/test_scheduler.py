import asyncio
import time

import pytest

from alephbft.scheduler import DoublingDelayScheduler

DELAY = 0.05
SLACK = 0.01


@pytest.mark.asyncio
async def test_added_task_is_returned_immediately():
    scheduler = DoublingDelayScheduler(10.0)
    scheduler.add_task("ping")
    start = time.monotonic()
    task = await scheduler.next_task()
    assert task == "ping"
    assert time.monotonic() - start < 1.0


@pytest.mark.asyncio
async def test_task_repeats_with_doubling_delay():
    scheduler = DoublingDelayScheduler(DELAY)
    scheduler.add_task("msg")
    assert await scheduler.next_task() == "msg"

    start = time.monotonic()
    assert await scheduler.next_task() == "msg"
    first_gap = time.monotonic() - start
    assert first_gap >= DELAY - SLACK

    start = time.monotonic()
    assert await scheduler.next_task() == "msg"
    second_gap = time.monotonic() - start
    assert second_gap >= 2 * DELAY - SLACK


@pytest.mark.asyncio
async def test_tasks_come_out_in_order_of_addition():
    scheduler = DoublingDelayScheduler(10.0)
    for name in ["a", "b", "c"]:
        scheduler.add_task(name)
    results = [await scheduler.next_task() for _ in range(3)]
    assert results == ["a", "b", "c"]
    assert len(scheduler) == 3


@pytest.mark.asyncio
async def test_new_task_preempts_waiting_task():
    scheduler = DoublingDelayScheduler(10.0)
    scheduler.add_task("old")
    assert await scheduler.next_task() == "old"
    scheduler.add_task("new")
    result = await asyncio.wait_for(scheduler.next_task(), timeout=1.0)
    assert result == "new"


@pytest.mark.asyncio
async def test_waits_when_empty():
    scheduler = DoublingDelayScheduler(DELAY)
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(scheduler.next_task(), timeout=0.05)


@pytest.mark.asyncio
async def test_add_while_waiting_wakes_up():
    scheduler = DoublingDelayScheduler(DELAY)
    waiter = asyncio.ensure_future(scheduler.next_task())
    await asyncio.sleep(0.01)
    assert not waiter.done()
    scheduler.add_task(42)
    assert await asyncio.wait_for(waiter, timeout=1.0) == 42


@pytest.mark.asyncio
async def test_add_while_waiting_for_scheduled_task():
    scheduler = DoublingDelayScheduler(10.0)
    scheduler.add_task("first")
    assert await scheduler.next_task() == "first"
    waiter = asyncio.ensure_future(scheduler.next_task())
    await asyncio.sleep(0.01)
    scheduler.add_task("second")
    assert await asyncio.wait_for(waiter, timeout=1.0) == "second"


@pytest.mark.asyncio
async def test_earlier_due_task_comes_first():
    scheduler = DoublingDelayScheduler(DELAY)
    scheduler.add_task("x")
    scheduler.add_task("y")
    seen = [await scheduler.next_task() for _ in range(4)]
    assert seen == ["x", "y", "x", "y"]


def test_negative_delay_rejected():
    with pytest.raises(ValueError):
        DoublingDelayScheduler(-1.0)