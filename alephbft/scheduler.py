"""Repeating task scheduling with exponentially growing delays."""

from __future__ import annotations

import asyncio
import heapq
import time
from collections import deque
from dataclasses import dataclass
from typing import Generic, TypeVar

__all__ = ["DoublingDelayScheduler"]

T = TypeVar("T")


@dataclass
class _ScheduledTask(Generic[T]):
    task: T
    delay: float


class DoublingDelayScheduler(Generic[T]):
    """Schedules every added task forever, with doubling gaps between runs.

    A task is first due as soon as it is added. After that it is due again
    ``initial_delay`` seconds later, and each following gap for that task is
    twice the previous one. Since the network may drop messages, a task of
    sending one is performed repeatedly in this way.
    """

    def __init__(self, initial_delay: float) -> None:
        if initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        self.initial_delay = float(initial_delay)
        self._instants: list[tuple[float, int]] = []
        self._tasks: list[_ScheduledTask[T]] = []
        self._incoming: deque[T] = deque()
        self._arrived = asyncio.Event()

    def __len__(self) -> int:
        """Number of tasks being scheduled, including those not yet picked up."""
        return len(self._tasks) + len(self._incoming)

    def add_task(self, task: T) -> None:
        """Start scheduling ``task``; it is due immediately."""
        self._incoming.append(task)
        self._arrived.set()

    def _schedule_incoming(self) -> None:
        self._arrived.clear()
        while self._incoming:
            task = self._incoming.popleft()
            index = len(self._tasks)
            heapq.heappush(self._instants, (time.monotonic(), index))
            self._tasks.append(_ScheduledTask(task, self.initial_delay))

    async def _wait_for_arrival(self, timeout: float | None) -> None:
        try:
            await asyncio.wait_for(self._arrived.wait(), timeout)
        except asyncio.TimeoutError:
            pass

    async def next_task(self) -> T:
        """Wait until some task is due, reschedule it and return it."""
        if not self._incoming:
            if self._instants:
                remaining = self._instants[0][0] - time.monotonic()
                if remaining > 0:
                    await self._wait_for_arrival(remaining)
            else:
                await self._wait_for_arrival(None)
        self._schedule_incoming()

        instant, index = heapq.heappop(self._instants)
        scheduled = self._tasks[index]
        heapq.heappush(self._instants, (instant + scheduled.delay, index))
        scheduled.delay *= 2
        return scheduled.task