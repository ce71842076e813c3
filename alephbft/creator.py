"""Creation of new units on top of the parents known locally."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Hashable, Optional

from alephbft.config import Config, DelaySchedule, Round
from alephbft.nodes import NodeCount, NodeIndex, NodeMap

__all__ = ["CreatorError", "UnitInfo", "CreatedUnit", "Creator"]

_log = logging.getLogger("AlephBFT-creator")

_STALL_WARNING = 30 * 60.0


class CreatorError(RuntimeError):
    """Raised when no unit can be created because the parents channel closed."""


@dataclass(frozen=True)
class UnitInfo:
    """A unit added to the local DAG, offered to the creator as a parent candidate."""

    round: Round
    creator: NodeIndex
    hash: Hashable


@dataclass(frozen=True)
class CreatedUnit:
    """A newly created unit: its coordinates and the parents it was built on."""

    creator: NodeIndex
    round: Round
    parents: NodeMap
    parent_hashes: tuple


class Creator:
    """Creates new units according to a delay schedule.

    For a unit U of round r > 0 the following always hold:

    - all of U's parents are from round r - 1 and by different creators,
    - one of them is the (r - 1)-round unit of U's creator,
    - U has more than floor(2N/3) parents.

    A unit of round 0 has no parents. Parent candidates arrive on the
    ``parents`` queue; putting ``None`` on it marks the channel as closed.
    Created units are put on ``new_units``; a full queue counts as closed.
    """

    def __init__(
        self,
        config: Config,
        parents: "asyncio.Queue[Optional[UnitInfo]]",
        new_units: "asyncio.Queue[CreatedUnit]",
    ) -> None:
        self.node_ix: NodeIndex = config.node_ix
        self.n_members: NodeCount = config.n_members
        self.create_lag: DelaySchedule = config.delay_config.unit_creation_delay
        self.max_round: Round = config.max_round
        self.candidates_by_round: list[NodeMap] = [NodeMap.new_with_len(self.n_members)]
        # one less than the length is the highest round of all known units
        self.n_candidates_by_round: list[int] = [0]
        self.exiting = False
        self._parents = parents
        self._new_units = new_units
        self._parents_closed = False

    def _init_round(self, round_: Round) -> None:
        while len(self.n_candidates_by_round) <= round_:
            self.candidates_by_round.append(NodeMap.new_with_len(self.n_members))
            self.n_candidates_by_round.append(0)

    def add_unit(self, round: Round, creator: int, unit_hash: Hashable) -> None:
        """Record a parent candidate; only the first unit per (round, creator) counts."""
        self._init_round(round)
        candidates = self.candidates_by_round[round]
        if candidates[creator] is None:
            candidates[creator] = unit_hash
            self.n_candidates_by_round[round] += 1

    def create_unit(self, round: Round) -> CreatedUnit:
        """Build a unit of the given round from the current candidates and emit it."""
        if round == 0:
            parents = NodeMap.new_with_len(self.n_members)
        else:
            parents = self.candidates_by_round[round - 1].copy()
        parent_hashes = tuple(h for h in parents if h is not None)
        unit = CreatedUnit(self.node_ix, round, parents, parent_hashes)
        _log.debug("%r Created a new unit at round %r.", self.node_ix, round)
        try:
            self._new_units.put_nowait(unit)
        except asyncio.QueueFull:
            _log.warning("%r Notification channel should be open", self.node_ix)
            self.exiting = True
        self._init_round(round + 1)
        return unit

    def _receive(self, unit: Optional[UnitInfo]) -> None:
        if unit is None:
            self._parents_closed = True
        else:
            self.add_unit(unit.round, unit.creator, unit.hash)

    def _ready_for(self, prev_round: int) -> bool:
        threshold = (self.n_members * 2) // 3 + 1
        return (
            len(self.n_candidates_by_round) > prev_round
            and self.n_candidates_by_round[prev_round] >= threshold
            and self.candidates_by_round[prev_round][self.node_ix] is not None
        )

    async def wait_until_ready(self, round: Round) -> None:
        """Wait for the creation delay and for enough parents of the previous round.

        The delay is skipped once units two rounds above ``round`` are known,
        since the node is then already behind.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.create_lag(round)
        # Requiring units two rounds up stops a malicious node from dragging us
        # to max_round by creating units without any delay.
        while round + 2 >= len(self.n_candidates_by_round):
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            if self._parents_closed:
                await asyncio.sleep(remaining)
                break
            try:
                unit = await asyncio.wait_for(self._parents.get(), remaining)
            except asyncio.TimeoutError:
                break
            self._receive(unit)

        if round == 0:
            return
        prev_round = round - 1
        while not self._ready_for(prev_round):
            if self._parents_closed:
                _log.warning(
                    "%r get error as result from channel with parents.", self.node_ix
                )
                raise CreatorError("parent channel closed")
            self._receive(await self._parents.get())

    async def create(self, starting_round: Round, exit: asyncio.Event) -> None:
        """Create units for every round from ``starting_round`` below ``max_round``.

        Stops early when ``exit`` is set, when the parents channel closes, or
        when the channel for new units refuses a unit.
        """
        _log.debug("Creator starting from round %r", starting_round)
        exit_wait = asyncio.ensure_future(exit.wait())
        try:
            for round_ in range(starting_round, self.max_round):
                ready = asyncio.ensure_future(self.wait_until_ready(round_))
                try:
                    while not ready.done():
                        done, _ = await asyncio.wait(
                            {ready, exit_wait},
                            timeout=_STALL_WARNING,
                            return_when=asyncio.FIRST_COMPLETED,
                        )
                        if ready in done:
                            break
                        if exit_wait in done:
                            _log.info("%r received exit signal.", self.node_ix)
                            self.exiting = True
                        elif not done:
                            _log.warning(
                                "%r more than half hour has passed since we created "
                                "the previous unit.",
                                self.node_ix,
                            )
                        if self.exiting:
                            _log.info("%r Creator decided to exit.", self.node_ix)
                            return
                    try:
                        ready.result()
                    except CreatorError as error:
                        _log.warning(
                            "%r Impossible to create a unit, error %r, terminating Creator.",
                            self.node_ix,
                            error,
                        )
                        return
                finally:
                    if not ready.done():
                        ready.cancel()
                        with contextlib.suppress(asyncio.CancelledError):
                            await ready
                self.create_unit(round_)
                if self.exiting:
                    _log.info("%r Creator decided to exit.", self.node_ix)
                    return
            _log.warning(
                "%r Maximum round reached. Not creating another unit.", self.node_ix
            )
        finally:
            exit_wait.cancel()