"""Ordering of the DAG: deciding round heads and emitting finalized batches."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Hashable, Optional

from alephbft.config import Round
from alephbft.nodes import NodeCount, NodeIndex, NodeMap

__all__ = ["ExtenderUnit", "Extender"]

_log = logging.getLogger("AlephBFT-extender")

Hash = Any
"""A unit hash: any hashable, totally ordered value."""


@dataclass(eq=False)
class ExtenderUnit:
    """A unit as seen by the extender, with its current vote."""

    creator: NodeIndex
    round: Round
    hash: Hashable
    parents: NodeMap
    vote: bool = False


@dataclass
class _CacheState:
    highest_round: Round = 0
    current_round: Round = 0
    round_initialized: bool = False
    pending_cand_id: int = 0
    votes_up_to_date: bool = False


def _common_vote(relative_round: Round) -> bool:
    if relative_round == 3:
        return False
    if relative_round <= 4:
        return True
    # alternate between true and false starting from relative round 5
    return relative_round % 2 == 1


class Extender:
    """Runs the consensus on a local copy of the DAG and produces ordered batches.

    Units passed in are guaranteed to eventually be in the DAGs of all honest
    nodes. Whenever a round can be decided, the batch of units newly ordered by
    its head is produced as a list of hashes, least recent first.
    """

    def __init__(self, node_id: int, n_members: int) -> None:
        self.node_id = NodeIndex(node_id)
        self.n_members = NodeCount(n_members)
        self._state = _CacheState()
        self._units: dict[Hash, ExtenderUnit] = {}
        self._units_by_round: list[list[Hash]] = [[]]
        self._candidates: list[Hash] = []

    @property
    def current_round(self) -> Round:
        """The lowest round that is not decided yet."""
        return self._state.current_round

    def add_unit(self, unit: ExtenderUnit) -> list[list[Hash]]:
        """Add a unit to the DAG and return the batches it allowed to finalize."""
        _log.debug(
            "%r New unit in Extender round %r creator %r hash %r.",
            self.node_id,
            unit.round,
            unit.creator,
            unit.hash,
        )
        state = self._state
        if unit.round > state.highest_round:
            state.highest_round = unit.round
        if unit.round >= state.current_round:
            # Only units at or above the current round take part in head election.
            while len(self._units_by_round) <= unit.round:
                self._units_by_round.append([])
            self._units_by_round[unit.round].append(unit.hash)
        self._units[unit.hash] = unit
        return self._progress(unit.hash)

    def _initialize_round(self, round_: Round) -> None:
        # A snapshot: units added to this round later are always decided false.
        self._candidates = sorted(self._units_by_round[round_])

    def _finalize_round(self, round_: Round, head: Hash) -> list[Hash]:
        batch: list[Hash] = []
        queue = deque([self._units.pop(head)])
        while queue:
            unit = queue.popleft()
            batch.append(unit.hash)
            for parent_hash in unit.parents:
                if parent_hash is None:
                    continue
                parent = self._units.pop(parent_hash, None)
                if parent is not None:
                    queue.append(parent)
        # BFS order is canonical and respects the DAG; reverse so that the
        # least recent units come first.
        batch.reverse()
        _log.debug(
            "%r Finalized round %r with head %r.", self.node_id, round_, head
        )
        self._units_by_round[round_].clear()
        return batch

    def _vote_and_decision(
        self,
        candidate_hash: Hash,
        voter_hash: Hash,
        candidate_creator: NodeIndex,
        candidate_round: Round,
    ) -> tuple[bool, Optional[bool]]:
        voter = self._units[voter_hash]
        if voter.round <= candidate_round:
            return False, None
        relative_round = voter.round - candidate_round
        if relative_round == 1:
            return voter.parents[candidate_creator] == candidate_hash, None

        votes_true = 0
        votes_false = 0
        for parent_hash in voter.parents:
            if parent_hash is None:
                continue
            if self._units[parent_hash].vote:
                votes_true += 1
            else:
                votes_false += 1
        cv = _common_vote(relative_round)
        threshold = (self.n_members * 2) // 3 + 1
        if votes_true + votes_false < threshold:
            raise RuntimeError(
                f"unit {voter_hash!r} has fewer than {int(threshold)} known parents"
            )

        decision: Optional[bool] = None
        if relative_round >= 3 and (
            (cv and votes_true >= threshold) or (not cv and votes_false >= threshold)
        ):
            decision = cv

        if votes_false == 0:
            vote = True
        elif votes_true == 0:
            vote = False
        else:
            vote = cv
        return vote, decision

    def _recompute_votes(
        self,
        candidate_hash: Hash,
        candidate_creator: NodeIndex,
        curr_round: Round,
        voters_round: Round,
    ) -> Optional[bool]:
        for voter_hash in self._units_by_round[voters_round]:
            vote, decision = self._vote_and_decision(
                candidate_hash, voter_hash, candidate_creator, curr_round
            )
            self._units[voter_hash].vote = vote
            if decision is not None:
                return decision
        return None

    def _progress(self, new_hash: Hash) -> list[list[Hash]]:
        state = self._state
        batches: list[list[Hash]] = []
        while True:
            if not state.round_initialized:
                if state.highest_round >= state.current_round + 3:
                    self._initialize_round(state.current_round)
                    state.round_initialized = True
                    state.pending_cand_id = 0
                    state.votes_up_to_date = False
                    continue
                break

            decision: Optional[bool] = None
            curr_round = state.current_round
            candidate_hash = self._candidates[state.pending_cand_id]
            candidate_creator = self._units[candidate_hash].creator

            if not state.votes_up_to_date:
                for voters_round in range(curr_round + 1, state.highest_round + 1):
                    decision = self._recompute_votes(
                        candidate_hash, candidate_creator, curr_round, voters_round
                    )
                    if decision is not None:
                        break
            else:
                vote, decision = self._vote_and_decision(
                    candidate_hash, new_hash, candidate_creator, curr_round
                )
                self._units[new_hash].vote = vote

            if decision is True:
                batches.append(self._finalize_round(curr_round, candidate_hash))
                state.current_round += 1
                state.round_initialized = False
            elif decision is False:
                state.pending_cand_id += 1
                state.votes_up_to_date = False
            else:
                state.votes_up_to_date = True
                break
        return batches

    async def extend(
        self,
        electors: "asyncio.Queue[ExtenderUnit]",
        batches: "asyncio.Queue[list[Hash]]",
        exit: asyncio.Event,
    ) -> None:
        """Consume units from ``electors`` and put finalized batches on ``batches``.

        Stops when ``exit`` is set or when ``batches`` refuses a batch.
        """
        exit_wait = asyncio.ensure_future(exit.wait())
        next_unit = asyncio.ensure_future(electors.get())
        exiting = False
        try:
            while not exiting:
                done, _ = await asyncio.wait(
                    {next_unit, exit_wait}, return_when=asyncio.FIRST_COMPLETED
                )
                if next_unit in done:
                    unit = next_unit.result()
                    next_unit = asyncio.ensure_future(electors.get())
                    for batch in self.add_unit(unit):
                        try:
                            batches.put_nowait(batch)
                        except asyncio.QueueFull:
                            _log.warning(
                                "%r Channel for batches should be open", self.node_id
                            )
                            exiting = True
                if exit_wait in done and not exiting:
                    _log.info("%r received exit signal.", self.node_id)
                    exiting = True
            _log.info("%r Extender decided to exit.", self.node_id)
        finally:
            next_unit.cancel()
            exit_wait.cancel()