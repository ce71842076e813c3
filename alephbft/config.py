"""Consensus configuration and delay schedules.

Durations are expressed in seconds (floats) at millisecond resolution.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from alephbft.nodes import NodeCount, NodeIndex

__all__ = [
    "Round",
    "SessionId",
    "DelaySchedule",
    "DelayConfig",
    "Config",
    "exponential_slowdown",
    "default_config",
]

Round = int
"""An asynchronous round of the protocol (fits in 16 bits)."""

SessionId = int
"""The number of a session for which the consensus is run (fits in 64 bits)."""

DelaySchedule = Callable[[int], float]
"""Maps a step number to a delay in seconds."""

_U64_MAX = (1 << 64) - 1
_ROUND_MAX = (1 << 16) - 1


def _millis(ms: int) -> float:
    return ms / 1000


def _saturating_millis(delay: float) -> int:
    """Round half away from zero, saturating into the unsigned 64-bit range."""
    if math.isnan(delay) or delay <= 0:
        return 0
    if delay >= _U64_MAX:
        return _U64_MAX
    whole = math.floor(delay)
    return whole + 1 if delay - whole >= 0.5 else whole


def exponential_slowdown(
    t: int, base_delay: float, start_exp_delay: int, exp_base: float
) -> float:
    """Delay of ``base_delay`` ms up to ``start_exp_delay``, then growing by ``exp_base`` per step.

    The result is returned in seconds and saturates instead of overflowing.
    """
    if t < start_exp_delay:
        delay = base_delay
    else:
        try:
            delay = base_delay * exp_base ** (t - start_exp_delay)
        except OverflowError:
            delay = math.inf
    return _millis(_saturating_millis(delay))


@dataclass(frozen=True)
class DelayConfig:
    """Parameters governing how various tasks are delayed."""

    tick_interval: float
    """Tick frequency of the member's internal task queue."""
    requests_interval: float
    """Delay after which a request for a coord or parents is repeated."""
    unit_broadcast_delay: DelaySchedule
    """Delay between the k-th and (k+1)-th broadcast."""
    unit_creation_delay: DelaySchedule
    """Delay between creating the (k-1)-th and k-th unit."""


@dataclass(frozen=True)
class Config:
    """Main configuration of the consensus."""

    node_ix: NodeIndex
    session_id: SessionId
    n_members: NodeCount
    delay_config: DelayConfig
    max_round: Round

    def __post_init__(self) -> None:
        object.__setattr__(self, "node_ix", NodeIndex(self.node_ix))
        object.__setattr__(self, "n_members", NodeCount(self.n_members))
        if not 0 <= self.session_id <= _U64_MAX:
            raise ValueError(f"session_id out of range: {self.session_id}")
        if not 0 <= self.max_round <= _ROUND_MAX:
            raise ValueError(f"max_round out of range: {self.max_round}")


def _unit_broadcast_delay(t: int) -> float:
    # 4000, 8000, 16000, 32000, ... ms
    return exponential_slowdown(t, 4000.0, 0, 2.0)


def _unit_creation_delay(t: int) -> float:
    # 5000 ms first, then 500 ms until step 3000, then growing by 0.5% per step
    if t == 0:
        return _millis(5000)
    return exponential_slowdown(t, 500.0, 3000, 1.005)


def default_config(n_members: int, node_ix: int, session_id: SessionId) -> Config:
    """A configuration with the recommended parameters."""
    delay_config = DelayConfig(
        tick_interval=_millis(100),
        requests_interval=_millis(3000),
        unit_broadcast_delay=_unit_broadcast_delay,
        unit_creation_delay=_unit_creation_delay,
    )
    return Config(
        node_ix=NodeIndex(node_ix),
        session_id=session_id,
        n_members=NodeCount(n_members),
        delay_config=delay_config,
        max_round=5000,
    )