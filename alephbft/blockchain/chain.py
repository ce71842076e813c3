"""A toy blockchain whose blocks are ordered by the consensus.

Blocks are authored round robin at a fixed block time. Consensus messages
that mention blocks not yet received are held back until those blocks arrive.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from alephbft.nodes import NodeIndex

__all__ = [
    "BlockNum",
    "Block",
    "BlockPlan",
    "ChainConfig",
    "gen_chain_config",
    "BlockCounter",
    "DataStore",
    "DataIO",
    "run_blockchain",
]

_chain_log = logging.getLogger("Blockchain-chain")
_store_log = logging.getLogger("data-store")

BlockNum = int
BlockPlan = Callable[[BlockNum], NodeIndex]

_TICK = 0.01


class _Message(Protocol):
    def included_data(self) -> list: ...


@dataclass(frozen=True)
class Block:
    """A block: its number and a payload of filler bytes."""

    num: BlockNum
    data: bytes

    @classmethod
    def new(cls, num: BlockNum, size: int) -> "Block":
        """Create block ``num`` with ``size`` bytes of pseudo-random filler."""
        _chain_log.debug("Started creating block %r", num)
        data = bytes((i + i // 999 + (i >> 12)) % 8 for i in range(size))
        _chain_log.debug("Finished creating block %r", num)
        return cls(num, data)


@dataclass(frozen=True)
class ChainConfig:
    """Parameters of the blockchain process."""

    node_ix: NodeIndex
    data_size: int
    blocktime_ms: int
    init_delay_ms: int
    authorship_plan: BlockPlan


def gen_chain_config(
    node_ix: int,
    n_members: int,
    data_size: int,
    blocktime_ms: int,
    init_delay_ms: int,
) -> ChainConfig:
    """A configuration with round-robin block authorship."""
    if n_members <= 0:
        raise ValueError("n_members must be positive")

    def authorship_plan(num: BlockNum) -> NodeIndex:
        return NodeIndex(num % n_members)

    return ChainConfig(
        node_ix=NodeIndex(node_ix),
        data_size=data_size,
        blocktime_ms=blocktime_ms,
        init_delay_ms=init_delay_ms,
        authorship_plan=authorship_plan,
    )


@dataclass
class BlockCounter:
    """The highest block number such that all blocks up to it are available."""

    value: BlockNum = 0


class DataStore:
    """Holds back consensus messages until every block they mention is available."""

    def __init__(
        self, current_block: BlockCounter, messages_for_member: "asyncio.Queue[Any]"
    ) -> None:
        self.current_block = current_block
        self.available_blocks: set[BlockNum] = set(range(current_block.value + 1))
        self._messages_for_member = messages_for_member
        self._next_message_id = 0
        self._message_requirements: dict[int, int] = {}
        self._dependent_messages: dict[BlockNum, list[int]] = {}
        self._pending_messages: dict[int, Any] = {}

    @property
    def pending_count(self) -> int:
        """Number of messages still waiting for blocks."""
        return len(self._pending_messages)

    def _add_pending_message(self, message: Any, requirements: list[BlockNum]) -> None:
        message_id = self._next_message_id
        self._next_message_id += 1
        for block_num in requirements:
            self._dependent_messages.setdefault(block_num, []).append(message_id)
        self._message_requirements[message_id] = len(requirements)
        self._pending_messages[message_id] = message

    def add_message(self, message: _Message) -> None:
        """Pass the message on now, or once all blocks it includes are available."""
        requirements = [
            block
            for block in message.included_data()
            if block not in self.available_blocks
        ]
        if requirements:
            self._add_pending_message(message, requirements)
        else:
            self._messages_for_member.put_nowait(message)

    def _push_messages(self, num: BlockNum) -> None:
        for message_id in self._dependent_messages.pop(num, []):
            self._message_requirements[message_id] -= 1
            if self._message_requirements[message_id] == 0:
                message = self._pending_messages.pop(message_id)
                self._messages_for_member.put_nowait(message)
                del self._message_requirements[message_id]

    def add_block(self, num: BlockNum) -> None:
        """Mark block ``num`` as available and release the messages waiting on it."""
        _store_log.debug("Added block %r.", num)
        self.available_blocks.add(num)
        self._push_messages(num)
        while self.current_block.value + 1 in self.available_blocks:
            self.current_block.value += 1


@dataclass
class DataIO:
    """Supplies the current block number as data and collects ordered batches.

    ``send_ordered_batch`` raises ``asyncio.QueueFull`` if ``finalized`` is full.
    """

    current_block: BlockCounter = field(default_factory=BlockCounter)
    finalized: "asyncio.Queue[list[BlockNum]]" = field(default_factory=asyncio.Queue)

    def get_data(self) -> BlockNum:
        return self.current_block.value

    def send_ordered_batch(self, data: list[BlockNum]) -> None:
        self.finalized.put_nowait(data)


async def run_blockchain(
    config: ChainConfig,
    data_store: DataStore,
    current_block: BlockCounter,
    blocks_from_network: "asyncio.Queue[Block]",
    blocks_for_network: "asyncio.Queue[Block]",
    messages_from_network: "asyncio.Queue[Any]",
    exit: asyncio.Event,
) -> None:
    """Maintain the chain until ``exit`` is set.

    Block n is created by this node only when block n - 1 is available, this
    node is its author by the plan, and ``init_delay_ms + (n - 1) * blocktime_ms``
    milliseconds have passed since the start.
    """
    loop = asyncio.get_running_loop()
    start = loop.time()
    exit_wait = asyncio.ensure_future(exit.wait())
    block_get: Optional[asyncio.Future] = None
    message_get: Optional[asyncio.Future] = None
    try:
        block_num = 1
        while True:
            while current_block.value < block_num:
                if config.authorship_plan(block_num) == config.node_ix:
                    delay_ms = (block_num - 1) * config.blocktime_ms + config.init_delay_ms
                    if loop.time() >= start + delay_ms / 1000:
                        block = Block.new(block_num, config.data_size)
                        blocks_for_network.put_nowait(block)
                        data_store.add_block(block_num)
                if block_get is None:
                    block_get = asyncio.ensure_future(blocks_from_network.get())
                if message_get is None:
                    message_get = asyncio.ensure_future(messages_from_network.get())
                done, _ = await asyncio.wait(
                    {block_get, message_get, exit_wait},
                    timeout=_TICK,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if block_get in done:
                    # Only the fact that the block arrived is kept.
                    data_store.add_block(block_get.result().num)
                    block_get = None
                if message_get in done:
                    data_store.add_message(message_get.result())
                    message_get = None
                if exit_wait in done:
                    _chain_log.info("Received exit signal.")
                    return
            block_num += 1
    finally:
        for pending in (block_get, message_get, exit_wait):
            if pending is not None:
                pending.cancel()