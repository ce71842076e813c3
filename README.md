# alephbft

Core pieces of the Aleph BFT consensus protocol, written for asyncio. Aleph BFT
is a DAG-based, leaderless, asynchronous Byzantine fault tolerant ordering
protocol. The package uses only the Python standard library.

## Modules

- `alephbft.codec`: the low-level binary encoding. `Reader` reads fixed-width
  little-endian integers (`read_u32`, `read_u64`), compact integers
  (`read_compact`) and length-prefixed byte strings (`read_bytes`).
  `encode_compact` and `encode_bytes` write compact integers and length-prefixed
  byte strings. Truncated or non-canonical input raises `CodecError`.
- `alephbft.nodes`: `NodeIndex` and `NodeCount` are integer types. A `NodeCount`
  keeps its type through arithmetic. `NodeMap` holds one value per node.
  `BoolNodeMap` holds one bit per node. A `NodeIndex` encodes as 8
  little-endian bytes. A `BoolNodeMap` encodes as a 32-bit bit count followed by
  the length-prefixed packed bits. Decoding rejects inconsistent lengths and
  non-zero padding bits with `CodecError`.
- `alephbft.config`: `Config`, `DelayConfig`, `default_config` and the
  `exponential_slowdown` delay schedule. All durations are floats in seconds, at
  millisecond resolution. `default_config` sets `max_round` to 5000, a tick of
  0.1 s and a request interval of 3 s.
- `alephbft.creator`: `Creator` builds new units round by round. Before each
  unit it waits for the creation delay. It skips the delay when units two rounds
  ahead are already known. It also waits for more than two thirds of the
  committee's units from the previous round, including its own. Parent
  candidates arrive as `UnitInfo` on an asyncio queue, and `None` on that queue
  means the channel is closed. Created units are put on another queue as
  `CreatedUnit`. `wait_until_ready` raises `CreatorError` when parents run out.
- `alephbft.extender`: `Extender` runs the Aleph voting procedure on the local
  DAG. `add_unit` takes an `ExtenderUnit` and returns the batches of unit hashes
  it allowed to finalize, least recent first. `extend` does the same from a
  queue of units to a queue of batches until its exit event is set.
- `alephbft.scheduler`: `DoublingDelayScheduler` makes each added task due at
  once. After that the task is due again after `initial_delay` seconds, and the
  delay doubles each time. This suits resending messages over an unreliable
  network.
- `alephbft.blockchain.crypto`: mock `Signature`, `PartialMultisignature` and
  `KeyBox`, plus `hash256` (SHA3-256). Every signature verifies. A
  multisignature is complete once more than two thirds of the committee have
  signed. This module is for demonstration only and is not secure.
- `alephbft.blockchain.chain`: a toy blockchain built from:
  - `Block` and `ChainConfig`;
  - `gen_chain_config`, which sets up round-robin authorship;
  - `BlockCounter`;
  - `DataStore`, which holds back messages until every block they mention is
    available;
  - `DataIO`, which supplies the current block number and collects ordered
    batches;
  - the `run_blockchain` coroutine.

## A quick look

```python
import asyncio

from alephbft.config import default_config
from alephbft.nodes import BoolNodeMap, NodeIndex
from alephbft.scheduler import DoublingDelayScheduler

index = NodeIndex(7)
assert NodeIndex.decode(index.encode()) == index

mask = BoolNodeMap.from_bools([True, False, True, True, True])
assert BoolNodeMap.decode(mask.encode()) == mask
print(list(mask.true_indices()))  # [NodeIndex(0), NodeIndex(2), NodeIndex(3), NodeIndex(4)]

config = default_config(4, 0, 0)
print(config.max_round)  # 5000


async def demo():
    scheduler = DoublingDelayScheduler(0.5)
    scheduler.add_task("resend")
    print(await scheduler.next_task())  # due immediately


asyncio.run(demo())
```

The long-running components (`Creator.create`, `Extender.extend` and
`run_blockchain`) are coroutines. They exchange data through asyncio queues and
stop when their `exit` event is set.

## What the package does not do

The package has no way to run a whole consensus session for a committee member.
It provides no network transport and no peer discovery. It does not sign or
check units, and it has no fork-alert handling or reliable multicast beyond the
task scheduler. It does not persist anything. It ships no command-line program.
To run a node, you wire `Creator`, `Extender` and your own network and data
layers together with asyncio queues.

## Tests

```
pip install -e ".[test]"
pytest
```