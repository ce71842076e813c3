"""Demonstration hashing and signing primitives for the blockchain example.

The signatures here carry no cryptographic meaning: every signature verifies
and a multisignature is simply the set of nodes that signed.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from alephbft.nodes import NodeCount, NodeIndex

__all__ = ["Signature", "PartialMultisignature", "KeyBox", "hash256"]


def hash256(data: bytes | bytearray | memoryview) -> bytes:
    """SHA3-256 digest of ``data`` (32 bytes)."""
    return hashlib.sha3_256(bytes(data)).digest()


@dataclass(frozen=True)
class Signature:
    """An empty placeholder signature."""

    def encode(self) -> bytes:
        return b""


@dataclass(frozen=True)
class PartialMultisignature:
    """The nodes that have signed so far, in the order they signed."""

    signed_by: tuple[NodeIndex, ...] = ()

    def add_signature(self, signature: Signature, index: int) -> "PartialMultisignature":
        """Return a multisignature that also includes ``index``; duplicates are ignored."""
        index = NodeIndex(index)
        if index in self.signed_by:
            return self
        return PartialMultisignature(self.signed_by + (index,))


class KeyBox:
    """Keychain of one committee member."""

    __slots__ = ("_count", "_index")

    def __init__(self, count: int, index: int) -> None:
        self._count = NodeCount(count)
        self._index = NodeIndex(index)

    def __repr__(self) -> str:
        return f"KeyBox(count={int(self._count)}, index={int(self._index)})"

    def index(self) -> NodeIndex:
        """Index of the member owning this keychain."""
        return self._index

    def node_count(self) -> NodeCount:
        """Size of the committee."""
        return self._count

    async def sign(self, msg: bytes) -> Signature:
        """Sign ``msg``."""
        return Signature()

    def verify(self, msg: bytes, signature: Signature, index: int) -> bool:
        """Accept any placeholder signature, whatever the message and signer."""
        return isinstance(signature, Signature)

    def from_signature(self, signature: Signature, index: int) -> PartialMultisignature:
        """Start a multisignature from a single signature by ``index``."""
        return PartialMultisignature((NodeIndex(index),))

    def is_complete(self, msg: bytes, partial: PartialMultisignature) -> bool:
        """A multisignature is complete once more than 2/3 of the committee signed."""
        return (self._count * 2) // 3 < len(partial.signed_by)