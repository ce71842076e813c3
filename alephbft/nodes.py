"""Node indices, node counts and per-node maps."""

from __future__ import annotations

import operator
import struct
from typing import Generic, Iterable, Iterator, TypeVar

from alephbft.codec import CodecError, Reader, encode_bytes

__all__ = ["NodeIndex", "NodeCount", "NodeMap", "BoolNodeMap"]

T = TypeVar("T")

_U64_LIMIT = 1 << 64
_U32_LIMIT = 1 << 32


def _as_reader(data: bytes | bytearray | memoryview | Reader) -> Reader:
    return data if isinstance(data, Reader) else Reader(data)


def _checked_unsigned(value: int, kind: str) -> int:
    value = operator.index(value)
    if not 0 <= value < _U64_LIMIT:
        raise ValueError(f"{kind} must be in range [0, 2**64), got {value}")
    return value


class NodeIndex(int):
    """The index of a committee member."""

    __slots__ = ()

    def __new__(cls, value: int = 0) -> "NodeIndex":
        return super().__new__(cls, _checked_unsigned(value, "NodeIndex"))

    def __repr__(self) -> str:
        return f"NodeIndex({int(self)})"

    def encode(self) -> bytes:
        """Encode as a little-endian u64."""
        return int(self).to_bytes(8, "little")

    @classmethod
    def decode(cls, data: bytes | bytearray | memoryview | Reader) -> "NodeIndex":
        """Decode from the first eight bytes of ``data``."""
        return cls(_as_reader(data).read_u64())


class NodeCount(int):
    """A number of committee members; arithmetic stays a NodeCount."""

    __slots__ = ()

    def __new__(cls, value: int = 0) -> "NodeCount":
        return super().__new__(cls, _checked_unsigned(value, "NodeCount"))

    def __repr__(self) -> str:
        return f"NodeCount({int(self)})"

    def __add__(self, other):
        if not isinstance(other, int):
            return NotImplemented
        return NodeCount(int(self) + int(other))

    __radd__ = __add__

    def __sub__(self, other):
        if not isinstance(other, int):
            return NotImplemented
        return NodeCount(int(self) - int(other))

    def __rsub__(self, other):
        if not isinstance(other, int):
            return NotImplemented
        return NodeCount(int(other) - int(self))

    def __mul__(self, other):
        if not isinstance(other, int):
            return NotImplemented
        return NodeCount(int(self) * int(other))

    __rmul__ = __mul__

    def __floordiv__(self, other):
        if not isinstance(other, int):
            return NotImplemented
        return NodeCount(int(self) // int(other))

    def indices(self) -> Iterator[NodeIndex]:
        """All node indices below this count, in order."""
        return map(NodeIndex, range(self))


class NodeMap(Generic[T]):
    """A fixed-length sequence holding one value per node."""

    __slots__ = ("_values",)

    def __init__(self, values: Iterable[T] = ()) -> None:
        self._values: list[T] = list(values)

    @classmethod
    def new_with_len(cls, length: int) -> "NodeMap":
        """A map of the given length with every entry set to None."""
        return cls([None] * operator.index(length))

    def _position(self, index: int) -> int:
        position = operator.index(index)
        if not 0 <= position < len(self._values):
            raise IndexError(f"node index {position} out of range")
        return position

    def __getitem__(self, index: int) -> T:
        return self._values[self._position(index)]

    def __setitem__(self, index: int, value: T) -> None:
        self._values[self._position(index)] = value

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[T]:
        return iter(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeMap):
            return NotImplemented
        return self._values == other._values

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"NodeMap({self._values!r})"

    def copy(self) -> "NodeMap[T]":
        return NodeMap(self._values)

    def enumerate(self) -> Iterator[tuple[NodeIndex, T]]:
        """Pairs of node index and value."""
        for position, value in enumerate(self._values):
            yield NodeIndex(position), value


def _pack_bits(bits: list[bool]) -> bytes:
    chunks = (bits[start : start + 8] for start in range(0, len(bits), 8))
    return bytes(
        sum(1 << (7 - offset) for offset, bit in enumerate(chunk) if bit)
        for chunk in chunks
    )


def _unpack_bits(raw: bytes) -> list[bool]:
    return [bool((byte >> (7 - offset)) & 1) for byte in raw for offset in range(8)]


class BoolNodeMap:
    """A bit per node, encoded compactly as a bit vector."""

    __slots__ = ("_bits",)

    def __init__(self, bits: Iterable[bool] = ()) -> None:
        self._bits = [bool(bit) for bit in bits]

    @classmethod
    def with_capacity(cls, capacity: int) -> "BoolNodeMap":
        """A map of ``capacity`` bits, all unset."""
        return cls([False] * operator.index(capacity))

    @classmethod
    def from_bools(cls, bits: Iterable[bool]) -> "BoolNodeMap":
        return cls(bits)

    def set(self, index: int) -> None:
        """Set the bit for the given node."""
        self._bits[self._position(index)] = True

    def capacity(self) -> int:
        return len(self._bits)

    def true_indices(self) -> Iterator[NodeIndex]:
        """Indices of all set bits, in increasing order."""
        return (NodeIndex(i) for i, bit in enumerate(self._bits) if bit)

    def _position(self, index: int) -> int:
        position = operator.index(index)
        if not 0 <= position < len(self._bits):
            raise IndexError(f"node index {position} out of range")
        return position

    def __getitem__(self, index: int) -> bool:
        return self._bits[self._position(index)]

    def __len__(self) -> int:
        return len(self._bits)

    def __iter__(self) -> Iterator[bool]:
        return iter(self._bits)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoolNodeMap):
            return NotImplemented
        return self._bits == other._bits

    def __hash__(self) -> int:
        return hash(tuple(self._bits))

    def __repr__(self) -> str:
        shown = "".join("1" if bit else "0" for bit in self._bits)
        return f"BoolNodeMap({shown!r})"

    def encode(self) -> bytes:
        """Encode as a u32 capacity followed by the length-prefixed packed bits."""
        if len(self._bits) >= _U32_LIMIT:
            raise ValueError("BoolNodeMap too large to encode")
        return struct.pack("<I", len(self._bits)) + encode_bytes(_pack_bits(self._bits))

    @classmethod
    def decode(cls, data: bytes | bytearray | memoryview | Reader) -> "BoolNodeMap":
        """Decode, rejecting inconsistent lengths and non-zero padding bits."""
        reader = _as_reader(data)
        capacity = reader.read_u32()
        raw = reader.read_bytes()
        if len(raw) * 8 != 8 * ((capacity + 7) // 8):
            raise CodecError("Length of bitvector inconsistent with encoded capacity.")
        bits = _unpack_bits(raw)
        if any(bits[capacity:]):
            raise CodecError("Non-canonical encoding. Trailing bits should be all 0.")
        return cls(bits[:capacity])