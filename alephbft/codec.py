"""Compact little-endian binary encoding used on the wire."""

from __future__ import annotations

import operator

__all__ = ["CodecError", "Reader", "encode_compact", "encode_bytes"]

_SINGLE_BYTE_LIMIT = 1 << 6
_TWO_BYTE_LIMIT = 1 << 14
_FOUR_BYTE_LIMIT = 1 << 30
_MAX_BIG_INT_BYTES = 67


class CodecError(ValueError):
    """Raised when encoded data is truncated or not canonical."""


class Reader:
    """Sequential reader over an immutable byte string.

    A failed read leaves the position unchanged.
    """

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes | bytearray | memoryview) -> None:
        self._data = bytes(data)
        self._pos = 0

    def remaining(self) -> int:
        """Number of bytes not yet consumed."""
        return len(self._data) - self._pos

    def read(self, n: int) -> bytes:
        """Consume exactly ``n`` bytes."""
        n = operator.index(n)
        if n < 0:
            raise ValueError("cannot read a negative number of bytes")
        if n > self.remaining():
            raise CodecError(
                f"not enough data: need {n} bytes, {self.remaining()} left"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def read_u32(self) -> int:
        """Consume a little-endian unsigned 32-bit integer."""
        return int.from_bytes(self.read(4), "little")

    def read_u64(self) -> int:
        """Consume a little-endian unsigned 64-bit integer."""
        return int.from_bytes(self.read(8), "little")

    def read_compact(self) -> int:
        """Consume a compact-encoded unsigned integer, rejecting non-canonical forms."""
        start = self._pos
        try:
            return self._read_compact()
        except CodecError:
            self._pos = start
            raise

    def read_bytes(self) -> bytes:
        """Consume a compact length prefix followed by that many bytes."""
        start = self._pos
        try:
            length = self._read_compact()
            return self.read(length)
        except CodecError:
            self._pos = start
            raise

    def _read_compact(self) -> int:
        first = self.read(1)[0]
        mode = first & 0b11
        if mode == 0:
            return first >> 2
        if mode == 1:
            value = int.from_bytes(bytes([first]) + self.read(1), "little") >> 2
            if value < _SINGLE_BYTE_LIMIT:
                raise CodecError("non-canonical compact encoding")
            return value
        if mode == 2:
            value = int.from_bytes(bytes([first]) + self.read(3), "little") >> 2
            if value < _TWO_BYTE_LIMIT:
                raise CodecError("non-canonical compact encoding")
            return value
        length = (first >> 2) + 4
        raw = self.read(length)
        value = int.from_bytes(raw, "little")
        if value < _FOUR_BYTE_LIMIT or (length > 4 and raw[-1] == 0):
            raise CodecError("non-canonical compact encoding")
        return value


def encode_compact(value: int) -> bytes:
    """Encode a non-negative integer in the compact variable-length form."""
    value = operator.index(value)
    if value < 0:
        raise ValueError("compact encoding requires a non-negative integer")
    if value < _SINGLE_BYTE_LIMIT:
        return bytes([value << 2])
    if value < _TWO_BYTE_LIMIT:
        return ((value << 2) | 0b01).to_bytes(2, "little")
    if value < _FOUR_BYTE_LIMIT:
        return ((value << 2) | 0b10).to_bytes(4, "little")
    length = max(4, (value.bit_length() + 7) // 8)
    if length > _MAX_BIG_INT_BYTES:
        raise ValueError("integer too large for compact encoding")
    return bytes([((length - 4) << 2) | 0b11]) + value.to_bytes(length, "little")


def encode_bytes(data: bytes | bytearray | memoryview) -> bytes:
    """Encode a byte string with a compact length prefix."""
    data = bytes(data)
    return encode_compact(len(data)) + data