"""Big-endian binary readers and writers for the gesture store format.

All multi-byte values use network byte order. Strings are UTF-8 prefixed
with an unsigned 16-bit byte length. Point blocks are read and written in
one piece as numpy structured arrays.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

import numpy as np

from gesture_library.errors import DecodeError

# In-memory layout of a stroke's points
POINT_DTYPE = np.dtype([("x", np.float32), ("y", np.float32), ("t", np.int64)])

# On-disk layout: 16 bytes per point, big-endian
WIRE_POINT_DTYPE = np.dtype([("x", ">f4"), ("y", ">f4"), ("t", ">i8")])

MAX_UTF_LENGTH = 0xFFFF
READ_CHUNK_SIZE = 64 * 1024

_INT16 = struct.Struct(">h")
_UINT16 = struct.Struct(">H")
_INT32 = struct.Struct(">i")
_INT64 = struct.Struct(">q")
_FLOAT32 = struct.Struct(">f")


class DataWriter:
    """Writes primitive values to a binary stream."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def write_short(self, value: int):
        self._stream.write(_INT16.pack(value))

    def write_int(self, value: int):
        self._stream.write(_INT32.pack(value))

    def write_long(self, value: int):
        self._stream.write(_INT64.pack(value))

    def write_float(self, value: float):
        self._stream.write(_FLOAT32.pack(value))

    def write_utf(self, value: str):
        """Write a length-prefixed UTF-8 string.

        Raises:
            ValueError: If the encoded string exceeds 65535 bytes.
        """
        encoded = value.encode("utf-8")
        if len(encoded) > MAX_UTF_LENGTH:
            raise ValueError(
                f"Encoded string too long: {len(encoded)} bytes (max {MAX_UTF_LENGTH})"
            )
        self._stream.write(_UINT16.pack(len(encoded)))
        self._stream.write(encoded)

    def write_points(self, points: np.ndarray):
        """Write a block of points without a count prefix."""
        self._stream.write(points.astype(WIRE_POINT_DTYPE).tobytes())


class DataReader:
    """Reads primitive values from a binary stream.

    Every read names the field it is decoding so that a short read can be
    reported precisely.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def read_exact(self, size: int, field: str) -> bytes:
        # Bounded chunks: a corrupt count must not allocate more than the file holds
        parts = []
        remaining = size
        while remaining > 0:
            chunk = self._stream.read(min(remaining, READ_CHUNK_SIZE))
            if not chunk:
                raise DecodeError(field)
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def read_short(self, field: str = "short") -> int:
        return _INT16.unpack(self.read_exact(_INT16.size, field))[0]

    def read_int(self, field: str = "int") -> int:
        return _INT32.unpack(self.read_exact(_INT32.size, field))[0]

    def read_count(self, field: str) -> int:
        """Read an int32 element count, rejecting negative values."""
        count = self.read_int(field)
        if count < 0:
            raise DecodeError(field, f"Negative {field}: {count}")
        return count

    def read_long(self, field: str = "long") -> int:
        return _INT64.unpack(self.read_exact(_INT64.size, field))[0]

    def read_float(self, field: str = "float") -> float:
        return _FLOAT32.unpack(self.read_exact(_FLOAT32.size, field))[0]

    def read_utf(self, field: str = "string") -> str:
        length = _UINT16.unpack(self.read_exact(_UINT16.size, f"{field} length"))[0]
        raw = self.read_exact(length, field)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(field, f"Invalid UTF-8 in {field}: {e}") from e

    def read_points(self, count: int, field: str = "points") -> np.ndarray:
        """Read ``count`` points into a native-order structured array."""
        raw = self.read_exact(count * WIRE_POINT_DTYPE.itemsize, field)
        return np.frombuffer(raw, dtype=WIRE_POINT_DTYPE).astype(POINT_DTYPE)
