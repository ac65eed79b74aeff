"""Tests for the big-endian binary reader and writer."""

import io

import numpy as np
import pytest

from gesture_library.errors import DecodeError
from gesture_library.stream import POINT_DTYPE, READ_CHUNK_SIZE, DataReader, DataWriter


def write(fn):
    buf = io.BytesIO()
    fn(DataWriter(buf))
    return buf.getvalue()


class TestDataWriter:
    def test_big_endian(self):
        assert write(lambda w: w.write_short(1)) == b"\x00\x01"
        assert write(lambda w: w.write_int(258)) == b"\x00\x00\x01\x02"
        assert write(lambda w: w.write_long(1)) == b"\x00" * 7 + b"\x01"

    def test_utf_prefix(self):
        data = write(lambda w: w.write_utf("héllo"))
        assert data[:2] == b"\x00\x06"
        assert data[2:].decode("utf-8") == "héllo"

    def test_utf_too_long(self):
        with pytest.raises(ValueError):
            write(lambda w: w.write_utf("x" * 70000))

    def test_points_size(self):
        points = np.zeros(3, dtype=POINT_DTYPE)
        assert len(write(lambda w: w.write_points(points))) == 48


class TestDataReader:
    def test_round_trip_values(self):
        def fill(w):
            w.write_short(-2)
            w.write_int(123456)
            w.write_long(-(2**50))
            w.write_float(0.5)
            w.write_utf("circle")

        reader = DataReader(io.BytesIO(write(fill)))
        assert reader.read_short() == -2
        assert reader.read_int() == 123456
        assert reader.read_long() == -(2**50)
        assert reader.read_float() == 0.5
        assert reader.read_utf() == "circle"

    def test_short_read_names_field(self):
        reader = DataReader(io.BytesIO(b"\x00"))
        with pytest.raises(DecodeError, match="entry count"):
            reader.read_int("entry count")

    def test_truncated_string(self):
        reader = DataReader(io.BytesIO(b"\x00\x05abc"))
        with pytest.raises(DecodeError) as exc:
            reader.read_utf("entry name")
        assert exc.value.field == "entry name"

    def test_invalid_utf8(self):
        reader = DataReader(io.BytesIO(b"\x00\x02\xff\xfe"))
        with pytest.raises(DecodeError):
            reader.read_utf("entry name")

    def test_read_points(self):
        points = np.zeros(2, dtype=POINT_DTYPE)
        points["x"] = [1.5, -2.25]
        points["t"] = [7, 2**40]
        reader = DataReader(io.BytesIO(write(lambda w: w.write_points(points))))
        restored = reader.read_points(2)
        assert restored.dtype == POINT_DTYPE
        assert restored.tobytes() == points.tobytes()

    def test_huge_count_on_short_stream(self):
        reader = DataReader(io.BytesIO(b"\x00" * 32))
        with pytest.raises(DecodeError) as exc:
            reader.read_points(0x7FFFFFFF, "stroke points")
        assert exc.value.field == "stroke points"

    def test_read_spans_chunks(self):
        data = bytes(range(256)) * (READ_CHUNK_SIZE // 256 * 2 + 1)
        reader = DataReader(io.BytesIO(data))
        assert reader.read_exact(len(data), "blob") == data
