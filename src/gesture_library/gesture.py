"""Gesture geometry: timestamped 2-D points grouped into strokes.

A ``GestureStroke`` is one continuous path, stored as a read-only numpy
structured array with fields ``x`` (float32), ``y`` (float32) and ``t``
(int64 timestamp). A ``Gesture`` is an ordered list of strokes with a
process-unique 64-bit identifier.

Binary layout of one gesture (big-endian):

    int64   gesture id
    int32   number of strokes
    per stroke:
        int32   number of points
        per point: float32 x, float32 y, int64 timestamp
"""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from gesture_library.errors import DecodeError, InvalidInputError
from gesture_library.stream import POINT_DTYPE, DataReader, DataWriter

_id_lock = threading.Lock()
_id_counter = itertools.count(int(time.time() * 1000))


def next_gesture_id() -> int:
    """Allocate a new gesture identifier. Identifiers are never reused."""
    with _id_lock:
        return next(_id_counter)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounds of a set of points."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0

    def union(self, other: BoundingBox) -> BoundingBox:
        return BoundingBox(
            left=min(self.left, other.left),
            top=min(self.top, other.top),
            right=max(self.right, other.right),
            bottom=max(self.bottom, other.bottom),
        )


def _as_points(points) -> np.ndarray:
    if isinstance(points, np.ndarray) and points.dtype.names is not None:
        arr = np.array(points, dtype=POINT_DTYPE)
    else:
        rows = [(float(x), float(y), int(t)) for x, y, t in points]
        arr = np.array(rows, dtype=POINT_DTYPE)
    arr.setflags(write=False)
    return arr


class GestureStroke:
    """An ordered, non-empty sequence of timestamped points.

    Args:
        points: Either a structured array with ``x``, ``y``, ``t`` fields or
            an iterable of ``(x, y, t)`` tuples.
    """

    def __init__(self, points):
        self._points = _as_points(points)
        if len(self._points) == 0:
            raise InvalidInputError("A stroke needs at least one point")
        if not (np.isfinite(self._points["x"]).all() and np.isfinite(self._points["y"]).all()):
            raise InvalidInputError("Stroke coordinates must be finite")

    @classmethod
    def from_arrays(
        cls, xs: Sequence[float], ys: Sequence[float], timestamps: Sequence[int]
    ) -> GestureStroke:
        if not (len(xs) == len(ys) == len(timestamps)):
            raise InvalidInputError("xs, ys and timestamps must have equal length")
        arr = np.empty(len(xs), dtype=POINT_DTYPE)
        arr["x"] = xs
        arr["y"] = ys
        arr["t"] = timestamps
        return cls(arr)

    @property
    def points(self) -> np.ndarray:
        """Read-only structured array of the stroke's points."""
        return self._points

    @property
    def xs(self) -> np.ndarray:
        return self._points["x"]

    @property
    def ys(self) -> np.ndarray:
        return self._points["y"]

    @property
    def timestamps(self) -> np.ndarray:
        return self._points["t"]

    @property
    def point_count(self) -> int:
        return len(self._points)

    def coordinates(self) -> np.ndarray:
        """Return an (N, 2) float64 array of x/y positions."""
        return np.column_stack([self.xs, self.ys]).astype(np.float64)

    @property
    def bounding_box(self) -> BoundingBox:
        xs, ys = self.xs, self.ys
        return BoundingBox(
            left=float(xs.min()), top=float(ys.min()),
            right=float(xs.max()), bottom=float(ys.max()),
        )

    @property
    def length(self) -> float:
        """Total path length along the stroke."""
        if self.point_count < 2:
            return 0.0
        diffs = np.diff(self.coordinates(), axis=0)
        return float(np.sum(np.linalg.norm(diffs, axis=1)))

    def __len__(self) -> int:
        return self.point_count

    def __eq__(self, other) -> bool:
        if not isinstance(other, GestureStroke):
            return NotImplemented
        return self._points.tobytes() == other._points.tobytes()

    __hash__ = None

    def __repr__(self) -> str:
        return f"GestureStroke(points={self.point_count})"

    def serialize(self, writer: DataWriter):
        writer.write_int(self.point_count)
        writer.write_points(self._points)

    @classmethod
    def deserialize(cls, reader: DataReader) -> GestureStroke:
        count = reader.read_count("point count")
        if count == 0:
            raise DecodeError("point count", "Stroke has no points")
        return cls(reader.read_points(count, "stroke points"))


class Gesture:
    """A gesture: one or more strokes with a unique identifier.

    Equality and hashing use the identifier only, so a gesture restored
    from disk compares equal to the one that was saved.
    """

    def __init__(
        self,
        strokes: Iterable[GestureStroke] = (),
        gesture_id: Optional[int] = None,
    ):
        self._id = next_gesture_id() if gesture_id is None else int(gesture_id)
        self._strokes: list[GestureStroke] = list(strokes)

    @property
    def gesture_id(self) -> int:
        return self._id

    @property
    def strokes(self) -> tuple[GestureStroke, ...]:
        return tuple(self._strokes)

    @property
    def stroke_count(self) -> int:
        return len(self._strokes)

    @property
    def point_count(self) -> int:
        return sum(s.point_count for s in self._strokes)

    def add_stroke(self, stroke: GestureStroke):
        """Append a stroke while the gesture is still being recorded."""
        self._strokes.append(stroke)

    @property
    def bounding_box(self) -> Optional[BoundingBox]:
        box = None
        for stroke in self._strokes:
            box = stroke.bounding_box if box is None else box.union(stroke.bounding_box)
        return box

    @property
    def length(self) -> float:
        return sum(s.length for s in self._strokes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Gesture):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"Gesture(id={self._id}, strokes={self.stroke_count}, "
            f"points={self.point_count})"
        )

    def same_geometry(self, other: Gesture) -> bool:
        """True when both gestures hold bit-identical stroke data."""
        return self._strokes == other._strokes

    def serialize(self, writer: DataWriter):
        writer.write_long(self._id)
        writer.write_int(len(self._strokes))
        for stroke in self._strokes:
            stroke.serialize(writer)

    @classmethod
    def deserialize(cls, reader: DataReader) -> Gesture:
        gesture_id = reader.read_long("gesture id")
        count = reader.read_count("stroke count")
        strokes = [GestureStroke.deserialize(reader) for _ in range(count)]
        return cls(strokes, gesture_id=gesture_id)

    def to_dict(self) -> dict:
        return {
            "id": self._id,
            "strokes": [
                [[float(p["x"]), float(p["y"]), int(p["t"])] for p in s.points]
                for s in self._strokes
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Gesture:
        strokes = [GestureStroke(points) for points in data.get("strokes", [])]
        return cls(strokes, gesture_id=data.get("id"))
