"""Feature extraction: gesture geometry -> fixed-length instance vectors.

Two extraction policies:

- SEQUENCE_INVARIANT: every segment of every stroke is rasterized onto a
  16x16 grid. Cells keep the maximum coverage they receive, so the result
  does not depend on stroke order or count. 256 features.
- SEQUENCE_SENSITIVE: a single stroke is resampled to 16 evenly spaced
  points, centred on its centroid and flattened to 32 features scaled to
  unit length. With ORIENTATION_INVARIANT the points are first rotated so
  the first one lies on the positive x axis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from gesture_library.errors import InvalidInputError
from gesture_library.gesture import Gesture

GRID_SIZE = 16
SEQUENCE_SAMPLES = 16

# Rasterization step along a segment, in grid cells
_RASTER_STEP = 0.5


class SequenceType(Enum):
    """Whether stroke and point order affect the feature vector."""
    INVARIANT = "invariant"
    SENSITIVE = "sensitive"


class OrientationStyle(Enum):
    """Whether absolute rotation affects sequence-sensitive features."""
    INVARIANT = "invariant"
    SENSITIVE = "sensitive"


SEQUENCE_INVARIANT = SequenceType.INVARIANT
SEQUENCE_SENSITIVE = SequenceType.SENSITIVE
ORIENTATION_INVARIANT = OrientationStyle.INVARIANT
ORIENTATION_SENSITIVE = OrientationStyle.SENSITIVE


@dataclass(eq=False)
class Instance:
    """A feature vector tied to the gesture it came from.

    ``orientation_style`` is None for sequence-invariant instances, where
    orientation plays no part.
    """
    vector: np.ndarray
    label: Optional[str]
    gesture_id: int
    sequence_type: SequenceType
    orientation_style: Optional[OrientationStyle] = None

    def __len__(self) -> int:
        return len(self.vector)


def vector_length(sequence_type: SequenceType) -> int:
    """Feature vector length produced under ``sequence_type``."""
    if sequence_type == SequenceType.INVARIANT:
        return GRID_SIZE * GRID_SIZE
    return SEQUENCE_SAMPLES * 2


def extract(
    gesture: Gesture,
    sequence_type: SequenceType,
    orientation_style: OrientationStyle = OrientationStyle.SENSITIVE,
    label: Optional[str] = None,
) -> Instance:
    """Build an instance from a gesture under the given policies.

    Raises:
        InvalidInputError: The gesture has no strokes, or has more than one
            stroke under SEQUENCE_SENSITIVE.
    """
    if gesture.stroke_count == 0:
        raise InvalidInputError(f"Gesture {gesture.gesture_id} has no strokes")

    if sequence_type == SequenceType.INVARIANT:
        vector = spatial_sampling(gesture)
        orientation = None
    else:
        if gesture.stroke_count > 1:
            raise InvalidInputError(
                f"Sequence-sensitive extraction needs a single stroke, "
                f"gesture {gesture.gesture_id} has {gesture.stroke_count}"
            )
        vector = temporal_sampling(gesture.strokes[0].coordinates(), orientation_style)
        orientation = orientation_style

    vector = vector.astype(np.float32)
    vector.setflags(write=False)
    return Instance(
        vector=vector,
        label=label,
        gesture_id=gesture.gesture_id,
        sequence_type=sequence_type,
        orientation_style=orientation,
    )


def spatial_sampling(gesture: Gesture, grid_size: int = GRID_SIZE) -> np.ndarray:
    """Rasterize all strokes into a grid, preserving aspect ratio.

    Returns:
        Flattened grid of coverage values in [0, 1], shape (grid_size ** 2,).
    """
    paths = [s.coordinates() for s in gesture.strokes]
    all_points = np.concatenate(paths)
    lo = all_points.min(axis=0)
    hi = all_points.max(axis=0)
    center = (lo + hi) / 2.0
    span = float(np.max(hi - lo))

    target = grid_size - 1
    scale = target / span if span > 1e-8 else 0.0

    grid = np.zeros((grid_size, grid_size), dtype=np.float64)
    for path in paths:
        mapped = (path - center) * scale + target / 2.0
        _splat(grid, _densify(mapped))

    return grid.flatten()


def _densify(path: np.ndarray) -> np.ndarray:
    """Insert intermediate samples so no gap exceeds the raster step."""
    if len(path) < 2:
        return path

    samples = [path[:1]]
    for a, b in zip(path[:-1], path[1:]):
        seg_len = float(np.linalg.norm(b - a))
        n = max(1, int(math.ceil(seg_len / _RASTER_STEP)))
        t = np.arange(1, n + 1, dtype=np.float64)[:, None] / n
        samples.append(a + t * (b - a))
    return np.concatenate(samples)


def _splat(grid: np.ndarray, samples: np.ndarray):
    """Bilinearly deposit samples into grid cells, keeping the max per cell."""
    size = grid.shape[0]
    pts = np.clip(samples, 0.0, size - 1)
    x0 = np.minimum(np.floor(pts[:, 0]).astype(np.int64), size - 2)
    y0 = np.minimum(np.floor(pts[:, 1]).astype(np.int64), size - 2)
    fx = pts[:, 0] - x0
    fy = pts[:, 1] - y0

    np.maximum.at(grid, (y0, x0), (1 - fx) * (1 - fy))
    np.maximum.at(grid, (y0, x0 + 1), fx * (1 - fy))
    np.maximum.at(grid, (y0 + 1, x0), (1 - fx) * fy)
    np.maximum.at(grid, (y0 + 1, x0 + 1), fx * fy)


def temporal_sampling(
    points: np.ndarray,
    orientation_style: OrientationStyle = OrientationStyle.SENSITIVE,
    n_points: int = SEQUENCE_SAMPLES,
) -> np.ndarray:
    """Resample a path, centre it and optionally remove its rotation.

    Args:
        points: Stroke coordinates, shape (N, 2).
        orientation_style: ORIENTATION_INVARIANT rotates the path so its
            first sample sits at angle zero around the centroid.
        n_points: Number of resampled points.

    Returns:
        Unit-length vector of shape (n_points * 2,), or zeros for a path
        with no extent.
    """
    pts = resample_path(points, n_points)
    pts = pts - pts.mean(axis=0)

    if orientation_style == OrientationStyle.INVARIANT:
        angle = math.atan2(pts[0, 1], pts[0, 0])
        cos_a, sin_a = math.cos(-angle), math.sin(-angle)
        rotation = np.array([[cos_a, -sin_a], [sin_a, cos_a]])
        pts = pts @ rotation.T

    vector = pts.flatten()
    norm = float(np.linalg.norm(vector))
    if norm > 1e-12:
        vector = vector / norm
    return vector


def resample_path(points: np.ndarray, n_points: int = SEQUENCE_SAMPLES) -> np.ndarray:
    """Resample a path to a fixed number of evenly-spaced points."""
    points = np.asarray(points, dtype=np.float64)
    if len(points) < 2:
        return np.tile(points[0], (n_points, 1))

    # Cumulative arc length
    diffs = np.diff(points, axis=0)
    seg_lengths = np.linalg.norm(diffs, axis=1)
    cum_length = np.concatenate([[0.0], np.cumsum(seg_lengths)])
    total = cum_length[-1]

    if total < 1e-8:
        return np.tile(points[0], (n_points, 1))

    target_lengths = np.linspace(0, total, n_points)
    resampled = np.zeros((n_points, points.shape[1]), dtype=np.float64)

    for i, target in enumerate(target_lengths):
        idx = np.searchsorted(cum_length, target, side="right") - 1
        idx = min(idx, len(points) - 2)
        seg_len = seg_lengths[idx] if seg_lengths[idx] > 1e-8 else 1e-8
        t_param = (target - cum_length[idx]) / seg_len
        resampled[i] = points[idx] + t_param * diffs[idx]

    return resampled
