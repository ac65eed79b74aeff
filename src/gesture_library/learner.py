"""Instance-based learning over extracted gesture features.

The learner keeps every training instance and scores a query by its
distance to each of them. A label's score is the weight of its nearest
exemplar, so adding an example never lowers the score of its label.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np

from gesture_library.errors import PolicyMismatchError
from gesture_library.features import Instance, OrientationStyle, SequenceType

# Distances below this are treated as exact matches
MIN_DISTANCE = 1e-6


@dataclass(frozen=True)
class Prediction:
    """A candidate label and its score, higher = better match."""
    name: str
    score: float


class Learner(ABC):
    """Stores labeled instances and ranks labels for a query vector."""

    def __init__(self):
        self._instances: dict[int, Instance] = {}

    def add_instance(self, instance: Instance):
        """Add an instance, replacing any previous one for the same gesture."""
        self._instances[instance.gesture_id] = instance

    def remove_instance(self, gesture_id: int):
        """Remove the instance for a gesture. Unknown ids are ignored."""
        self._instances.pop(gesture_id, None)

    def remove_instances(self, label: str):
        """Remove every instance trained under ``label``."""
        doomed = [gid for gid, inst in self._instances.items() if inst.label == label]
        for gid in doomed:
            del self._instances[gid]

    def get_instance(self, gesture_id: int) -> Optional[Instance]:
        return self._instances.get(gesture_id)

    def clear(self):
        self._instances.clear()

    @property
    def instances(self) -> list[Instance]:
        return list(self._instances.values())

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, gesture_id: int) -> bool:
        return gesture_id in self._instances

    @abstractmethod
    def classify(
        self,
        sequence_type: SequenceType,
        vector: np.ndarray,
        orientation_style: Optional[OrientationStyle] = None,
    ) -> list[Prediction]:
        """Rank labels for a query vector, best first."""


class InstanceLearner(Learner):
    """Nearest-exemplar classifier.

    Distance is Euclidean for sequence-invariant vectors and the angle
    between unit vectors for sequence-sensitive ones. Each stored instance
    contributes a weight of ``1 / distance``; a label scores the best weight
    among its instances. Ties are ordered by label name.
    """

    def classify(
        self,
        sequence_type: SequenceType,
        vector: np.ndarray,
        orientation_style: Optional[OrientationStyle] = None,
    ) -> list[Prediction]:
        labeled = [inst for inst in self._instances.values() if inst.label is not None]
        if not labeled:
            return []

        query = np.asarray(vector, dtype=np.float64)
        for inst in labeled:
            self._check_compatible(inst, sequence_type, query, orientation_style)

        best: dict[str, float] = {}
        for inst in labeled:
            distance = self._distance(sequence_type, query, inst.vector)
            weight = 1.0 / max(distance, MIN_DISTANCE)
            if weight > best.get(inst.label, 0.0):
                best[inst.label] = weight

        ranked = sorted(best.items(), key=lambda item: (-item[1], item[0]))
        return [Prediction(name=name, score=score) for name, score in ranked]

    @staticmethod
    def _check_compatible(
        inst: Instance,
        sequence_type: SequenceType,
        query: np.ndarray,
        orientation_style: Optional[OrientationStyle],
    ):
        if inst.sequence_type != sequence_type:
            raise PolicyMismatchError(
                f"Instance for gesture {inst.gesture_id} was extracted as "
                f"{inst.sequence_type.value}, query is {sequence_type.value}"
            )
        if len(inst.vector) != len(query):
            raise PolicyMismatchError(
                f"Vector length mismatch: stored {len(inst.vector)}, query {len(query)}"
            )
        if orientation_style is not None and inst.orientation_style != orientation_style:
            raise PolicyMismatchError(
                f"Instance for gesture {inst.gesture_id} has orientation "
                f"{getattr(inst.orientation_style, 'value', None)}, "
                f"query is {orientation_style.value}"
            )

    @staticmethod
    def _distance(
        sequence_type: SequenceType, query: np.ndarray, stored: np.ndarray
    ) -> float:
        stored = stored.astype(np.float64)
        if sequence_type == SequenceType.SENSITIVE:
            # Both vectors are unit length (or zero)
            cos_sim = float(np.dot(query, stored))
            return math.acos(max(-1.0, min(1.0, cos_sim)))
        return float(np.linalg.norm(query - stored))
