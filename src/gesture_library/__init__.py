"""GestureLibrary - trainable stroke gesture store with instance-based recognition."""

__version__ = "0.1.0"

from gesture_library.errors import (
    GestureLibraryError,
    DecodeError,
    InvalidInputError,
    PolicyMismatchError,
)
from gesture_library.gesture import Gesture, GestureStroke, BoundingBox
from gesture_library.features import (
    Instance,
    SequenceType,
    OrientationStyle,
    SEQUENCE_INVARIANT,
    SEQUENCE_SENSITIVE,
    ORIENTATION_INVARIANT,
    ORIENTATION_SENSITIVE,
    extract,
)
from gesture_library.learner import Learner, InstanceLearner, Prediction
from gesture_library.library import GestureLibrary
from gesture_library.config import LibraryConfig
from gesture_library.profiler import LibraryProfiler
