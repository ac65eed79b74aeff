"""Gesture library: labeled gesture examples, recognition and persistence.

File format (big-endian):

    Header
        int16   file format version (1)
        int32   number of entries
    Entry
        uint16  entry name length in bytes, then UTF-8 entry name
        int32   number of gestures
    Gesture
        int64   gesture id
        int32   number of strokes
    Stroke
        int32   number of points
    Point
        float32 x
        float32 y
        int64   timestamp
"""

from __future__ import annotations

import contextlib
import logging
import os
import stat
import struct
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional

from gesture_library.config import LibraryConfig
from gesture_library.errors import DecodeError, GestureLibraryError, InvalidInputError
from gesture_library.features import (
    Instance,
    OrientationStyle,
    SequenceType,
    extract,
)
from gesture_library.gesture import Gesture
from gesture_library.learner import InstanceLearner, Learner, Prediction
from gesture_library.profiler import LibraryProfiler
from gesture_library.stream import MAX_UTF_LENGTH, DataReader, DataWriter

logger = logging.getLogger("gesture_library.library")

FILE_FORMAT_VERSION = 1
IO_BUFFER_SIZE = 32 * 1024


class GestureLibrary:
    """Maintains named gesture examples and predicts labels for new gestures.

    Entries map a name to the gestures recorded for it. Every stored gesture
    has exactly one instance in the learner; both indexes are updated
    together by ``_attach`` and ``_detach``.

    Changing ``sequence_type`` or ``orientation_style`` does not re-extract
    stored instances. Recognizing under a policy that differs from the
    stored instances raises ``PolicyMismatchError``; call ``rebuild()`` after
    a policy change to re-extract everything.

    Usage:
        library = GestureLibrary("~/.gestures/library.bin")
        library.load()
        library.add_gesture("circle", gesture)
        predictions = library.recognize(query)
        library.save()
    """

    def __init__(
        self,
        path: str | Path,
        sequence_type: SequenceType = SequenceType.SENSITIVE,
        orientation_style: OrientationStyle = OrientationStyle.SENSITIVE,
        learner: Optional[Learner] = None,
        profiler: Optional[LibraryProfiler] = None,
    ):
        self._path = Path(path).expanduser()
        self._sequence_type = sequence_type
        self._orientation_style = orientation_style
        self._learner = learner if learner is not None else InstanceLearner()
        self._profiler = profiler

        self._named_gestures: dict[str, list[Gesture]] = {}
        self._changed = False
        self._lock = threading.RLock()
        self._listeners: list[Callable[[list[Prediction]], None]] = []

    @classmethod
    def from_config(cls, config: LibraryConfig, **kwargs) -> GestureLibrary:
        """Create a library from a ``LibraryConfig``."""
        if config.profile and "profiler" not in kwargs:
            kwargs["profiler"] = LibraryProfiler()
        return cls(
            config.resolved_path,
            sequence_type=config.sequence_type,
            orientation_style=config.orientation_style,
            **kwargs,
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def sequence_type(self) -> SequenceType:
        return self._sequence_type

    @sequence_type.setter
    def sequence_type(self, value: SequenceType):
        with self._lock:
            self._sequence_type = value

    @property
    def orientation_style(self) -> OrientationStyle:
        return self._orientation_style

    @orientation_style.setter
    def orientation_style(self, value: OrientationStyle):
        with self._lock:
            self._orientation_style = value

    @property
    def learner(self) -> Learner:
        return self._learner

    @property
    def profiler(self) -> Optional[LibraryProfiler]:
        return self._profiler

    @property
    def is_dirty(self) -> bool:
        """True when there are changes that have not been saved."""
        return self._changed

    def on_predictions(self, callback: Callable[[list[Prediction]], None]):
        """Register a callback that receives every list of predictions."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get_gesture_entries(self) -> set[str]:
        """Names of all entries in the library."""
        with self._lock:
            return set(self._named_gestures)

    def get_gestures(self, entry_name: str) -> Optional[list[Gesture]]:
        """Copy of the gestures stored under ``entry_name``, or None."""
        with self._lock:
            gestures = self._named_gestures.get(entry_name)
            return list(gestures) if gestures is not None else None

    def add_gesture(self, entry_name: Optional[str], gesture: Gesture):
        """Add a gesture example under ``entry_name``.

        A blank entry name is ignored.

        Raises:
            InvalidInputError: The gesture cannot be extracted under the
                current policy, is already stored in the library, or the
                name cannot be written to the store file.
        """
        if not entry_name or not entry_name.strip():
            return
        self._check_entry_name(entry_name)

        with self._lock:
            if gesture.gesture_id in self._learner:
                raise InvalidInputError(
                    f"Gesture {gesture.gesture_id} is already in the library"
                )
            instance = self._extract(gesture, entry_name)
            self._attach(self._named_gestures, self._learner, entry_name, gesture, instance)
            self._changed = True

    @staticmethod
    def _check_entry_name(entry_name: str):
        try:
            encoded = entry_name.encode("utf-8")
        except UnicodeEncodeError as e:
            raise InvalidInputError(f"Entry name is not valid UTF-8 text: {e}") from e
        if len(encoded) > MAX_UTF_LENGTH:
            raise InvalidInputError(
                f"Entry name too long: {len(encoded)} bytes (max {MAX_UTF_LENGTH})"
            )

    def remove_gesture(self, entry_name: str, gesture: Gesture):
        """Remove a gesture from an entry, dropping the entry once it is empty."""
        with self._lock:
            if self._detach(entry_name, gesture):
                self._changed = True

    def remove_entry(self, entry_name: str):
        """Remove an entry and all of its gestures."""
        with self._lock:
            if self._named_gestures.pop(entry_name, None) is None:
                return
            self._learner.remove_instances(entry_name)
            self._changed = True

    def _attach(
        self,
        named: dict[str, list[Gesture]],
        learner: Learner,
        entry_name: str,
        gesture: Gesture,
        instance: Instance,
    ):
        named.setdefault(entry_name, []).append(gesture)
        learner.add_instance(instance)

    def _detach(self, entry_name: str, gesture: Gesture) -> bool:
        gestures = self._named_gestures.get(entry_name)
        if gestures is None:
            return False

        for i, stored in enumerate(gestures):
            if stored.gesture_id == gesture.gesture_id:
                del gestures[i]
                break
        else:
            return False

        if not gestures:
            del self._named_gestures[entry_name]
        self._learner.remove_instance(gesture.gesture_id)
        return True

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    def recognize(self, gesture: Gesture) -> list[Prediction]:
        """Predict entry names for a gesture, best match first.

        Raises:
            InvalidInputError: The gesture cannot be extracted under the
                current policy.
            PolicyMismatchError: Stored instances were extracted under a
                different policy.
        """
        with self._lock:
            instance = self._extract(gesture, None)
            with self._stage("classification"):
                predictions = self._learner.classify(
                    instance.sequence_type,
                    instance.vector,
                    instance.orientation_style,
                )

        for callback in self._listeners:
            callback(list(predictions))
        return predictions

    def rebuild(self):
        """Re-extract every stored gesture under the current policies.

        Nothing changes if any gesture cannot be extracted.
        """
        with self._lock:
            instances = [
                self._extract(gesture, name)
                for name, gestures in self._named_gestures.items()
                for gesture in gestures
            ]
            self._learner.clear()
            for instance in instances:
                self._learner.add_instance(instance)
            logger.debug("Rebuilt %d instances", len(instances))

    def _extract(self, gesture: Gesture, label: Optional[str]) -> Instance:
        with self._stage("extraction"):
            return extract(gesture, self._sequence_type, self._orientation_style, label)

    def _stage(self, name: str):
        if self._profiler is None:
            return contextlib.nullcontext()
        return self._profiler.stage(name)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """Write the library to its file if anything changed.

        The file is replaced atomically; on failure the previous file is
        left as it was. Returns True on success or when nothing changed.
        """
        with self._lock:
            if not self._changed:
                return True

            tmp_path = None
            try:
                with self._stage("save"):
                    self._path.parent.mkdir(parents=True, exist_ok=True)
                    fd, tmp_path = tempfile.mkstemp(
                        prefix=f".{self._path.name}.", suffix=".tmp",
                        dir=self._path.parent,
                    )
                    with os.fdopen(fd, "wb", buffering=IO_BUFFER_SIZE) as f:
                        # mkstemp creates 0600; keep the mode a plain open() would give
                        os.fchmod(f.fileno(), self._file_mode())
                        self._write_format_v1(DataWriter(f))
                        f.flush()
                        os.fsync(f.fileno())
                    os.replace(tmp_path, self._path)
                    tmp_path = None
            except (OSError, ValueError, struct.error) as e:
                logger.warning("Failed to save gestures to %s: %s", self._path, e)
                return False
            finally:
                if tmp_path is not None:
                    self._discard_temp(Path(tmp_path))

            self._changed = False
            if self._profiler is not None and self._profiler.enabled:
                logger.debug("Saving gestures library = %.1f ms", self._profiler.last_ms("save"))
            return True

    def _file_mode(self) -> int:
        try:
            return stat.S_IMODE(self._path.stat().st_mode)
        except FileNotFoundError:
            umask = os.umask(0)
            os.umask(umask)
            return 0o666 & ~umask

    @staticmethod
    def _discard_temp(path: Path):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temporary file %s: %s", path, e)

    def _write_format_v1(self, writer: DataWriter):
        writer.write_short(FILE_FORMAT_VERSION)
        writer.write_int(len(self._named_gestures))

        for name, examples in self._named_gestures.items():
            writer.write_utf(name)
            writer.write_int(len(examples))
            for gesture in examples:
                gesture.serialize(writer)

    def load(self) -> bool:
        """Replace the library contents with the file's.

        Returns False when the file does not exist or cannot be read; the
        in-memory library is left untouched in that case. A file with an
        unrecognized version loads as an empty library.
        """
        with self._lock:
            if not self._path.is_file():
                return False

            try:
                with self._stage("load"):
                    with open(self._path, "rb", buffering=IO_BUFFER_SIZE) as f:
                        reader = DataReader(f)
                        version = reader.read_short("file version")
                        named, instances = self._read_format(version, reader)
            except (OSError, GestureLibraryError, ValueError) as e:
                logger.warning("Failed to load gestures from %s: %s", self._path, e)
                return False

            self._named_gestures = named
            self._learner.clear()
            for instance in instances:
                self._learner.add_instance(instance)
            self._changed = False

            if self._profiler is not None and self._profiler.enabled:
                logger.debug("Loading gestures library = %.1f ms", self._profiler.last_ms("load"))
            return True

    def _read_format(
        self, version: int, reader: DataReader
    ) -> tuple[dict[str, list[Gesture]], list[Instance]]:
        if version == 1:
            return self._read_format_v1(reader)
        logger.warning(
            "Unknown gesture file version %d in %s, no entries loaded", version, self._path
        )
        return {}, []

    def _read_format_v1(
        self, reader: DataReader
    ) -> tuple[dict[str, list[Gesture]], list[Instance]]:
        named: dict[str, list[Gesture]] = {}
        staging = InstanceLearner()

        entry_count = reader.read_count("entry count")
        for _ in range(entry_count):
            name = reader.read_utf("entry name")
            gesture_count = reader.read_count("gesture count")
            for _ in range(gesture_count):
                gesture = Gesture.deserialize(reader)
                if gesture.gesture_id in staging:
                    raise DecodeError("gesture id", f"Duplicate gesture id {gesture.gesture_id}")
                instance = self._extract(gesture, name)
                self._attach(named, staging, name, gesture, instance)

        return named, staging.instances

    def __len__(self) -> int:
        """Total number of stored gestures."""
        with self._lock:
            return sum(len(g) for g in self._named_gestures.values())

    def __contains__(self, entry_name: str) -> bool:
        with self._lock:
            return entry_name in self._named_gestures
