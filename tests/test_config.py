"""Tests for YAML library configuration."""

from pathlib import Path

import pytest

from gesture_library.config import LibraryConfig
from gesture_library.features import OrientationStyle, SequenceType
from gesture_library.gesture import Gesture, GestureStroke
from gesture_library.library import GestureLibrary
from gesture_library.profiler import LibraryProfiler


class TestLibraryConfig:
    def test_from_yaml(self, tmp_path):
        path = tmp_path / "library.yml"
        path.write_text(
            "path: gestures.bin\n"
            "sequence_type: invariant\n"
            "orientation_style: invariant\n"
            "profile: true\n"
        )
        config = LibraryConfig.from_yaml(path)
        assert config.path == "gestures.bin"
        assert config.sequence_type == SequenceType.INVARIANT
        assert config.orientation_style == OrientationStyle.INVARIANT
        assert config.profile

    def test_defaults(self, tmp_path):
        path = tmp_path / "library.yml"
        path.write_text("path: gestures.bin\n")
        config = LibraryConfig.from_yaml(path)
        assert config.sequence_type == SequenceType.SENSITIVE
        assert config.orientation_style == OrientationStyle.SENSITIVE
        assert not config.profile

    def test_missing_path(self, tmp_path):
        path = tmp_path / "library.yml"
        path.write_text("sequence_type: invariant\n")
        with pytest.raises(ValueError):
            LibraryConfig.from_yaml(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "library.yml"
        path.write_text("")
        with pytest.raises(ValueError):
            LibraryConfig.from_yaml(path)

    def test_bad_policy(self):
        with pytest.raises(ValueError):
            LibraryConfig.from_dict({"path": "x", "sequence_type": "sideways"})

    def test_yaml_round_trip(self, tmp_path):
        config = LibraryConfig(
            path="~/gestures.bin",
            sequence_type=SequenceType.INVARIANT,
            profile=True,
        )
        path = tmp_path / "library.yml"
        config.to_yaml(path)
        assert LibraryConfig.from_yaml(path) == config

    def test_resolved_path_expands_user(self):
        config = LibraryConfig(path="~/gestures.bin")
        assert config.resolved_path == Path.home() / "gestures.bin"


class TestFromConfig:
    def test_library_from_config(self, tmp_path):
        config = LibraryConfig(
            path=str(tmp_path / "gestures.bin"),
            sequence_type=SequenceType.INVARIANT,
            orientation_style=OrientationStyle.INVARIANT,
            profile=True,
        )
        library = GestureLibrary.from_config(config)
        assert library.path == tmp_path / "gestures.bin"
        assert library.sequence_type == SequenceType.INVARIANT
        assert library.orientation_style == OrientationStyle.INVARIANT
        assert isinstance(library.profiler, LibraryProfiler)

    def test_no_profiler_by_default(self, tmp_path):
        library = GestureLibrary.from_config(LibraryConfig(path=str(tmp_path / "g.bin")))
        assert library.profiler is None

    def test_configured_library_persists(self, tmp_path):
        config = LibraryConfig(path=str(tmp_path / "g.bin"), sequence_type=SequenceType.INVARIANT)
        library = GestureLibrary.from_config(config)
        library.add_gesture("cross", Gesture([
            GestureStroke([(0, 0, 0), (1, 1, 1)]),
            GestureStroke([(1, 0, 2), (0, 1, 3)]),
        ]))
        assert library.save()
        assert GestureLibrary.from_config(config).load()
