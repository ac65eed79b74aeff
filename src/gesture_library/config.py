"""Gesture library configuration loaded from YAML.

Example ``library.yml``:

    path: ~/.gestures/library.bin
    sequence_type: invariant
    orientation_style: sensitive
    profile: false
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from gesture_library.features import OrientationStyle, SequenceType


@dataclass
class LibraryConfig:
    """Settings for constructing a ``GestureLibrary``."""
    path: str
    sequence_type: SequenceType = SequenceType.SENSITIVE
    orientation_style: OrientationStyle = OrientationStyle.SENSITIVE
    profile: bool = False

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "sequence_type": self.sequence_type.value,
            "orientation_style": self.orientation_style.value,
            "profile": self.profile,
        }

    @classmethod
    def from_dict(cls, data: dict) -> LibraryConfig:
        if not data.get("path"):
            raise ValueError("Library config requires a 'path'")
        return cls(
            path=str(data["path"]),
            sequence_type=SequenceType(data.get("sequence_type", "sensitive")),
            orientation_style=OrientationStyle(data.get("orientation_style", "sensitive")),
            profile=bool(data.get("profile", False)),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> LibraryConfig:
        """Load settings from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
