"""Running timings for gesture library operations.

The library opens a stage around feature extraction, classification and
each load or save of the store file. Every stage keeps running totals
only, so a long-lived library does not accumulate samples.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator


@dataclass
class StageTiming:
    """Running totals for one stage, in milliseconds."""
    calls: int = 0
    total_ms: float = 0.0
    last_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.calls if self.calls else 0.0

    def record(self, elapsed_ms: float):
        self.calls += 1
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms
        self.min_ms = min(self.min_ms, elapsed_ms)
        self.max_ms = max(self.max_ms, elapsed_ms)


class LibraryProfiler:
    """Collects stage timings from one or more gesture libraries.

    Usage:
        profiler = LibraryProfiler()
        library = GestureLibrary("gestures.bin", profiler=profiler)
        library.load()
        print(profiler.summary())
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._lock = threading.Lock()
        self._timings: dict[str, StageTiming] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block as ``name``. Blocks that raise are not recorded."""
        if not self.enabled:
            yield
            return

        start = time.perf_counter()
        yield
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        with self._lock:
            self._timings.setdefault(name, StageTiming()).record(elapsed_ms)

    def timing(self, name: str) -> StageTiming | None:
        with self._lock:
            timing = self._timings.get(name)
            return None if timing is None else StageTiming(**vars(timing))

    def last_ms(self, name: str) -> float | None:
        timing = self.timing(name)
        return timing.last_ms if timing else None

    def summary(self) -> dict[str, dict]:
        """Timings of every stage that has completed at least once."""
        with self._lock:
            return {
                name: {
                    "calls": t.calls,
                    "avg_ms": round(t.avg_ms, 3),
                    "min_ms": round(t.min_ms, 3),
                    "max_ms": round(t.max_ms, 3),
                    "last_ms": round(t.last_ms, 3),
                }
                for name, t in self._timings.items()
            }

    def reset(self):
        with self._lock:
            self._timings.clear()
