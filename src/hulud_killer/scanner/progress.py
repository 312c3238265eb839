"""Progress reporting for long-running scans.

The engine calls the progress callback from worker threads, once per file,
concurrently. Observers must do their own locking; ``ProgressTracker`` is
the thread-safe observer used by the CLI.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

# (files completed so far, total files, path just completed)
ProgressCallback = Callable[[int, int, str], None]


def noop_progress(completed: int, total: int, path: str) -> None:
    """Progress callback for batch scans with no observer."""


class ProgressCounter:
    """Per-scan completed-files counter shared by all workers."""

    def __init__(self, total: int, on_progress: ProgressCallback) -> None:
        self._total = total
        self._on_progress = on_progress
        self._completed = 0
        self._lock = threading.Lock()

    def advance(self, path: str) -> int:
        """Count one finished file and notify the observer."""
        with self._lock:
            self._completed += 1
            current = self._completed
        # Called outside the lock; the callback synchronizes itself
        self._on_progress(current, self._total, path)
        return current


@dataclass(frozen=True)
class ProgressSnapshot:
    """Consistent copy of a tracker's state."""

    completed: int
    total: int
    current_path: str
    done: bool


@dataclass
class ProgressTracker:
    """Thread-safe progress observer.

    Worker threads call update() (lock-guarded); a display thread reads
    through snapshot().
    """

    _completed: int = 0
    _total: int = 0
    _current_path: str = ""
    _done: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def update(self, completed: int, total: int, path: str) -> None:
        """Record one completion (usable directly as a ProgressCallback)."""
        with self._lock:
            # Callbacks can arrive out of order across workers
            if completed >= self._completed:
                self._completed = completed
                self._current_path = path
            self._total = total

    def finish(self) -> None:
        with self._lock:
            self._done = True
            self._completed = self._total

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(
                completed=self._completed,
                total=self._total,
                current_path=self._current_path,
                done=self._done,
            )
