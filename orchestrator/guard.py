"""Single-flight guard: at most one active run per run type."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterator, Set

from utils.exceptions import RunInProgressError


class RunGuard:
    """Process-local guard shared by every entry point that starts a run."""

    def __init__(self) -> None:
        self._active: Set[str] = set()
        self._lock = Lock()

    def acquire(self, run_type: str) -> bool:
        """Mark ``run_type`` active. Returns False when it already is."""
        with self._lock:
            if run_type in self._active:
                return False
            self._active.add(run_type)
            return True

    def release(self, run_type: str) -> None:
        with self._lock:
            self._active.discard(run_type)

    def is_active(self, run_type: str) -> bool:
        with self._lock:
            return run_type in self._active

    @contextmanager
    def hold(self, run_type: str) -> Iterator[None]:
        if not self.acquire(run_type):
            raise RunInProgressError("run already in progress", {"run_type": run_type})
        try:
            yield
        finally:
            self.release(run_type)
