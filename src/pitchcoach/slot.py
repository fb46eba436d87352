"""Single-value handoff cell shared between threads."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class LatestValue(Generic[T]):
    """
    Lock-protected slot holding only the newest value.

    Writers overwrite, readers never wait for a fresh value and never see a
    backlog: a reader that falls behind simply gets whatever was written last.
    """

    def __init__(self, initial: T | None = None) -> None:
        self._lock = threading.Lock()
        self._value: T | None = initial
        self._version = 0

    def set(self, value: T | None) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    def get(self) -> T | None:
        with self._lock:
            return self._value

    def get_with_version(self) -> tuple[T | None, int]:
        """Value plus a counter that increases on every write."""
        with self._lock:
            return self._value, self._version

    def clear(self) -> None:
        self.set(None)
