"""Shared reference ID counter for one insertion pass."""

from __future__ import annotations

import threading

from parse.models import MAX_REFERENCE_ID


class ReferenceIdOverflowError(Exception):
    """Raised when the next ID would not fit in an annotation."""


class ReferenceAllocator:
    """Hands out unique, ascending reference IDs across worker threads."""

    def __init__(self, start: int) -> None:
        self._next = start
        self._lock = threading.Lock()

    @property
    def next_value(self) -> int:
        with self._lock:
            return self._next

    def fetch_and_increment(self) -> int:
        with self._lock:
            value = self._next
            if value > MAX_REFERENCE_ID:
                msg = f"Reference ID {value} exceeds {MAX_REFERENCE_ID}"
                raise ReferenceIdOverflowError(msg)
            self._next = value + 1
            return value


__all__ = ["ReferenceAllocator", "ReferenceIdOverflowError"]
