from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Sequence

from .result import Status
from .tree import MISSING, KeyPath, is_prefix

__all__ = ["Cache"]

log = logging.getLogger(__name__)


class Cache:
    """Thread-safe key-path -> value table.

    Writes and invalidations are serialised by a lock; reads go straight to
    the underlying dict, whose single-key lookups are atomic, so a reader
    sees either the old or the new entry. Knows nothing about files or
    notifications.
    """

    def __init__(self) -> None:
        self._data: Dict[KeyPath, Any] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get(self, path: Sequence[str], default: Any = MISSING) -> Any:
        if self._closed:
            return default
        return self._data.get(tuple(path), default)

    def put(self, path: Sequence[str], value: Any) -> Any:
        if self._closed:
            return value
        with self._lock:
            self._data[tuple(path)] = value
        return value

    def invalidate(self, path: Sequence[str]) -> Status:
        """Drop ``path`` and every entry underneath it."""
        prefix = tuple(path)
        with self._lock:
            doomed = [k for k in self._data if is_prefix(prefix, k)]
            for k in doomed:
                del self._data[k]
        if doomed:
            log.debug("Invalidated %d cache entries under %s", len(doomed), ".".join(prefix))
        return Status.INVALIDATED

    def clear(self) -> Status:
        with self._lock:
            self._data.clear()
        return Status.CLEARED

    def close(self) -> None:
        """Turn the cache into a permanent miss; used on shutdown."""
        self._closed = True
        self.clear()

    def reopen(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __contains__(self, path: Sequence[str]) -> bool:
        return not self._closed and tuple(path) in self._data

    def __len__(self) -> int:
        return len(self._data)
