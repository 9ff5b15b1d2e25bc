from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Callable, Optional

__all__ = ["Notifier"]

log = logging.getLogger(__name__)

_STOP = object()


class Notifier:
    """Run notification jobs on one background thread, in submission order.

    The server submits fan-out work here so that writers return before
    subscribers run. The worker thread is started lazily on first submit.
    """

    def __init__(self, name: str = "ArcaConfigNotifier"):
        self._name = name
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._pending = 0
        self._closed = False

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        with self._lock:
            if self._closed:
                log.debug("Notifier closed; dropping %r", fn)
                return False
            self._pending += 1
            # enqueue under the lock so close() cannot slip _STOP in front
            self._queue.put((fn, args))
            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run, args=(self._queue,), daemon=True, name=self._name
                )
                self._thread.start()
        return True

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted job has run. False on timeout."""
        if self._thread is threading.current_thread():
            return self._pending <= 1
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Run what is already queued, then stop the worker."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
            if thread is not None:
                self._queue.put(_STOP)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def reopen(self) -> None:
        """Accept jobs again after :meth:`close`; a fresh worker starts lazily."""
        with self._lock:
            if not self._closed:
                return
            self._closed = False
            self._queue = queue.Queue()
            self._thread = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _run(self, jobs: "queue.Queue[Any]") -> None:
        log.debug("Notifier thread started")
        while True:
            item = jobs.get()
            if item is _STOP:
                break
            fn, args = item
            try:
                fn(*args)
            except Exception:
                log.exception("Notification job %r failed", fn)
            finally:
                with self._idle:
                    self._pending -= 1
                    if not self._pending:
                        self._idle.notify_all()
        log.debug("Notifier thread exiting")
