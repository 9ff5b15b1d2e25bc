from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Hashable, Iterator, NamedTuple, Optional

__all__ = ["FileWatcher", "WatcherState", "FileInfo"]

# Set up logging
log = logging.getLogger(__name__)


class WatcherState(str, Enum):
    DORMANT = "dormant"
    WATCHING = "watching"
    STOPPED = "stopped"


class FileInfo(NamedTuple):
    mtime_ns: int
    size: int
    inode: int


def _file_info(path: Path) -> Optional[FileInfo]:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return FileInfo(st.st_mtime_ns, st.st_size, st.st_ino)


class FileWatcher:
    """Poll the config file and react to edits made by other processes.

    A daemon thread calls :meth:`check_file` every ``interval`` seconds. The
    file path is re-derived on every tick through ``locate`` because the
    location can change at runtime.

    Writes performed by the server are announced with :meth:`register_write`
    (or :meth:`writing`); the next change observed after that is treated as
    self-inflicted and swallowed. Only one token is tracked, so several
    writes inside one interval collapse into a single suppressed change.

    Parameters
    ----------
    locate : callable
        Returns the absolute path of the config file.
    on_change : callable
        Called (without the watcher lock held) when an external change is
        detected.
    interval : float, default 5.0
        Seconds between two checks.
    """

    def __init__(
        self,
        locate: Callable[[], Path],
        on_change: Callable[[], Any],
        *,
        interval: float = 5.0,
    ):
        self._locate = locate
        self._on_change = on_change
        self.interval = interval

        self._lock = threading.RLock()
        self._state = WatcherState.DORMANT
        self._path: Optional[Path] = None
        self._last_info: Optional[FileInfo] = None
        self._write_token: Optional[Hashable] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    # ---------- state ------------------------------------------------- #

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def watching(self) -> bool:
        return self._state is WatcherState.WATCHING

    @property
    def write_token(self) -> Optional[Hashable]:
        return self._write_token

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def last_info(self) -> Optional[FileInfo]:
        return self._last_info

    # ---------- lifecycle --------------------------------------------- #

    def start_watching(self) -> None:
        """Snapshot the current file and arm the poll timer."""
        with self._lock:
            if self._state is WatcherState.WATCHING:
                return
            self._path = self._locate()
            self._last_info = _file_info(self._path)
            self._write_token = None
            self._state = WatcherState.WATCHING
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._watcher_loop,
                args=(self._stop_event,),
                daemon=True,
                name="ArcaConfigWatcher",
            )
            self._thread.start()
        log.debug("Watching %s every %.3fs", self._path, self.interval)

    def stop_watching(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            if self._state is not WatcherState.WATCHING:
                return
            self._state = WatcherState.STOPPED
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        log.debug("File watcher stopped")

    def _watcher_loop(self, stop_event: threading.Event) -> None:
        try:
            while not stop_event.wait(self.interval):
                try:
                    self.check_file()
                except Exception as e:
                    log.error(f"File watcher check failed: {e}", exc_info=True)
        finally:
            log.debug("File watcher loop exiting")

    # ---------- write handshake --------------------------------------- #

    def register_write(self, token: Hashable) -> None:
        with self._lock:
            self._write_token = token

    @contextmanager
    def writing(self, token: Hashable) -> Iterator[None]:
        """Register ``token`` and keep checks out while the write runs.

        If the body raises, the token is withdrawn so that a later external
        change is not mistaken for this write.
        """
        with self._lock:
            self._write_token = token
            try:
                yield
            except BaseException:
                if self._write_token == token:
                    self._write_token = None
                raise

    # ---------- polling ----------------------------------------------- #

    def check_file(self) -> bool:
        """Run one poll tick. Returns True if an external change was handled."""
        with self._lock:
            if self._state is not WatcherState.WATCHING:
                return False

            path = self._locate()
            current = _file_info(path)
            if current is None:
                return False

            changed = self._last_info is None or current != self._last_info
            self._path = path
            self._last_info = current
            if not changed:
                return False

            if self._write_token is not None:
                log.debug("Ignoring self-inflicted change to %s", path)
                self._write_token = None
                return False

        log.info("External change detected in %s", path)
        try:
            self._on_change()
        except Exception as e:
            log.error(f"Handling external change to {path} failed: {e}", exc_info=True)
        return True
