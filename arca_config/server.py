# =============================================================
#  arca_config/server.py
# =============================================================
"""Authoritative owner of the configuration tree.

All mutations (``put``, ``delete``, ``reload``, location switches) run under
one re-entrant lock, so they are applied strictly one at a time. ``put`` and
``delete`` re-read the file inside that lock before merging, which keeps
edits made by other processes since the last reload.

Reads try the :class:`~arca_config.cache.Cache` first and only take the lock
on a miss. After every mutation the cache is refreshed for the touched path
and its ancestors, and descendants of the touched path are evicted, so the
cache never serves a value the tree no longer holds.

Notification fan-out is submitted to the :class:`~arca_config.notifier.Notifier`
while the lock is held (which fixes the order) and runs after the caller has
its answer.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from contextlib import nullcontext
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .cache import Cache
from .errors import ConfigError, InvalidKeyPath, KeyPathNotFound
from .locator import ConfigLocator
from .notifier import Notifier
from .registry import CallbackRegistry, SubscriptionRegistry
from .result import Result, Status
from .settings import ConfigLocation
from .storage import dumps, load_file, write_text_atomic
from .tree import (
    MISSING,
    KeyPath,
    changed_paths,
    deep_delete,
    deep_set,
    detach,
    flatten,
    lineage,
    normalize_key_path,
    resolve,
)
from .watcher import FileWatcher

__all__ = ["ConfigServer", "UNSET"]

log = logging.getLogger(__name__)

# "argument not given" for switch_config_location (None means "unset the var")
UNSET: Any = object()


class ConfigServer:
    """Single-writer holder of the configuration tree.

    Parameters
    ----------
    locator : ConfigLocator
        Tells the server which file to read and write.
    cache, subscriptions, callbacks, notifier
        Collaborators, normally built by :class:`~arca_config.manager.ArcaConfig`.
    watcher : FileWatcher, optional
        Receives a write token before every disk write. Can be attached
        later through the ``watcher`` attribute.
    """

    def __init__(
        self,
        *,
        locator: ConfigLocator,
        cache: Cache,
        subscriptions: SubscriptionRegistry,
        callbacks: CallbackRegistry,
        notifier: Notifier,
        watcher: Optional[FileWatcher] = None,
    ):
        self.locator = locator
        self.cache = cache
        self.subscriptions = subscriptions
        self.callbacks = callbacks
        self.notifier = notifier
        self.watcher = watcher

        self._lock = threading.RLock()
        self._tree: Dict[str, Any] = {}
        self._loaded = False
        self.load_error: Optional[ConfigError] = None

    # ------------ state ------------------------------------------------ #

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def config(self) -> Dict[str, Any]:
        """Deep copy of the current tree."""
        with self._lock:
            return detach(self._tree)

    # ------------ reads ------------------------------------------------ #

    def get(self, key: Any) -> Result[Any]:
        try:
            path = normalize_key_path(key)
        except InvalidKeyPath as e:
            return Result.failure(e)

        cached = self.cache.get(path)
        if cached is not MISSING:
            return Result.success(detach(cached))

        with self._lock:
            self._ensure_loaded()
            value = resolve(self._tree, path)
            if value is MISSING:
                return Result.failure(KeyPathNotFound(path))
            self._cache_lineage(path)
        return Result.success(detach(value))

    def get_or_raise(self, key: Any) -> Any:
        return self.get(key).unwrap()

    # ------------ writes ----------------------------------------------- #

    def put(self, key: Any, value: Any) -> Result[Any]:
        try:
            path = normalize_key_path(key)
        except InvalidKeyPath as e:
            return Result.failure(e)

        with self._lock:
            self._ensure_loaded()
            current = self._read_current()
            try:
                new_tree = self._persist(deep_set(current, path, value))
            except ConfigError as e:
                log.warning("put %s failed: %s", ".".join(path), e)
                return Result.failure(e)

            old_tree = self._tree
            self._commit(new_tree)
            if current != old_tree:
                self._resync(old_tree, path)
            else:
                self.cache.invalidate(path)
                self._cache_lineage(path)
                self._schedule(self._notification_paths(path))
            stored = resolve(new_tree, path)
        return Result.success(detach(stored))

    def put_or_raise(self, key: Any, value: Any) -> Any:
        return self.put(key, value).unwrap()

    def delete(self, key: Any) -> Result[Status]:
        try:
            path = normalize_key_path(key)
        except InvalidKeyPath as e:
            return Result.failure(e)

        with self._lock:
            self._ensure_loaded()
            current = self._read_current()
            try:
                new_tree = self._persist(deep_delete(current, path))
            except ConfigError as e:
                log.warning("delete %s failed: %s", ".".join(path), e)
                return Result.failure(e)

            old_tree = self._tree
            self._commit(new_tree)
            if current != old_tree:
                self._resync(old_tree, path)
            else:
                self.cache.invalidate(path)
                for ancestor in lineage(path)[1:]:
                    value = resolve(new_tree, ancestor)
                    if value is MISSING:
                        self.cache.invalidate(ancestor)
                    else:
                        self.cache.put(ancestor, value)
                self._schedule(self._notification_paths(path))
        return Result.success(Status.DELETED)

    def delete_or_raise(self, key: Any) -> Status:
        return self.delete(key).unwrap()

    # ------------ loading ---------------------------------------------- #

    def load_config(self) -> Result[Dict[str, Any]]:
        """Initial load: read the file and build the cache, no notifications."""
        with self._lock:
            return self._load(notify=False)

    def reload(self) -> Result[Dict[str, Any]]:
        """Discard memory state and re-read the file.

        Subscribers of every path whose value changed are notified, then all
        callbacks. On failure the tree is reset to empty (still marked
        loaded) and the error is returned.
        """
        with self._lock:
            return self._load(notify=True)

    def reload_or_raise(self) -> Dict[str, Any]:
        return self.reload().unwrap()

    def handle_external_change(self) -> Result[Dict[str, Any]]:
        """Entry point for the file watcher."""
        log.info("Reloading %s after external change", self.locator.config_file())
        result = self.reload()
        if not result:
            log.warning("Reload after external change failed: %s", result.error)
        return result

    def switch_config_location(self, path: Any = UNSET, file: Any = UNSET) -> Result[ConfigLocation]:
        """Point the server at another file; returns the previous location.

        ``path``/``file`` update the domain location variables; ``None``
        removes a variable and omitting an argument leaves it alone. If the
        new file cannot be loaded the variables and the cache are restored
        and the error is returned.
        """
        previous = self.locator.current_location()
        update = ConfigLocation(
            path=None if path is UNSET else path,
            file=None if file is UNSET else file,
        )
        fields = {name for name, given in (("path", path), ("file", file)) if given is not UNSET}

        was_watching = self.watcher is not None and self.watcher.watching
        if was_watching:
            self.watcher.stop_watching()
        try:
            with self._lock:
                self.locator.set_location(update, fields=fields)
                self.cache.clear()
                try:
                    data = load_file(self.locator.config_file_path())
                except ConfigError as e:
                    log.warning("Cannot switch to %s: %s", self.locator.config_file(), e)
                    self.locator.set_location(previous)
                    self._build_cache(self._tree)
                    return Result.failure(e)

                old_tree = self._tree
                self._commit(data)
                self.load_error = None
                self._build_cache(data)
                self._schedule(changed_paths(old_tree, data))
                log.info("Switched configuration to %s", self.locator.config_file())
        finally:
            if was_watching:
                self.watcher.start_watching()
        return Result.success(previous)

    # ------------ broadcasting ----------------------------------------- #

    def notify_callbacks(self) -> Status:
        """Run the zero-argument callbacks now, in the calling thread."""
        self.callbacks.notify_simple()
        return Status.NOTIFIED

    def notify_external_change(self) -> Status:
        """Hand the current tree to whole-tree callbacks, then zero-arg ones."""
        with self._lock:
            tree = self._tree
        self.callbacks.notify_tree(tree)
        self.callbacks.notify_simple()
        return Status.NOTIFIED

    # ------------ internal --------------------------------------------- #

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._load(notify=False)

    def _load(self, *, notify: bool) -> Result[Dict[str, Any]]:
        file_path = self.locator.config_file_path()
        old_tree = self._tree
        try:
            data = load_file(file_path)
        except ConfigError as e:
            log.warning("Failed to load %s, continuing with empty config: %s", file_path, e)
            data, self.load_error = {}, e
        else:
            self.load_error = None

        self._commit(data)
        self.cache.clear()
        self._build_cache(data)
        if notify:
            self._schedule(changed_paths(old_tree, data))

        if self.load_error is not None:
            return Result.failure(self.load_error)
        log.debug("Loaded configuration from %s", file_path)
        return Result.success(detach(data))

    def _read_current(self) -> Dict[str, Any]:
        """The on-disk tree, or the in-memory one if the file is unusable."""
        try:
            return load_file(self.locator.config_file_path())
        except ConfigError as e:
            log.warning("Could not re-read config before write, using memory copy: %s", e)
            self._ensure_loaded()
            return self._tree

    def _persist(self, tree: Dict[str, Any]) -> Dict[str, Any]:
        """Write ``tree`` and return it as it will be read back."""
        text = dumps(tree)
        token = time.monotonic_ns()
        guard = self.watcher.writing(token) if self.watcher is not None else nullcontext()
        with guard:
            write_text_atomic(self.locator.config_file_path(), text)
        return json.loads(text)

    def _commit(self, tree: Dict[str, Any]) -> None:
        self._tree = tree
        self._loaded = True

    def _build_cache(self, tree: Dict[str, Any]) -> None:
        for path, value in flatten(tree):
            self.cache.put(path, value)

    def _cache_lineage(self, path: KeyPath) -> None:
        for p in lineage(path):
            value = resolve(self._tree, p)
            if value is MISSING:
                self.cache.invalidate(p)
            else:
                self.cache.put(p, value)

    def _resync(self, old_tree: Dict[str, Any], path: KeyPath) -> None:
        """The file had been edited since the last load; rebuild everything.

        Subscribers get ``path`` and its ancestors as for a plain write, then
        every other path the merged external edit changed.
        """
        log.debug("Merged external edits while writing %s", ".".join(path))
        self.cache.clear()
        self._build_cache(self._tree)
        paths = self._notification_paths(path)
        seen = {p for p, _ in paths}
        paths.extend(item for item in changed_paths(old_tree, self._tree) if item[0] not in seen)
        self._schedule(paths)

    def _notification_paths(self, path: KeyPath) -> List[Tuple[KeyPath, Any]]:
        """``path`` and each ancestor that still holds a value, leaf first."""
        out = []
        for p in lineage(path):
            value = resolve(self._tree, p)
            if value is not MISSING:
                out.append((p, value))
        return out

    def _schedule(self, paths: Iterable[Tuple[KeyPath, Any]]) -> None:
        """Queue subscriber delivery for ``paths``, then every callback."""
        self.notifier.submit(self._dispatch, list(paths), self._tree)

    def _dispatch(self, paths: List[Tuple[KeyPath, Any]], tree: Dict[str, Any]) -> None:
        for path, value in paths:
            self.subscriptions.dispatch(path, value)
        self.callbacks.notify_tree(tree)
        self.callbacks.notify_simple()
