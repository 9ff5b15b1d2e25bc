# =============================================================
#  arca_config/manager.py
# =============================================================
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Hashable, List, MutableMapping, Optional, Tuple

from .cache import Cache
from .errors import KeyPathNotFound
from .locator import ConfigLocator
from .mapping import ConfigMap
from .notifier import Notifier
from .overrides import collect_overrides
from .registry import CallbackRef, CallbackRegistry, SubscriptionRegistry
from .result import Result, Status
from .server import UNSET, ConfigServer
from .settings import ArcaSettings, ConfigLocation
from .tree import normalize_key_path
from .watcher import FileWatcher

__all__ = ["ArcaConfig"]

log = logging.getLogger(__name__)


class ArcaConfig:
    """
    Top-level coordinator: builds every component and exposes the API.

    Nothing here is global; create one instance per configuration file and
    pass it to whatever needs it.

    Parameters
    ----------
    settings : ArcaSettings, optional
        Static configuration; built from ``**overrides`` (and ``ARCA_APP_*``
        environment variables) when omitted.
    environ : MutableMapping, optional
        Environment used for location lookup and overrides; ``os.environ``
        by default.

    Example
    -------
    ```python
    with ArcaConfig(domain="my_app", poll_interval=1.0) as cfg:
        cfg.put("database.host", "localhost")
        cfg.subscribe("database", lambda path, value: print(path, value))
        cfg.get("database.host").unwrap()   # → "localhost"
    ```
    """

    def __init__(
        self,
        settings: Optional[ArcaSettings] = None,
        *,
        environ: Optional[MutableMapping[str, str]] = None,
        **overrides: Any,
    ):
        self.settings = settings if settings is not None else ArcaSettings(**overrides)
        self.locator = ConfigLocator(self.settings, environ)

        self.cache = Cache()
        self.subscriptions = SubscriptionRegistry()
        self.callbacks = CallbackRegistry()
        self.notifier = Notifier()
        self.server = ConfigServer(
            locator=self.locator,
            cache=self.cache,
            subscriptions=self.subscriptions,
            callbacks=self.callbacks,
            notifier=self.notifier,
        )
        self.watcher = FileWatcher(
            self.locator.config_file_path,
            self.server.handle_external_change,
            interval=self.settings.poll_interval,
        )
        self.server.watcher = self.watcher

        self._initialized = False
        self._after_init: Dict[Hashable, Callable[[], Any]] = {}

    # ---------- lifecycle --------------------------------------------- #

    def start(self) -> Result[Dict[str, Any]]:
        """Load the file, apply env overrides, start watching.

        A load failure is logged and returned but does not prevent start-up;
        the server then serves an empty tree. Calling it again after
        :meth:`stop` restarts the instance.
        """
        self.cache.reopen()
        self.notifier.reopen()
        result = self.server.load_config()
        if not result:
            log.error("Failed to load initial configuration: %s", result.error)
        if self.settings.apply_env_overrides:
            self.apply_env_overrides()
        self.watcher.start_watching()
        self._initialized = True
        callbacks, self._after_init = self._after_init, {}
        for callback_id, fn in callbacks.items():
            self._run_after_init(callback_id, fn)
        return result

    def stop(self) -> None:
        self.watcher.stop_watching()
        self.notifier.close()
        self.cache.close()
        self._initialized = False

    def __enter__(self) -> "ArcaConfig":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def register_after_init(self, callback_id: Hashable, fn: Callable[[], Any]) -> Status:
        """Run ``fn`` once :meth:`start` has finished (now, if it already has)."""
        if self._initialized:
            self._run_after_init(callback_id, fn)
        else:
            self._after_init[callback_id] = fn
        return Status.REGISTERED

    def apply_env_overrides(self) -> List[Tuple[str, Any]]:
        """Apply ``<DOMAIN>_CONFIG_OVERRIDE_<SECTION>_<KEY>`` variables via put."""
        applied = []
        for key, value in collect_overrides(self.locator.env_prefix, self.locator.environ):
            result = self.server.put(key, value)
            if result:
                log.debug("Applied env override %s", key)
                applied.append((key, value))
            else:
                log.warning("Env override %s failed: %s", key, result.error)
        return applied

    # ---------- values ------------------------------------------------ #

    def get(self, key: Any) -> Result[Any]:
        return self.server.get(key)

    def get_or_raise(self, key: Any) -> Any:
        return self.server.get_or_raise(key)

    def put(self, key: Any, value: Any) -> Result[Any]:
        return self.server.put(key, value)

    def put_or_raise(self, key: Any, value: Any) -> Any:
        return self.server.put_or_raise(key, value)

    def delete(self, key: Any) -> Result[Status]:
        return self.server.delete(key)

    def delete_or_raise(self, key: Any) -> Status:
        return self.server.delete_or_raise(key)

    def reload(self) -> Result[Dict[str, Any]]:
        return self.server.reload()

    def reload_or_raise(self) -> Dict[str, Any]:
        return self.server.reload_or_raise()

    def switch_config_location(self, path: Any = UNSET, file: Any = UNSET) -> Result[ConfigLocation]:
        return self.server.switch_config_location(path=path, file=file)

    @property
    def config(self) -> Dict[str, Any]:
        return self.server.config

    @property
    def map(self) -> ConfigMap:
        return ConfigMap(self.server)

    @property
    def config_file(self) -> str:
        return self.locator.config_file()

    # ---------- subscriptions ----------------------------------------- #

    def subscribe(self, key: Any, listener: Callable[[List[str], Any], Any], *, weak: bool = False) -> Status:
        """Call ``listener(path, value)`` whenever the value at ``key`` changes."""
        self.subscriptions.register(normalize_key_path(key), listener, weak=weak)
        return Status.SUBSCRIBED

    def unsubscribe(self, key: Any, listener: Callable[[List[str], Any], Any]) -> Status:
        self.subscriptions.unregister(normalize_key_path(key), listener)
        return Status.UNSUBSCRIBED

    def register_callback(self, callback_id: Hashable, fn: Callable[[Dict[str, Any]], Any]) -> Status:
        """Call ``fn(tree)`` with the full tree after every change."""
        self.callbacks.register(callback_id, fn)
        return Status.REGISTERED

    def unregister_callback(self, callback_id: Hashable) -> Status:
        self.callbacks.unregister(callback_id)
        return Status.UNREGISTERED

    def add_callback(self, fn: Callable[[], Any]) -> CallbackRef:
        """Call ``fn()`` after every change; keep the returned ref to remove it."""
        return self.callbacks.add(fn)

    def remove_callback(self, ref: CallbackRef) -> Result[Status]:
        if self.callbacks.remove(ref):
            return Result.success(Status.REMOVED)
        return Result.failure(KeyPathNotFound(["callback", repr(ref)]))

    def notify_callbacks(self) -> Status:
        return self.server.notify_callbacks()

    def notify_external_change(self) -> Status:
        return self.server.notify_external_change()

    # ---------- internal ---------------------------------------------- #

    @staticmethod
    def _run_after_init(callback_id: Hashable, fn: Callable[[], Any]) -> None:
        try:
            fn()
        except Exception:
            log.exception("Error in initialization callback %r", callback_id)
