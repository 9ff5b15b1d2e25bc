# =============================================================
#  arca_config/__init__.py
# =============================================================
"""
Arca-Config
===========

A runtime manager for one JSON configuration file per application domain.

Main ideas
~~~~~~~~~~
* The file is the source of truth. Every `put`/`delete` re-reads it, merges
  the change, and writes it back atomically; edits made by other processes
  survive.
* Reads are served from a key-path cache that always agrees with the tree.
* Listeners subscribe to a key path (`listener(path, value)`) or to the
  whole tree; they run on a background thread after the write has returned.
* A polling watcher reloads the file when somebody else edits it, and
  ignores the writes the manager made itself.
* Where the file lives is decided by environment variables
  (`ARCA_CONFIG_PATH`, `<DOMAIN>_CONFIG_PATH`, ...) and can be switched at
  runtime.

Quick example
~~~~~~~~~~~~~
```python
from arca_config import ArcaConfig

cfg = ArcaConfig(domain="my_app")
cfg.start()                                  # load + watch

cfg.subscribe("database.host", lambda path, value: print(path, value))
cfg.put("database.host", "db.internal")      # written to ~/.my_app/config.json
cfg.get("database.host").unwrap()            # → "db.internal"
cfg.map["database.port"] = 5432              # dict-style access

cfg.stop()
```
"""

from __future__ import annotations

from importlib import metadata as _meta
import logging as _logging

# --------------------------------------------------------------------- #
# Version
# --------------------------------------------------------------------- #
try:  # When installed (pip/poetry)
    __version__: str = _meta.version("arca-config")
except _meta.PackageNotFoundError:  # Editable checkout / source tree
    __version__ = "0.1.0"

# --------------------------------------------------------------------- #
# Logging
# --------------------------------------------------------------------- #
_logging.getLogger(__name__).addHandler(_logging.NullHandler())  # *never* touch the root logger.

# --------------------------------------------------------------------- #
# Public re-exports
# --------------------------------------------------------------------- #
from .errors import (  # noqa: E402
    CallbackFailure,
    ConfigError,
    ConfigIOError,
    ConfigParseError,
    InvalidKeyPath,
    KeyPathNotFound,
)
from .result import Result, Status  # noqa: E402
from .settings import ArcaSettings, ConfigLocation  # noqa: E402
from .locator import ConfigLocator  # noqa: E402
from .cache import Cache  # noqa: E402
from .registry import CallbackRef, CallbackRegistry, SubscriptionRegistry  # noqa: E402
from .notifier import Notifier  # noqa: E402
from .watcher import FileWatcher, WatcherState  # noqa: E402
from .server import ConfigServer  # noqa: E402
from .mapping import ConfigMap  # noqa: E402
from .manager import ArcaConfig  # noqa: E402

__all__ = [
    "ArcaConfig",
    "ArcaSettings",
    "ConfigLocation",
    "ConfigLocator",
    "ConfigServer",
    "ConfigMap",
    "Cache",
    "SubscriptionRegistry",
    "CallbackRegistry",
    "CallbackRef",
    "Notifier",
    "FileWatcher",
    "WatcherState",
    "Result",
    "Status",
    "ConfigError",
    "KeyPathNotFound",
    "InvalidKeyPath",
    "ConfigIOError",
    "ConfigParseError",
    "CallbackFailure",
]
