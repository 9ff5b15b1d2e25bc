from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from .errors import ConfigError, KeyPathNotFound
from .tree import normalize_key_path

if TYPE_CHECKING:
    from .server import ConfigServer

__all__ = ["ConfigMap"]


class _AttrAccessorProxy:
    """Attribute style accessor: ``cfg.attrs.database.host``."""

    def __init__(self, server: "ConfigServer", prefix: tuple = ()):
        object.__setattr__(self, "_server", server)
        object.__setattr__(self, "_prefix", prefix)

    def __getattr__(self, item: str):
        path = self._prefix + (item,)
        result = self._server.get(path)
        if not result:
            raise AttributeError(".".join(path))
        if isinstance(result.value, dict):
            return _AttrAccessorProxy(self._server, path)
        return result.value

    def __setattr__(self, item: str, value: Any):
        self._server.put_or_raise(self._prefix + (item,), value)

    def __repr__(self) -> str:
        return f"<config {'.'.join(self._prefix) or '<root>'}>"


class ConfigMap:
    """Dict-like view over a :class:`~arca_config.server.ConfigServer`.

    Keys may be dotted strings or key-path sequences::

        cfg["database.host"]
        cfg[["database", "host"]]
        cfg.get_in(["database", "port"], 5432)

    Writes go through the server (and therefore to disk); failures raise.
    """

    def __init__(self, server: "ConfigServer"):
        self._server = server

    @property
    def attrs(self) -> _AttrAccessorProxy:
        return _AttrAccessorProxy(self._server)

    def get(self, key: Any, default: Any = None) -> Any:
        return self._server.get(key).unwrap_or(default)

    def get_in(self, keys: Iterable[Any], default: Any = None) -> Any:
        return self.get(list(keys), default)

    def put(self, key: Any, value: Any) -> "ConfigMap":
        result = self._server.put(key, value)
        if not result:
            raise ConfigError(f"Failed to put config: {result.error}") from result.error
        return self

    def put_in(self, keys: Iterable[Any], value: Any) -> "ConfigMap":
        return self.put(list(keys), value)

    def has_key(self, key: Any) -> bool:
        return bool(self._server.get(key))

    def __getitem__(self, key: Any) -> Any:
        result = self._server.get(key)
        if not result:
            if isinstance(result.error, KeyPathNotFound):
                raise result.error
            raise KeyError(key) from result.error
        return result.value

    def __setitem__(self, key: Any, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: Any) -> None:
        path = normalize_key_path(key)
        if not self.has_key(path):
            raise KeyPathNotFound(path)
        self._server.delete_or_raise(path)

    def __contains__(self, key: Any) -> bool:
        return self.has_key(key)

    def __repr__(self) -> str:
        return f"ConfigMap({self._server.locator.config_file()!r})"
