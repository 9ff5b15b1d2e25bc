from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from .errors import ConfigError

__all__ = ["Result", "Status"]

V = TypeVar("V")


class Status(str, Enum):
    DELETED = "deleted"
    INVALIDATED = "invalidated"
    CLEARED = "cleared"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    REMOVED = "removed"
    NOTIFIED = "notified"


@dataclass(frozen=True)
class Result(Generic[V]):
    """Outcome of a core operation: either a ``value`` or an ``error``.

    Truthy on success, so ``if cfg.get("db.host"): ...`` reads naturally.
    Use :meth:`unwrap` to get the value or raise the carried error.
    """

    value: Optional[V] = None
    error: Optional[ConfigError] = None

    @classmethod
    def success(cls, value: V) -> "Result[V]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ConfigError) -> "Result[Any]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> V:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def unwrap_or(self, default: Any) -> Any:
        return default if self.error is not None else self.value
