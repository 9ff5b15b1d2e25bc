from __future__ import annotations

from typing import Any, Optional, Sequence

__all__ = [
    "ConfigError",
    "KeyPathNotFound",
    "InvalidKeyPath",
    "ConfigIOError",
    "ConfigParseError",
    "CallbackFailure",
]


class ConfigError(Exception):
    """Base class for every error raised or returned by arca_config."""


class KeyPathNotFound(ConfigError, KeyError):
    """The key path does not resolve against the configuration tree."""

    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__(self.path)

    def __str__(self) -> str:
        return f"Key not found: {'.'.join(self.path)}"


class InvalidKeyPath(ConfigError, ValueError):
    """The key cannot be turned into a non-empty key path."""

    def __init__(self, key: Any, reason: str = "empty key path"):
        self.key = key
        super().__init__(f"Invalid key {key!r}: {reason}")


class ConfigIOError(ConfigError):
    """The configuration file could not be read or written.

    The underlying :class:`OSError` (or encoder error) is chained as
    ``__cause__``.
    """

    def __init__(self, message: str, *, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class ConfigParseError(ConfigError, ValueError):
    """The configuration file is not a valid JSON object."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        position: Optional[int] = None,
        lineno: Optional[int] = None,
        colno: Optional[int] = None,
        token: Optional[str] = None,
    ):
        self.path = path
        self.position = position
        self.lineno = lineno
        self.colno = colno
        self.token = token
        super().__init__(message)


class CallbackFailure(ConfigError):
    """A subscriber or callback raised while being notified.

    Only ever logged; dispatch continues with the remaining listeners.
    """

    def __init__(self, listener: Any, original: BaseException):
        self.listener = listener
        self.original = original
        super().__init__(f"Listener {listener!r} failed: {original!r}")
