# =============================================================
#  arca_config/registry.py
# =============================================================
"""Publish/subscribe directories used by the server for notifications.

* :class:`SubscriptionRegistry` maps an exact key path to any number of
  listeners, each called as ``listener(path, value)``.
* :class:`CallbackRegistry` holds whole-tree callbacks (``fn(tree)``, keyed
  by a caller-chosen id) and zero-argument callbacks (``fn()``, keyed by an
  opaque :class:`CallbackRef`).

Both are passive: they never decide *when* to notify. A listener that
raises is logged and skipped; the remaining listeners still run.
"""

from __future__ import annotations

import inspect
import logging
import threading
import weakref
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from .errors import CallbackFailure
from .tree import KeyPath, detach

__all__ = ["SubscriptionRegistry", "CallbackRegistry", "CallbackRef"]

log = logging.getLogger(__name__)

Listener = Callable[[List[str], Any], Any]


def _check_arity(fn: Callable[..., Any], nargs: int) -> None:
    if not callable(fn):
        raise TypeError(f"{fn!r} is not callable")
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):  # some builtins have no signature
        return
    try:
        sig.bind(*([None] * nargs))
    except TypeError as exc:
        raise TypeError(f"{fn!r} must accept {nargs} positional argument(s)") from exc


def _report(listener: Any, exc: BaseException) -> None:
    failure = CallbackFailure(listener, exc)
    log.error("%s", failure, exc_info=(type(exc), exc, exc.__traceback__))


class _Handle:
    """Strong or weak reference to a listener callable."""

    __slots__ = ("_strong", "_weak", "__weakref__")

    def __init__(self, listener: Callable[..., Any], weak: bool, on_dead: Callable[["_Handle"], None]):
        self._strong: Optional[Callable[..., Any]] = None
        self._weak: Optional[weakref.ref] = None
        if not weak:
            self._strong = listener
            return
        own = weakref.ref(self)

        def _dead(_ref, own=own):
            handle = own()
            if handle is not None:
                on_dead(handle)

        if inspect.ismethod(listener):
            self._weak = weakref.WeakMethod(listener, _dead)
        else:
            self._weak = weakref.ref(listener, _dead)

    def resolve(self) -> Optional[Callable[..., Any]]:
        if self._strong is not None:
            return self._strong
        return self._weak() if self._weak is not None else None

    def matches(self, listener: Callable[..., Any]) -> bool:
        target = self.resolve()
        return target is not None and (target is listener or target == listener)


class SubscriptionRegistry:
    """Duplicate-keyed key-path -> listeners directory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subs: Dict[KeyPath, List[_Handle]] = {}

    def register(self, path: Sequence[str], listener: Listener, *, weak: bool = False) -> None:
        """Subscribe ``listener`` to ``path``.

        With ``weak=True`` the registry only keeps a weak reference (a
        :class:`weakref.WeakMethod` for bound methods); the subscription
        disappears once the listener is garbage collected.
        """
        _check_arity(listener, 2)
        key = tuple(path)
        handle = _Handle(listener, weak, lambda h, key=key: self._drop(key, h))
        with self._lock:
            self._subs.setdefault(key, []).append(handle)

    def unregister(self, path: Sequence[str], listener: Listener) -> int:
        """Remove every registration of ``listener`` on ``path``."""
        key = tuple(path)
        with self._lock:
            handles = self._subs.get(key, [])
            kept = [h for h in handles if not h.matches(listener)]
            removed = len(handles) - len(kept)
            self._store(key, kept)
        return removed

    def unregister_all(self, listener: Listener) -> int:
        removed = 0
        with self._lock:
            for key in list(self._subs):
                removed += self.unregister(key, listener)
        return removed

    def lookup(self, path: Sequence[str]) -> List[Listener]:
        key = tuple(path)
        with self._lock:
            handles = list(self._subs.get(key, ()))
        live = []
        for handle in handles:
            target = handle.resolve()
            if target is None:
                self._drop(key, handle)
            else:
                live.append(target)
        return live

    def dispatch(self, path: Sequence[str], value: Any) -> int:
        """Call every subscriber of exactly ``path``; return how many ran."""
        delivered = 0
        for listener in self.lookup(path):
            try:
                listener(list(path), detach(value))
                delivered += 1
            except Exception as exc:
                _report(listener, exc)
        return delivered

    def paths(self) -> List[KeyPath]:
        with self._lock:
            return list(self._subs)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._subs.values())

    # ---------- internal ---------------------------------------------- #

    def _store(self, key: KeyPath, handles: List[_Handle]) -> None:
        if handles:
            self._subs[key] = handles
        else:
            self._subs.pop(key, None)

    def _drop(self, key: KeyPath, handle: _Handle) -> None:
        with self._lock:
            handles = self._subs.get(key)
            if handles is None:
                return
            self._store(key, [h for h in handles if h is not handle])
        log.debug("Dropped dead subscriber on %s", ".".join(key))


class CallbackRef:
    """Opaque token returned by :meth:`CallbackRegistry.add`."""

    __slots__ = ("__weakref__",)

    def __repr__(self) -> str:
        return f"<CallbackRef {id(self):#x}>"


class CallbackRegistry:
    """Whole-tree callbacks and zero-argument change callbacks."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tree_callbacks: List[Tuple[Hashable, Callable[[Dict[str, Any]], Any]]] = []
        self._simple_callbacks: List[Tuple[CallbackRef, Callable[[], Any]]] = []

    # ---------- whole-tree -------------------------------------------- #

    def register(self, callback_id: Hashable, fn: Callable[[Dict[str, Any]], Any]) -> None:
        _check_arity(fn, 1)
        with self._lock:
            self._tree_callbacks.append((callback_id, fn))

    def unregister(self, callback_id: Hashable) -> int:
        with self._lock:
            before = len(self._tree_callbacks)
            self._tree_callbacks = [e for e in self._tree_callbacks if e[0] != callback_id]
            return before - len(self._tree_callbacks)

    def notify_tree(self, tree: Dict[str, Any]) -> int:
        with self._lock:
            entries = list(self._tree_callbacks)
        ran = 0
        for callback_id, fn in entries:
            try:
                fn(detach(tree))
                ran += 1
            except Exception as exc:
                _report(callback_id, exc)
        return ran

    # ---------- zero-argument ----------------------------------------- #

    def add(self, fn: Callable[[], Any]) -> CallbackRef:
        _check_arity(fn, 0)
        ref = CallbackRef()
        with self._lock:
            self._simple_callbacks.append((ref, fn))
        return ref

    def remove(self, ref: CallbackRef) -> bool:
        with self._lock:
            before = len(self._simple_callbacks)
            self._simple_callbacks = [e for e in self._simple_callbacks if e[0] is not ref]
            return len(self._simple_callbacks) != before

    def notify_simple(self) -> int:
        with self._lock:
            entries = list(self._simple_callbacks)
        ran = 0
        for ref, fn in entries:
            try:
                fn()
                ran += 1
            except Exception as exc:
                _report(ref, exc)
        return ran

    # ---------- introspection ----------------------------------------- #

    def callback_ids(self) -> List[Hashable]:
        with self._lock:
            return [e[0] for e in self._tree_callbacks]

    def refs(self) -> List[CallbackRef]:
        with self._lock:
            return [e[0] for e in self._simple_callbacks]
