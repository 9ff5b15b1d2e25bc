# =============================================================
#  arca_config/tree.py
# =============================================================
"""Key-path normalisation and copy-on-write helpers for the config tree.

Every helper that "modifies" a tree returns a new top-level dict and only
copies the maps along the touched path; untouched sub-trees are shared. The
Server relies on this to hand the same tree to the cache and the notifier
without further copying.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from pydantic.fields import PydanticUndefined

from .errors import InvalidKeyPath

__all__ = [
    "KeyPath",
    "MISSING",
    "normalize_key_path",
    "deep_get",
    "resolve",
    "deep_set",
    "deep_delete",
    "lineage",
    "is_prefix",
    "flatten",
    "changed_paths",
    "detach",
]

KeyPath = Tuple[str, ...]

# sentinel for "no value here" (None is a legitimate JSON value)
MISSING = PydanticUndefined


def normalize_key_path(key: Any) -> KeyPath:
    """Turn ``"a.b"``, ``["a", "b"]`` or a single atom into ``("a", "b")``."""
    if isinstance(key, (list, tuple)):
        parts = tuple(str(k) for k in key)
    elif isinstance(key, str):
        parts = tuple(key.split("."))
    elif key is None:
        raise InvalidKeyPath(key)
    else:
        parts = tuple(str(key).split("."))

    if not parts:
        raise InvalidKeyPath(key)
    if any(p == "" for p in parts):
        raise InvalidKeyPath(key, "empty path segment")
    return parts


def deep_get(data: Any, keys: Sequence[str]) -> Any:
    cur = data
    for key in keys:
        if not isinstance(cur, dict):
            raise KeyError(f"Cannot traverse into {type(cur).__name__} with '{key}'.")
        cur = cur[key]
    return cur


def resolve(data: Any, keys: Sequence[str]) -> Any:
    """Like :func:`deep_get` but returns :data:`MISSING` instead of raising."""
    try:
        return deep_get(data, keys)
    except KeyError:
        return MISSING


def deep_set(data: Any, keys: Sequence[str], value: Any) -> Any:
    """Return a copy of ``data`` with ``value`` written at ``keys``.

    Missing intermediate maps are created and a non-map intermediate is
    replaced by a map.
    """
    if not keys:
        return value

    head, *tail = keys
    copied: Dict[str, Any] = dict(data) if isinstance(data, dict) else {}
    copied[head] = deep_set(copied.get(head), tail, value)
    return copied


def deep_delete(data: Dict[str, Any], keys: Sequence[str]) -> Dict[str, Any]:
    """Return a copy of ``data`` without ``keys``.

    Maps left empty by the removal are dropped as well, all the way up to
    (but not including) the root. A path that does not resolve leaves the
    tree unchanged.
    """
    head, *tail = keys
    if head not in data:
        return data
    if not tail:
        copied = dict(data)
        del copied[head]
        return copied

    child = data[head]
    if not isinstance(child, dict):
        return data
    updated = deep_delete(child, tail)
    if updated is child:
        return data
    copied = dict(data)
    if updated:
        copied[head] = updated
    else:
        del copied[head]
    return copied


def lineage(path: Sequence[str]) -> List[KeyPath]:
    """``("a", "b", "c")`` -> ``[("a","b","c"), ("a","b"), ("a",)]``."""
    path = tuple(path)
    return [path[:i] for i in range(len(path), 0, -1)]


def is_prefix(prefix: Sequence[str], path: Sequence[str]) -> bool:
    return len(path) >= len(prefix) and tuple(path[: len(prefix)]) == tuple(prefix)


def flatten(tree: Dict[str, Any], prefix: KeyPath = ()) -> Iterator[Tuple[KeyPath, Any]]:
    """Yield ``(path, value)`` for every key at every depth of ``tree``."""
    for key, value in tree.items():
        path = prefix + (key,)
        yield path, value
        if isinstance(value, dict):
            yield from flatten(value, path)


def _same(a: Any, b: Any) -> bool:
    """Equality that also tells `1`, `1.0` and `True` apart, at any depth."""
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(_same(a[k], b[k]) for k in a)
    if isinstance(a, list):
        return len(a) == len(b) and all(_same(x, y) for x, y in zip(a, b))
    return a == b


def changed_paths(old: Any, new: Any, prefix: KeyPath = ()) -> Iterator[Tuple[KeyPath, Any]]:
    """Yield ``(path, new_value)`` for every path whose value differs.

    Only paths that still exist in ``new`` are reported. Children are
    yielded before their parent.
    """
    if not isinstance(new, dict):
        return
    old_map = old if isinstance(old, dict) else {}
    for key, value in new.items():
        path = prefix + (key,)
        previous = old_map.get(key, MISSING)
        if previous is not MISSING and _same(previous, value):
            continue
        if isinstance(value, dict):
            yield from changed_paths(previous, value, path)
        yield path, value


def detach(value: Any) -> Any:
    """Deep copy containers so callers cannot mutate shared tree state."""
    if isinstance(value, (dict, list)):
        return copy.deepcopy(value)
    return value
