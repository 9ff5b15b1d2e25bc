from __future__ import annotations

import json
import re
from typing import Any, List, Mapping, Tuple

__all__ = ["coerce_value", "collect_overrides", "override_prefix"]

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")


def override_prefix(env_prefix: str) -> str:
    return f"{env_prefix}_CONFIG_OVERRIDE_"


def coerce_value(raw: str) -> Any:
    """Best-effort conversion of an environment string to a JSON value.

    ``"true"``/``"false"`` -> bool, integers, floats, JSON objects/arrays/
    strings; anything else (including malformed JSON) stays a string.
    """
    text = raw.strip()
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    if text[:1] in ("{", "[", '"'):
        try:
            return json.loads(text)
        except ValueError:
            return raw
    return raw


def collect_overrides(env_prefix: str, environ: Mapping[str, str]) -> List[Tuple[str, Any]]:
    """Return ``(dotted_key, value)`` pairs for ``<PREFIX>_CONFIG_OVERRIDE_*``.

    ``<PREFIX>_CONFIG_OVERRIDE_DATABASE_POOL_SIZE=5`` yields
    ``("database.pool_size", 5)``: the section is everything before the first
    underscore, the key everything after it. Variables without a key part
    are ignored. Results are sorted by key for a stable application order.
    """
    prefix = override_prefix(env_prefix)
    found: List[Tuple[str, Any]] = []
    for name, raw in environ.items():
        if not name.startswith(prefix):
            continue
        section, sep, key = name[len(prefix):].partition("_")
        if not (section and sep and key):
            continue
        found.append((f"{section.lower()}.{key.lower()}", coerce_value(raw)))
    return sorted(found, key=lambda item: item[0])
