from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Dict

from pydantic_core import PydanticSerializationError, to_jsonable_python

from .errors import ConfigIOError, ConfigParseError

__all__ = ["load_file", "dumps", "write_text_atomic"]

log = logging.getLogger(__name__)


def load_file(path: Path) -> Dict[str, Any]:
    """Read and parse the JSON config at ``path``.

    A missing or blank file is an empty tree. Raises :class:`ConfigIOError`
    for unreadable files and :class:`ConfigParseError` for malformed JSON or
    a root that is not an object.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        log.debug("Config file %s does not exist; using empty tree", path)
        return {}
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigIOError(f"Failed to load config file {path}: {exc}", path=str(path)) from exc

    if not text.strip():
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        token = exc.doc[exc.pos : exc.pos + 1] if exc.pos < len(exc.doc) else ""
        raise ConfigParseError(
            f"Error parsing config at position: {exc.pos}, token: '{token}' ({exc.msg})",
            path=str(path),
            position=exc.pos,
            lineno=exc.lineno,
            colno=exc.colno,
            token=token,
        ) from exc

    if not isinstance(data, dict):
        raise ConfigParseError(
            f"Config root in {path} must be an object, got {type(data).__name__}",
            path=str(path),
            position=0,
        )
    return data


def dumps(data: Dict[str, Any]) -> str:
    try:
        return json.dumps(data, indent=4, ensure_ascii=False, default=to_jsonable_python)
    except (TypeError, ValueError, PydanticSerializationError) as exc:
        raise ConfigIOError(f"Cannot encode configuration as JSON: {exc}") from exc


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temp file + rename.

    Readers (and the file watcher) see either the old or the new content,
    never a truncated file.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            if path.exists():
                os.chmod(tmp, stat.S_IMODE(path.stat().st_mode))
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise ConfigIOError(f"Failed to write config file {path}: {exc}", path=str(path)) from exc
    log.debug("Config written to %s", path)
