from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import MutableMapping, Optional

from .settings import ArcaSettings, ConfigLocation

__all__ = ["ConfigLocator", "GENERIC_PATH_VAR", "GENERIC_FILE_VAR"]

log = logging.getLogger(__name__)

GENERIC_PATH_VAR = "ARCA_CONFIG_PATH"
GENERIC_FILE_VAR = "ARCA_CONFIG_FILE"


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.expanduser(path))


class ConfigLocator:
    """Resolve where the configuration file lives.

    Precedence, per component (directory and file name):

    1. ``ARCA_CONFIG_PATH`` / ``ARCA_CONFIG_FILE``
    2. ``<DOMAIN>_CONFIG_PATH`` / ``<DOMAIN>_CONFIG_FILE``
    3. ``ArcaSettings.config_path`` / ``config_file``
    4. ``~/.<domain>/`` and ``config.json`` (or the ``default_*`` settings)

    Environment values are returned verbatim (trailing slashes included);
    settings and defaults are user-expanded and normalised. The environment
    is consulted on every call because it may change at runtime.
    """

    def __init__(self, settings: ArcaSettings, environ: Optional[MutableMapping[str, str]] = None):
        self.settings = settings
        self.environ: MutableMapping[str, str] = os.environ if environ is None else environ

    # ---------- variable names ---------------------------------------- #

    @property
    def domain(self) -> str:
        return self.settings.domain

    @property
    def env_prefix(self) -> str:
        return self.settings.env_prefix

    @property
    def path_var(self) -> str:
        return f"{self.env_prefix}_CONFIG_PATH"

    @property
    def file_var(self) -> str:
        return f"{self.env_prefix}_CONFIG_FILE"

    def _env(self, name: str) -> Optional[str]:
        return self.environ.get(name) or None

    # ---------- resolution -------------------------------------------- #

    def config_pathname(self) -> str:
        from_env = self._env(GENERIC_PATH_VAR) or self._env(self.path_var)
        if from_env:
            return from_env
        if self.settings.config_path:
            return _normalize(self.settings.config_path)
        default = self.settings.default_config_path or f"~/.{self.domain}/"
        return _normalize(default)

    def config_filename(self) -> str:
        from_env = self._env(GENERIC_FILE_VAR) or self._env(self.file_var)
        if from_env:
            return from_env
        if self.settings.config_file:
            return self.settings.config_file
        return self.settings.default_config_file

    def config_file(self) -> str:
        return os.path.join(self.config_pathname(), self.config_filename())

    def config_file_path(self) -> Path:
        """Absolute, user-expanded form of :meth:`config_file` used for I/O."""
        return Path(self.config_file()).expanduser().absolute()

    def data_pathname(self) -> str:
        return os.path.join(self.config_pathname(), "data", "links")

    # ---------- switching --------------------------------------------- #

    def current_location(self) -> ConfigLocation:
        return ConfigLocation(
            path=self.environ.get(self.path_var),
            file=self.environ.get(self.file_var),
        )

    def set_location(self, location: ConfigLocation, *, fields: Optional[set] = None) -> None:
        """Write ``location`` into the domain variables (``None`` unsets).

        ``fields`` limits the update to ``{"path"}``, ``{"file"}`` or both.
        """
        fields = {"path", "file"} if fields is None else fields
        for field, var in (("path", self.path_var), ("file", self.file_var)):
            if field not in fields:
                continue
            value = getattr(location, field)
            if value is None:
                self.environ.pop(var, None)
            else:
                self.environ[var] = value

        for generic, var in ((GENERIC_PATH_VAR, self.path_var), (GENERIC_FILE_VAR, self.file_var)):
            if generic != var and self._env(generic):
                log.warning("%s is set and takes precedence over %s", generic, var)
