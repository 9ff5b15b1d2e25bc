from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["ArcaSettings", "ConfigLocation"]


class ArcaSettings(BaseSettings):
    """Static application configuration for an :class:`ArcaConfig`.

    Values come from constructor keywords or ``ARCA_APP_*`` environment
    variables. They rank *below* the ``ARCA_CONFIG_*`` and
    ``<DOMAIN>_CONFIG_*`` location variables, which are read live.
    """

    domain: str = Field(
        default="arca",
        description="Config domain; drives the default directory and env-var prefix.",
    )
    config_path: Optional[str] = Field(
        default=None,
        description="Directory holding the config file.",
    )
    config_file: Optional[str] = Field(
        default=None,
        description="Name of the config file inside config_path.",
    )
    default_config_path: Optional[str] = Field(
        default=None,
        description="Fallback directory; ~/.<domain>/ when unset.",
    )
    default_config_file: str = Field(
        default="config.json",
        description="Fallback file name.",
    )
    poll_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between two file-watcher checks.",
    )
    apply_env_overrides: bool = Field(
        default=True,
        description="Apply <DOMAIN>_CONFIG_OVERRIDE_* variables on start().",
    )

    model_config = SettingsConfigDict(env_prefix="ARCA_APP_", extra="ignore")

    @field_validator("domain")
    @classmethod
    def _check_domain(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("domain must not be empty")
        return v

    @property
    def env_prefix(self) -> str:
        """``"my-app"`` -> ``"MY_APP"``."""
        return re.sub(r"[^A-Z0-9]", "_", self.domain.upper())


class ConfigLocation(BaseModel):
    """Location variables as they were before a switch (``None`` = unset)."""

    path: Optional[str] = None
    file: Optional[str] = None
