from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ForgeSettings(BaseSettings):
    """Environment defaults for bootstrap.

    Values are read from ``DIFORGE_*`` environment variables, for example
    ``DIFORGE_CACHE_DIR=/var/cache/app``. Explicit constructor arguments of
    ``BootstrapSelector`` and ``WholeContainerCache`` always take precedence.
    """

    model_config = SettingsConfigDict(env_prefix="DIFORGE_")

    cache_dir: Path = Path(".diforge")
    """Cache directory used when ``get_instance`` is called without one."""

    register_exit_hook: bool = True
    """Whether compiled containers persist themselves at interpreter exit."""


__all__ = ["ForgeSettings"]
