from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from diforge._internal.injection_point import QUALIFIER_DIRECTORY, qualifier_path
from diforge._internal.keys import DependencyKey, escape_key

MODULE_FILE = "module.txt"
AOP_FILE = "aop.txt"
UNIT_SUFFIX = ".unit"
PROXY_SUFFIX = ".py"


@dataclass(frozen=True, slots=True)
class CacheLayout:
    """Name every artifact stored in a cache directory.

    ``module.txt`` holds the module snapshot, ``aop.txt`` the pointcut table,
    ``<escaped-key>.unit`` one construction unit per key, ``<Proxy>.py`` the
    generated proxy types and ``qualifier/`` the injection point descriptors.
    """

    cache_dir: Path

    @property
    def module_file(self) -> Path:
        return self.cache_dir / MODULE_FILE

    @property
    def aop_file(self) -> Path:
        return self.cache_dir / AOP_FILE

    @property
    def qualifier_dir(self) -> Path:
        return self.cache_dir / QUALIFIER_DIRECTORY

    def unit_file(self, key: DependencyKey) -> Path:
        return self.cache_dir / f"{escape_key(key)}{UNIT_SUFFIX}"

    def proxy_file(self, type_name: str) -> Path:
        return self.cache_dir / f"{type_name}{PROXY_SUFFIX}"

    def qualifier_file(self, owner: str, method: str, parameter: str) -> Path:
        return qualifier_path(self.cache_dir, owner, method, parameter)


__all__ = ["AOP_FILE", "MODULE_FILE", "PROXY_SUFFIX", "UNIT_SUFFIX", "CacheLayout"]
