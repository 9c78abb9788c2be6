from __future__ import annotations

import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


def _directory_name(cache_dir: Path | str) -> str:
    return str(Path(cache_dir))


@dataclass
class ForgeRegistry:
    """Hold the process-scoped state shared by bootstrap and compiled containers.

    ``resolvers`` memoizes bootstrapped resolvers by cache directory id and
    ``saved_modules`` records the directories whose ``module.txt`` this process
    has already written. Both only grow during the life of the process; tests
    construct their own registry instead of touching ``default_registry``.
    """

    resolvers: dict[int, Any] = field(default_factory=dict)
    saved_modules: set[str] = field(default_factory=set)

    @staticmethod
    def resolver_id(cache_dir: Path | str) -> int:
        """Return the memoization id of a cache directory."""
        return zlib.crc32(_directory_name(cache_dir).encode())

    def is_module_saved(self, cache_dir: Path | str) -> bool:
        return _directory_name(cache_dir) in self.saved_modules

    def mark_module_saved(self, cache_dir: Path | str) -> None:
        self.saved_modules.add(_directory_name(cache_dir))

    def forget_module(self, cache_dir: Path | str) -> None:
        self.saved_modules.discard(_directory_name(cache_dir))


default_registry = ForgeRegistry()
"""The single process-wide registry, created once at import time."""

__all__ = ["ForgeRegistry", "default_registry"]
