from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from diforge._internal.keys import DependencyKey


class SingletonCache:
    """Hold materialized singleton instances by dependency key.

    Pure in-memory map without eviction. Its lifetime is the owning resolver's;
    nothing here is ever written to disk.
    """

    def __init__(self, seed: Mapping[DependencyKey, Any] | None = None) -> None:
        self._instances: dict[DependencyKey, Any] = dict(seed or {})

    def get(self, key: DependencyKey, default: Any = None) -> Any:
        return self._instances.get(key, default)

    def put(self, key: DependencyKey, instance: Any) -> None:
        self._instances[key] = instance

    def snapshot(self) -> dict[DependencyKey, Any]:
        """Return a shallow copy of the current entries."""
        return dict(self._instances)

    def clear(self) -> None:
        self._instances.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._instances

    def __len__(self) -> int:
        return len(self._instances)


__all__ = ["SingletonCache"]
