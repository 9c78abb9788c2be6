from __future__ import annotations

from typing import Any, Protocol

RESOLVER_CACHE_KEY = "diforge.resolver"
"""Entry under which bootstrap stores a resolver or its ``ContainerSnapshot``."""


class KeyValueCache(Protocol):
    """Generic fetch/save cache used to keep a whole resolver across bootstraps."""

    def fetch(self, key: str) -> Any | None:
        """Return the stored value or ``None`` when there is no entry."""
        ...

    def save(self, key: str, value: Any) -> None: ...


class MemoryCache:
    """Process-local ``KeyValueCache`` backed by a dict."""

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def fetch(self, key: str) -> Any | None:
        return self._entries.get(key)

    def save(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._entries


__all__ = ["RESOLVER_CACHE_KEY", "KeyValueCache", "MemoryCache"]
