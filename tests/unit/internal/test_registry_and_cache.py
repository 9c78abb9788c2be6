from __future__ import annotations

import zlib
from pathlib import Path

from diforge._internal.cache import MemoryCache
from diforge._internal.registry import ForgeRegistry, default_registry


def test_resolver_id_is_crc32_of_directory() -> None:
    assert ForgeRegistry.resolver_id("/tmp/app") == zlib.crc32(b"/tmp/app")
    assert ForgeRegistry.resolver_id(Path("/tmp/app")) == ForgeRegistry.resolver_id("/tmp/app")


def test_saved_module_marks(tmp_path: Path) -> None:
    registry = ForgeRegistry()

    assert not registry.is_module_saved(tmp_path)
    registry.mark_module_saved(tmp_path)
    assert registry.is_module_saved(str(tmp_path))
    registry.forget_module(tmp_path)
    registry.forget_module(tmp_path)
    assert not registry.is_module_saved(tmp_path)


def test_default_registry_is_a_single_instance() -> None:
    from diforge import default_registry as exported

    assert exported is default_registry


def test_memory_cache_fetch_and_save() -> None:
    cache = MemoryCache()

    assert cache.fetch("key") is None
    cache.save("key", 1)
    assert cache.fetch("key") == 1
    assert "key" in cache
