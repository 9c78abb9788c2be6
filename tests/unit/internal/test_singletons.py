from __future__ import annotations

from diforge._internal.singletons import SingletonCache


def test_put_then_get_returns_same_instance() -> None:
    cache = SingletonCache()
    instance = object()

    cache.put("key-any", instance)

    assert cache.get("key-any") is instance
    assert "key-any" in cache
    assert len(cache) == 1


def test_missing_key_is_not_contained() -> None:
    cache = SingletonCache()

    assert cache.get("key-any") is None
    assert cache.get("key-any", "fallback") == "fallback"
    assert "key-any" not in cache


def test_none_singleton_is_distinguishable_from_missing() -> None:
    cache = SingletonCache()

    cache.put("key-any", None)

    assert "key-any" in cache
    assert cache.get("key-any", "fallback") is None


def test_seed_and_snapshot_are_copies() -> None:
    seed = {"a-any": 1}
    cache = SingletonCache(seed)
    seed["b-any"] = 2

    snapshot = cache.snapshot()
    snapshot["c-any"] = 3

    assert cache.snapshot() == {"a-any": 1}


def test_clear_drops_every_entry() -> None:
    cache = SingletonCache({"a-any": 1, "b-any": 2})

    cache.clear()

    assert len(cache) == 0
