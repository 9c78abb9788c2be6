from __future__ import annotations

import atexit
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeAlias

from diforge._internal.assisted import AssistedModule
from diforge._internal.atomic_writer import ensure_directory
from diforge._internal.bindings import Module
from diforge._internal.cache import RESOLVER_CACHE_KEY, KeyValueCache, MemoryCache
from diforge._internal.compiled_container import CompiledContainer, ContainerSnapshot
from diforge._internal.injector import Injector
from diforge._internal.keys import COMPILE_KEY
from diforge._internal.protocol import ResolverProtocol
from diforge._internal.registry import ForgeRegistry, default_registry
from diforge._internal.settings import ForgeSettings
from diforge.exceptions import DIForgeUnboundError

logger = logging.getLogger(__name__)

ModuleSource: TypeAlias = "Module | type[Module] | Callable[[], Module]"
"""A module instance, a ``Module`` subclass, or a zero-argument callable returning a module."""

ExitHookRegistrar: TypeAlias = Callable[[Callable[[], Any]], Any]


def materialize_module(source: ModuleSource) -> Module:
    """Return a module instance for any accepted module source."""
    if isinstance(source, Module):
        return source
    return source()


def warm_singletons(resolver: ResolverProtocol, saved_singletons: Iterable[Any]) -> None:
    """Resolve each key once so singleton-scoped instances exist before first use."""
    for dependency in saved_singletons:
        resolver.resolve(dependency)


def _restore_entry(entry: Any, registry: ForgeRegistry) -> ResolverProtocol:
    if isinstance(entry, ContainerSnapshot):
        return CompiledContainer.restore(entry, registry=registry)
    return entry


class BootstrapSelector:
    """Choose between interpreted and compiled resolution for a cache directory.

    The binding configuration decides: a module binding ``COMPILE_KEY`` to a
    truthy value gets a ``CompiledContainer``, anything else gets the
    interpreted ``Injector``. Results are memoized per cache directory in the
    registry, so repeated calls in one process return the same resolver.

    Examples:
        .. code-block:: python

            selector = BootstrapSelector()
            resolver = selector.get_instance(AppModule, cache_dir=Path("/tmp/app"))
            resolver.resolve(Greeter)

    """

    def __init__(
        self,
        registry: ForgeRegistry = default_registry,
        *,
        cache: KeyValueCache | None = None,
        settings: ForgeSettings | None = None,
        register_exit_hook: ExitHookRegistrar = atexit.register,
    ) -> None:
        self._registry = registry
        self._cache = MemoryCache() if cache is None else cache
        self._settings = settings
        self._register_exit_hook = register_exit_hook

    def get_instance(
        self,
        initial_module: ModuleSource,
        context_modules: Iterable[Module | type[Module]] = (),
        cache_dir: Path | str | None = None,
        saved_singletons: Iterable[Any] = (),
    ) -> ResolverProtocol:
        """Return the resolver for ``cache_dir``, building it on first request.

        Args:
            initial_module: Binding configuration, materialized at most once.
            context_modules: Modules installed after ``AssistedModule``; bindings
                already present win.
            cache_dir: Cache directory; defaults to ``ForgeSettings().cache_dir``.
            saved_singletons: Keys resolved right away on the new resolver.

        Raises:
            DIForgeFileNotWritableError: If the cache directory cannot be created.

        """
        directory = self._cache_dir(cache_dir)
        resolver_id = self._registry.resolver_id(directory)
        memoized = self._registry.resolvers.get(resolver_id)
        if memoized is not None:
            return memoized

        cached = self._cache.fetch(RESOLVER_CACHE_KEY)
        if cached is not None:
            resolver = _restore_entry(cached, self._registry)
            logger.info("Restored resolver for %s from cache", directory)
            self._registry.resolvers[resolver_id] = resolver
            return resolver

        ensure_directory(directory)
        module = materialize_module(initial_module)
        module.install(AssistedModule())
        for context_module in context_modules:
            module.install(materialize_module(context_module))
        injector = Injector(module)

        if not self._compile_enabled(injector):
            logger.info("Bootstrapped interpreted resolver for %s", directory)
            warm_singletons(injector, saved_singletons)
            self._registry.resolvers[resolver_id] = injector
            return injector

        container = CompiledContainer(directory, lambda: module, registry=self._registry)
        self._cache.save(RESOLVER_CACHE_KEY, container.persist())
        if self._settings_or_default().register_exit_hook:
            self._register_exit_hook(container.persist)
        logger.info("Bootstrapped compiled resolver for %s", directory)
        warm_singletons(injector, saved_singletons)
        warm_singletons(container, saved_singletons)
        self._registry.resolvers[resolver_id] = container
        return container

    def _compile_enabled(self, injector: Injector) -> bool:
        try:
            return bool(injector.resolve(COMPILE_KEY))
        except DIForgeUnboundError:
            return False

    def _cache_dir(self, cache_dir: Path | str | None) -> Path:
        if cache_dir is None:
            return self._settings_or_default().cache_dir
        return Path(cache_dir)

    def _settings_or_default(self) -> ForgeSettings:
        if self._settings is None:
            self._settings = ForgeSettings()
        return self._settings


class WholeContainerCache:
    """Bootstrap by caching the whole resolver in a ``KeyValueCache``.

    A cache hit skips module evaluation entirely: a stored
    ``ContainerSnapshot`` is restored into a ``CompiledContainer`` and any
    other stored resolver is used as is. A miss bootstraps through
    ``BootstrapSelector`` and stores the result for the next process.
    """

    def __init__(
        self,
        registry: ForgeRegistry = default_registry,
        *,
        selector: BootstrapSelector | None = None,
    ) -> None:
        self._registry = registry
        self._selector = selector

    def get_instance(
        self,
        module_factory: ModuleSource,
        cache_dir: Path | str,
        cache: KeyValueCache,
        saved_singletons: Iterable[Any] = (),
    ) -> ResolverProtocol:
        directory = Path(cache_dir)
        resolver_id = self._registry.resolver_id(directory)
        memoized = self._registry.resolvers.get(resolver_id)
        if memoized is not None:
            return memoized

        cached = cache.fetch(RESOLVER_CACHE_KEY)
        if cached is not None:
            resolver = _restore_entry(cached, self._registry)
            logger.info("Restored whole resolver for %s from cache", directory)
        else:
            selector = self._selector or BootstrapSelector(self._registry, cache=cache)
            resolver = selector.get_instance(module_factory, cache_dir=directory)
            entry = resolver.persist() if isinstance(resolver, CompiledContainer) else resolver
            cache.save(RESOLVER_CACHE_KEY, entry)
            logger.info("Stored whole resolver for %s in cache", directory)

        warm_singletons(resolver, saved_singletons)
        self._registry.resolvers[resolver_id] = resolver
        return resolver


__all__ = [
    "BootstrapSelector",
    "ModuleSource",
    "WholeContainerCache",
    "materialize_module",
    "warm_singletons",
]
