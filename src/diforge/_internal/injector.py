from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from diforge._internal.aop import MethodBindings, bind_interceptors, method_bindings, weave
from diforge._internal.bindings import Binding, Module
from diforge._internal.dependencies import (
    INJECTION_POINT_KEY,
    RESOLVER_KEY,
    DependenciesExtractor,
)
from diforge._internal.injection_point import InjectionPoint, InjectionPointRef
from diforge._internal.keys import DependencyKey, as_key, import_path
from diforge._internal.singletons import SingletonCache
from diforge.exceptions import DIForgeInvalidBindingError, DIForgeUnboundError

logger = logging.getLogger(__name__)


class Injector:
    """Interpreted resolver that walks the module on every resolution.

    Nothing is compiled and nothing touches disk: each ``resolve`` looks the
    binding up, extracts constructor dependencies and builds the object graph.
    Singleton-scoped results are kept in a per-injector ``SingletonCache``.
    Bootstrap uses this resolver to read the compile flag and as the
    resolver of record when compilation is disabled.
    """

    def __init__(self, module: Module) -> None:
        self._module = module
        self._singletons = SingletonCache()
        self._extractor = DependenciesExtractor()
        self._proxies: dict[type[Any], tuple[type[Any], MethodBindings] | None] = {}
        self._injection_point: InjectionPointRef | None = None

    def resolve(self, dependency: Any, name: str | None = None) -> Any:
        """Build or return the instance bound to a dependency key.

        Args:
            dependency: Complete key string, or an interface to combine with ``name``.
            name: Qualifier name; defaults to the ``Component`` annotation or ``ANY``.

        Raises:
            DIForgeUnboundError: If the module has no binding for the key.

        """
        return self._resolve_key(as_key(dependency, name))

    def is_singleton(self, dependency: Any, name: str | None = None) -> bool:
        return self._binding(as_key(dependency, name)).is_singleton

    def _resolve_key(self, key: DependencyKey, ip: InjectionPointRef | None = None) -> Any:
        if key == RESOLVER_KEY:
            return self
        if key == INJECTION_POINT_KEY:
            return self._current_injection_point()
        if key in self._singletons:
            return self._singletons.get(key)
        binding = self._binding(key)
        previous_ip = self._injection_point
        self._injection_point = ip
        try:
            instance = self._build(binding)
        finally:
            self._injection_point = previous_ip
        if binding.is_singleton:
            self._singletons.put(key, instance)
        return instance

    def _binding(self, key: DependencyKey) -> Binding:
        binding = self._module.get(key)
        if binding is None:
            raise DIForgeUnboundError(key)
        return binding

    def _build(self, binding: Binding) -> Any:
        logger.debug("Building %s from %s binding", binding.key, binding.kind)
        if binding.kind == "instance":
            return binding.target
        if binding.kind == "factory":
            return self._call_with_dependencies(binding.target)
        if binding.kind == "provider":
            return self._call_with_dependencies(binding.target).get()

        proxy = self._proxy_for(binding.target)
        if proxy is None:
            return self._call_with_dependencies(binding.target)
        proxy_type, bindings = proxy
        instance = self._call_with_dependencies(proxy_type, owner=binding.target)
        bind_interceptors(
            instance,
            {
                method: tuple(self._resolve_key(key) for key in interceptor_keys)
                for method, interceptor_keys in bindings.items()
            },
        )
        return instance

    def _call_with_dependencies(
        self,
        provider: Callable[..., Any],
        *,
        owner: Callable[..., Any] | None = None,
    ) -> Any:
        owner = provider if owner is None else owner
        method = self._extractor.method_name(owner)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for dependency in self._extractor.extract(owner):
            if not dependency.required and not self._is_resolvable(dependency.key):
                continue
            value = self._resolve_key(
                dependency.key,
                (self._owner_path(owner), method, dependency.name),
            )
            if dependency.positional_only:
                args.append(value)
            else:
                kwargs[dependency.name] = value
        return provider(*args, **kwargs)

    def _is_resolvable(self, key: DependencyKey) -> bool:
        return key in self._module or key in (RESOLVER_KEY, INJECTION_POINT_KEY)

    def _proxy_for(self, concrete: type[Any]) -> tuple[type[Any], MethodBindings] | None:
        if concrete not in self._proxies:
            bindings = method_bindings(concrete, self._module.pointcuts)
            self._proxies[concrete] = (weave(concrete, bindings), bindings) if bindings else None
        return self._proxies[concrete]

    def _current_injection_point(self) -> InjectionPoint | None:
        if self._injection_point is None:
            return None
        return InjectionPoint.from_ref(self._injection_point)

    def _owner_path(self, owner: Callable[..., Any]) -> str:
        try:
            return import_path(owner)
        except DIForgeInvalidBindingError:
            return f"{owner.__module__}:{owner.__qualname__}"


__all__ = ["Injector"]
