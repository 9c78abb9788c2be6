from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from inspect import Parameter
from typing import Any, get_type_hints

from diforge._internal.injection_point import InjectionPoint
from diforge._internal.keys import DependencyKey, dependency_key
from diforge._internal.markers import component_of
from diforge._internal.protocol import ResolverProtocol
from diforge.exceptions import DIForgeInvalidBindingError

INJECTION_POINT_KEY: DependencyKey = dependency_key(InjectionPoint)
"""Key resolved to the injection point of the value currently being built."""

RESOLVER_KEY: DependencyKey = dependency_key(ResolverProtocol)
"""Key resolved to the resolver itself."""

CONSTRUCTOR_METHOD = "__init__"
FACTORY_METHOD = "__call__"

_MISSING_ANNOTATION: Any = object()
_SKIPPED_KINDS = (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)


@dataclass(frozen=True, slots=True)
class ProviderDependency:
    """Represent one injectable parameter of a constructor or factory."""

    name: str
    key: DependencyKey
    required: bool
    qualifier: str | None = None
    positional_only: bool = False


class DependenciesExtractor:
    """Derive dependency keys from provider signatures and type hints.

    Parameters are mapped to keys by their annotation; ``Annotated[T,
    Component("x")]`` annotations select the ``x`` qualifier. Variadic
    parameters are ignored, and unannotated parameters with defaults are left
    to their defaults.
    """

    def extract(self, provider: Callable[..., Any]) -> list[ProviderDependency]:
        """Return the dependencies of a class constructor or factory function.

        Args:
            provider: Class or function whose parameters should be injected.

        Raises:
            DIForgeInvalidBindingError: If a required parameter has no usable
                type annotation.

        """
        try:
            parameters = tuple(inspect.signature(provider).parameters.values())
        except (TypeError, ValueError):
            # Builtins without a retrievable signature take no injected arguments.
            return []
        annotations = self._type_hints(provider)
        dependencies: list[ProviderDependency] = []

        for parameter in parameters:
            if parameter.kind in _SKIPPED_KINDS:
                continue
            required = parameter.default is Parameter.empty
            annotation = annotations.get(parameter.name, _MISSING_ANNOTATION)
            if annotation is _MISSING_ANNOTATION and not isinstance(parameter.annotation, str):
                if parameter.annotation is not Parameter.empty:
                    annotation = parameter.annotation
            if annotation is _MISSING_ANNOTATION:
                if not required:
                    continue
                msg = (
                    f"Unable to infer dependency for required parameter '{parameter.name}' "
                    f"in provider '{self._provider_name(provider)}'. Add a type annotation."
                )
                raise DIForgeInvalidBindingError(msg)

            component = component_of(annotation)
            dependencies.append(
                ProviderDependency(
                    name=parameter.name,
                    key=dependency_key(annotation),
                    required=required,
                    qualifier=None if component is None else str(component.value),
                    positional_only=parameter.kind is Parameter.POSITIONAL_ONLY,
                ),
            )

        return dependencies

    def method_name(self, provider: Callable[..., Any]) -> str:
        """Return the method name recorded in injection points for ``provider``."""
        return CONSTRUCTOR_METHOD if inspect.isclass(provider) else FACTORY_METHOD

    def _type_hints(self, provider: Callable[..., Any]) -> dict[str, Any]:
        target = provider.__init__ if inspect.isclass(provider) else provider  # type: ignore[misc]
        try:
            return get_type_hints(target, include_extras=True)
        except (AttributeError, NameError, TypeError):
            return {}

    def _provider_name(self, provider: Callable[..., Any]) -> str:
        return getattr(provider, "__qualname__", repr(provider))


__all__ = [
    "CONSTRUCTOR_METHOD",
    "FACTORY_METHOD",
    "INJECTION_POINT_KEY",
    "RESOLVER_KEY",
    "DependenciesExtractor",
    "ProviderDependency",
]
