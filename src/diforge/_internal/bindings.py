from __future__ import annotations

import inspect
import json
import logging
import math
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

from diforge._internal.aop import Matcher, Pointcut
from diforge._internal.keys import (
    DependencyKey,
    dependency_key,
    import_path,
    interface_name,
    load_import_path,
)
from diforge.exceptions import DIForgeInvalidBindingError, DIForgeSerializationError

if TYPE_CHECKING:
    from typing_extensions import Self

logger = logging.getLogger(__name__)

BindingKind: TypeAlias = Literal["concrete", "instance", "factory", "provider"]

_SNAPSHOT_FORMAT = 1
_JSON_SCALARS = (str, int, bool, type(None))


class Lifetime(str, Enum):
    """Define how long a resolved instance is reused."""

    TRANSIENT = "transient"
    """A new instance is built for every resolution."""

    SINGLETON = "singleton"
    """A single instance is built and shared for the lifetime of the resolver."""


@dataclass(frozen=True, slots=True)
class Binding:
    """Describe how one dependency key is produced.

    ``target`` is the concrete class, factory callable, provider class, or the
    bound value itself depending on ``kind``.
    """

    key: DependencyKey
    provides: str
    kind: BindingKind
    target: Any
    lifetime: Lifetime = Lifetime.TRANSIENT

    @property
    def is_singleton(self) -> bool:
        # Instance bindings always hand out the same object.
        return self.kind == "instance" or self.lifetime is Lifetime.SINGLETON


class Module:
    """Declare the bindings a resolver serves.

    Subclass and override ``configure`` to register bindings, or register on
    an instance directly. Modules compose with ``install`` (existing bindings
    win) and ``override`` (incoming bindings win).

    A module can be written to bytes with ``serialize`` and rebuilt with
    ``Module.deserialize`` so a restarted process can resolve compiled keys
    without evaluating the original configuration code again.

    Examples:
        .. code-block:: python

            class AppModule(Module):
                def configure(self) -> None:
                    self.add_concrete(EnglishGreeter, provides=Greeter)
                    self.add_concrete(SystemClock, provides=Clock, lifetime=Lifetime.SINGLETON)

    """

    def __init__(self, module: Module | None = None) -> None:
        self._bindings: dict[DependencyKey, Binding] = {}
        self._pointcuts: list[Pointcut] = []
        self.configure()
        if module is not None:
            self.install(module)

    def configure(self) -> None:
        """Register bindings. Override in subclasses."""

    @property
    def bindings(self) -> Mapping[DependencyKey, Binding]:
        return self._bindings

    @property
    def pointcuts(self) -> list[Pointcut]:
        return list(self._pointcuts)

    def get(self, key: DependencyKey) -> Binding | None:
        return self._bindings.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._bindings

    def __iter__(self) -> Iterator[Binding]:
        return iter(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)

    def add_concrete(
        self,
        concrete: type[Any],
        *,
        provides: Any = None,
        name: str | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Self:
        """Bind ``provides`` (default: ``concrete`` itself) to a class built by constructor injection.

        Args:
            concrete: Class to instantiate.
            provides: Interface served by this binding.
            name: Qualifier name. Taken from ``Annotated[..., Component(...)]``
                on ``provides`` when omitted.
            lifetime: Instance reuse policy.

        Raises:
            DIForgeInvalidBindingError: If ``concrete`` is not a class.

        """
        if not inspect.isclass(concrete):
            msg = f"Concrete binding target must be a class, got {concrete!r}."
            raise DIForgeInvalidBindingError(msg)
        return self._add(
            provides=concrete if provides is None else provides,
            name=name,
            kind="concrete",
            target=concrete,
            lifetime=lifetime,
        )

    def add_instance(self, obj: Any, *, provides: Any, name: str | None = None) -> Self:
        """Bind ``provides`` to an existing value."""
        return self._add(
            provides=provides,
            name=name,
            kind="instance",
            target=obj,
            lifetime=Lifetime.SINGLETON,
        )

    def add_factory(
        self,
        factory: Callable[..., Any],
        *,
        provides: Any,
        name: str | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Self:
        """Bind ``provides`` to the result of calling ``factory`` with injected arguments."""
        if not callable(factory) or inspect.isclass(factory):
            msg = f"Factory binding target must be a function, got {factory!r}."
            raise DIForgeInvalidBindingError(msg)
        return self._add(
            provides=provides,
            name=name,
            kind="factory",
            target=factory,
            lifetime=lifetime,
        )

    def add_provider(
        self,
        provider: type[Any],
        *,
        provides: Any,
        name: str | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Self:
        """Bind ``provides`` to ``provider().get()``; the provider itself is constructor-injected."""
        if not inspect.isclass(provider) or not callable(getattr(provider, "get", None)):
            msg = f"Provider binding target must be a class with a get() method, got {provider!r}."
            raise DIForgeInvalidBindingError(msg)
        return self._add(
            provides=provides,
            name=name,
            kind="provider",
            target=provider,
            lifetime=lifetime,
        )

    def bind_interceptor(
        self,
        class_matcher: Matcher,
        method_matcher: Matcher,
        interceptors: list[type[Any]],
    ) -> Self:
        """Route methods selected by the matchers through ``interceptors``.

        Interceptor classes without a binding are registered as transient
        concretes so resolvers can construct them.
        """
        self._pointcuts.append(Pointcut(class_matcher, method_matcher, tuple(interceptors)))
        for interceptor in interceptors:
            if dependency_key(interceptor) not in self._bindings:
                self.add_concrete(interceptor)
        return self

    def install(self, module: Module) -> Self:
        """Merge ``module`` into this one, keeping bindings already present."""
        for key, binding in module.bindings.items():
            self._bindings.setdefault(key, binding)
        self._pointcuts.extend(module.pointcuts)
        return self

    def override(self, module: Module) -> Self:
        """Merge ``module`` into this one, replacing bindings already present."""
        self._bindings.update(module.bindings)
        self._pointcuts.extend(module.pointcuts)
        return self

    def serialize(self) -> bytes:
        """Return the UTF-8 JSON snapshot written to ``module.txt``.

        Raises:
            DIForgeSerializationError: If a target is not importable by name or
                an instance value is not JSON-compatible.

        """
        try:
            payload = {
                "format": _SNAPSHOT_FORMAT,
                "bindings": [self._binding_to_dict(binding) for binding in self._bindings.values()],
                "pointcuts": [self._pointcut_to_dict(pointcut) for pointcut in self._pointcuts],
            }
        except DIForgeInvalidBindingError as error:
            raise DIForgeSerializationError(str(error)) from error
        return json.dumps(payload, sort_keys=True).encode()

    @classmethod
    def deserialize(cls, data: bytes) -> Module:
        """Rebuild a module from ``serialize`` output without running ``configure``."""
        try:
            payload = json.loads(data.decode())
            module = cls.__new__(cls)
            module._bindings = {}
            module._pointcuts = []
            for item in payload["bindings"]:
                binding = Binding(
                    key=item["key"],
                    provides=item["provides"],
                    kind=item["kind"],
                    target=(
                        item["target"]
                        if item["kind"] == "instance"
                        else load_import_path(item["target"])
                    ),
                    lifetime=Lifetime(item["lifetime"]),
                )
                module._bindings[binding.key] = binding
            for item in payload["pointcuts"]:
                module._pointcuts.append(
                    Pointcut(
                        class_matcher=Matcher.from_dict(item["class_matcher"]),
                        method_matcher=Matcher.from_dict(item["method_matcher"]),
                        interceptors=tuple(
                            load_import_path(path) for path in item["interceptors"]
                        ),
                    ),
                )
        except (ValueError, KeyError, TypeError, ImportError, AttributeError) as error:
            msg = f"Cannot deserialize module snapshot: {error}"
            raise DIForgeSerializationError(msg) from error
        return module

    def _add(
        self,
        *,
        provides: Any,
        name: str | None,
        kind: BindingKind,
        target: Any,
        lifetime: Lifetime,
    ) -> Self:
        key = dependency_key(provides, name)
        self._bindings[key] = Binding(
            key=key,
            provides=interface_name(provides),
            kind=kind,
            target=target,
            lifetime=lifetime,
        )
        logger.debug("Bound %s to %s binding (%s)", key, kind, lifetime.value)
        return self

    def _binding_to_dict(self, binding: Binding) -> dict[str, Any]:
        if binding.kind == "instance":
            if not is_json_value(binding.target):
                msg = (
                    f"Instance bound to '{binding.key}' is not JSON-compatible "
                    f"and cannot be written to a module snapshot: {binding.target!r}."
                )
                raise DIForgeSerializationError(msg)
            target = binding.target
        else:
            target = import_path(binding.target)
        return {
            "key": binding.key,
            "provides": binding.provides,
            "kind": binding.kind,
            "target": target,
            "lifetime": binding.lifetime.value,
        }

    def _pointcut_to_dict(self, pointcut: Pointcut) -> dict[str, Any]:
        return {
            "class_matcher": pointcut.class_matcher.to_dict(),
            "method_matcher": pointcut.method_matcher.to_dict(),
            "interceptors": [import_path(interceptor) for interceptor in pointcut.interceptors],
        }


class NullModule(Module):
    """A module without bindings."""


def is_json_value(value: Any) -> bool:
    """Return whether ``value`` survives a JSON round trip unchanged.

    Only exact built-in types qualify, so subclasses such as ``str`` enums
    are rejected. Floats must be finite.
    """
    value_type = type(value)
    if value_type in _JSON_SCALARS:
        return True
    if value_type is float:
        return math.isfinite(value)
    if value_type is list:
        return all(is_json_value(item) for item in value)
    if value_type is dict:
        return all(type(key) is str and is_json_value(item) for key, item in value.items())
    return False


__all__ = ["Binding", "BindingKind", "Lifetime", "Module", "NullModule", "is_json_value"]
