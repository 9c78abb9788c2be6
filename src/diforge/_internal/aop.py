from __future__ import annotations

import inspect
import logging
import zlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeAlias

from jinja2 import Environment

from diforge._internal.compiler.templates import PROXY_TEMPLATE
from diforge._internal.keys import (
    DependencyKey,
    dependency_key,
    import_path,
    load_import_path,
)

logger = logging.getLogger(__name__)

MatcherKind: TypeAlias = Literal["any", "subclass_of", "annotated_with", "starts_with"]

MethodBindings: TypeAlias = dict[str, list[DependencyKey]]
"""Interceptor keys per intercepted method name of one concrete class."""

PointcutTable: TypeAlias = dict[str, MethodBindings]
"""Method bindings per concrete class import path, persisted as ``aop.txt``."""

_BINDINGS_ATTRIBUTE = "_diforge_bindings"
_PROXY_ENV = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)  # noqa: S701
_PROXY_TEMPLATE = _PROXY_ENV.from_string(PROXY_TEMPLATE)


class MethodInterceptor(Protocol):
    """Intercept calls to methods matched by a pointcut."""

    def invoke(self, invocation: MethodInvocation) -> Any: ...


class MethodInvocation:
    """One intercepted method call travelling through its interceptor chain.

    Each ``proceed()`` hands the call to the next interceptor; after the last
    one the original method runs with the (possibly modified) arguments.
    """

    def __init__(
        self,
        this: Any,
        method: Any,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        interceptors: Sequence[MethodInterceptor],
    ) -> None:
        self.this = this
        self.method = method
        self.args = args
        self.kwargs = kwargs
        self._interceptors = interceptors
        self._index = 0

    @property
    def method_name(self) -> str:
        return self.method.__name__

    def proceed(self) -> Any:
        if self._index < len(self._interceptors):
            interceptor = self._interceptors[self._index]
            self._index += 1
            return interceptor.invoke(self)
        return self.method(self.this, *self.args, **self.kwargs)


@dataclass(frozen=True, slots=True)
class Matcher:
    """Select classes or methods a pointcut applies to.

    Matchers are plain data so the pointcut table can be written to disk.
    ``subclass_of`` stores the base class by import path.
    """

    kind: MatcherKind
    argument: str | None = None

    @classmethod
    def any(cls) -> Matcher:
        return cls("any")

    @classmethod
    def subclass_of(cls, base: type[Any]) -> Matcher:
        return cls("subclass_of", import_path(base))

    @classmethod
    def annotated_with(cls, marker: str) -> Matcher:
        """Match objects carrying a truthy ``marker`` attribute."""
        return cls("annotated_with", marker)

    @classmethod
    def starts_with(cls, prefix: str) -> Matcher:
        return cls("starts_with", prefix)

    def matches(self, candidate: Any) -> bool:
        if self.kind == "any":
            return True
        argument = self.argument or ""
        if self.kind == "subclass_of":
            return inspect.isclass(candidate) and issubclass(
                candidate,
                load_import_path(argument),
            )
        if self.kind == "annotated_with":
            return bool(getattr(candidate, argument, False))
        return getattr(candidate, "__name__", "").startswith(argument)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "argument": self.argument}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Matcher:
        return cls(data["kind"], data.get("argument"))


@dataclass(frozen=True, slots=True)
class Pointcut:
    """Bind interceptors to the methods selected by a class and method matcher."""

    class_matcher: Matcher
    method_matcher: Matcher
    interceptors: tuple[type[Any], ...] = field(default_factory=tuple)

    @property
    def interceptor_keys(self) -> list[DependencyKey]:
        return [dependency_key(interceptor) for interceptor in self.interceptors]


def method_bindings(concrete: type[Any], pointcuts: Sequence[Pointcut]) -> MethodBindings:
    """Return the interceptor keys for every public method of ``concrete`` a pointcut matches."""
    bindings: MethodBindings = {}
    if any(concrete in pointcut.interceptors for pointcut in pointcuts):
        # Interceptors are never woven themselves.
        return bindings
    for pointcut in pointcuts:
        if not pointcut.class_matcher.matches(concrete):
            continue
        for name, method in inspect.getmembers(concrete, inspect.isfunction):
            if name.startswith("_") or not pointcut.method_matcher.matches(method):
                continue
            bindings.setdefault(name, []).extend(pointcut.interceptor_keys)
    return bindings


def build_pointcut_table(
    concretes: Sequence[type[Any]],
    pointcuts: Sequence[Pointcut],
) -> PointcutTable:
    """Compute method bindings for every concrete class that has at least one match."""
    table: PointcutTable = {}
    for concrete in concretes:
        bindings = method_bindings(concrete, pointcuts)
        if bindings:
            table[import_path(concrete)] = bindings
    return table


def proxy_name(concrete: type[Any], bindings: MethodBindings) -> str:
    """Return a deterministic proxy class name for ``concrete`` and its bindings."""
    fingerprint = "|".join([import_path(concrete), *sorted(bindings)])
    return f"{concrete.__name__}_Proxy_{zlib.crc32(fingerprint.encode()):08x}"


def render_proxy_source(concrete: type[Any], bindings: MethodBindings, name: str) -> str:
    """Render the source of a subclass routing bound methods through interceptors."""
    return _PROXY_TEMPLATE.render(
        target_path=import_path(concrete),
        proxy_name=name,
        methods=sorted(bindings),
    )


def weave(concrete: type[Any], bindings: MethodBindings) -> type[Any]:
    """Build a proxy type in memory for interpreted resolution."""
    name = proxy_name(concrete, bindings)
    source = render_proxy_source(concrete, bindings, name)
    namespace: dict[str, Any] = {}
    exec(compile(source, f"<diforge-proxy {name}>", "exec"), namespace)  # noqa: S102
    logger.debug("Wove proxy %s for %s", name, concrete.__qualname__)
    return namespace[name]


def bind_interceptors(
    instance: Any,
    bindings: Mapping[str, Sequence[MethodInterceptor]],
) -> None:
    """Attach resolved interceptor instances to a proxy instance."""
    object.__setattr__(instance, _BINDINGS_ATTRIBUTE, dict(bindings))


__all__ = [
    "Matcher",
    "MethodBindings",
    "MethodInterceptor",
    "MethodInvocation",
    "Pointcut",
    "PointcutTable",
    "bind_interceptors",
    "build_pointcut_table",
    "method_bindings",
    "proxy_name",
    "render_proxy_source",
    "weave",
]
