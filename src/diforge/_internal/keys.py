from __future__ import annotations

import importlib
from typing import Any, TypeAlias

from diforge._internal.markers import component_of, strip_annotated
from diforge.exceptions import DIForgeInvalidBindingError

DependencyKey: TypeAlias = str
"""A ``"<interface>-<name>"`` string identifying one resolvable binding."""

ANY = "any"
"""Qualifier used when a binding or request carries no explicit name."""

COMPILE = "diforge.compile"
"""Qualifier of the boolean binding that switches bootstrap into compiled mode."""

_PATH_SEPARATORS = ("/", "\\")
_LOCALS_MARKER = "<locals>"


def interface_name(interface: Any) -> str:
    """Return the stable textual name of an interface.

    Classes and functions are named ``module.qualname``; strings are used as
    they are. ``Annotated`` wrappers are unwrapped to their base type.

    Args:
        interface: Type, ``Annotated`` alias, or string naming the interface.

    """
    if isinstance(interface, str):
        return interface
    base = strip_annotated(interface)
    qualname = getattr(base, "__qualname__", None)
    if qualname is None:
        return repr(base)
    module = getattr(base, "__module__", None)
    if not module:
        return qualname
    return f"{module}.{qualname}"


def dependency_key(interface: Any, name: str | None = None) -> DependencyKey:
    """Build the dependency key for an interface and qualifier name.

    When ``name`` is omitted the qualifier comes from an
    ``Annotated[T, Component(...)]`` marker, falling back to ``ANY``.

    Args:
        interface: Type, ``Annotated`` alias, or string naming the interface.
        name: Explicit qualifier name.

    Returns:
        The dependency key string.

    """
    if name is None:
        component = component_of(interface)
        name = ANY if component is None else str(component.value)
    return f"{interface_name(interface)}-{name}"


def as_key(dependency: Any, name: str | None = None) -> DependencyKey:
    """Normalize a ``resolve`` argument pair into a dependency key.

    A bare string without ``name`` is taken to be a complete key already.
    """
    if name is None and isinstance(dependency, str):
        return dependency
    return dependency_key(dependency, name)


def escape_key(key: DependencyKey) -> str:
    """Return ``key`` with path separators replaced so it is a safe file name."""
    for separator in _PATH_SEPARATORS:
        key = key.replace(separator, "_")
    return key


def import_path(obj: Any) -> str:
    """Return the ``"module:qualname"`` path generated code uses to import ``obj``.

    Raises:
        DIForgeInvalidBindingError: If ``obj`` is defined inside a function or
            has no module, so it cannot be imported by name.

    """
    module = getattr(obj, "__module__", None)
    qualname = getattr(obj, "__qualname__", None)
    if not module or not qualname or _LOCALS_MARKER in qualname:
        msg = f"Object {obj!r} is not importable by name; define it at module level."
        raise DIForgeInvalidBindingError(msg)
    return f"{module}:{qualname}"


def load_import_path(path: str) -> Any:
    """Import and return the object named by a ``"module:qualname"`` path."""
    module_name, _, qualname = path.partition(":")
    obj: Any = importlib.import_module(module_name)
    for attribute in qualname.split("."):
        obj = getattr(obj, attribute)
    return obj


COMPILE_KEY: DependencyKey = dependency_key("", COMPILE)
"""Key of the compile-mode flag binding read during bootstrap."""

__all__ = [
    "ANY",
    "COMPILE",
    "COMPILE_KEY",
    "DependencyKey",
    "as_key",
    "dependency_key",
    "escape_key",
    "import_path",
    "interface_name",
    "load_import_path",
]
