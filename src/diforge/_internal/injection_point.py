from __future__ import annotations

import inspect
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias, get_type_hints

from diforge._internal.keys import escape_key, load_import_path
from diforge._internal.markers import component_of

QUALIFIER_DIRECTORY = "qualifier"

InjectionPointRef: TypeAlias = tuple[str, str, str]
"""``(owner import path, method name, parameter name)`` passed through generated units."""


def qualifier_path(cache_dir: Path, owner: str, method: str, parameter: str) -> Path:
    """Return the descriptor file holding the qualifier of one injection point."""
    file_name = escape_key(f"{owner.replace(':', '.')}-{method}-{parameter}")
    return cache_dir / QUALIFIER_DIRECTORY / file_name


@dataclass(frozen=True, slots=True)
class InjectionPoint:
    """Describe the parameter a value is being injected into.

    Providers ask for an ``InjectionPoint`` to adapt what they build to the
    consumer. Nothing is reflected until an attribute that needs it is read;
    when a cache directory is known the qualifier comes from the descriptor
    file written by the unit compiler instead of reflection.
    """

    owner: str
    method: str
    parameter: str
    cache_dir: Path | None = None

    @classmethod
    def from_ref(cls, ref: InjectionPointRef, cache_dir: Path | None = None) -> InjectionPoint:
        owner, method, parameter = ref
        return cls(owner=owner, method=method, parameter=parameter, cache_dir=cache_dir)

    @property
    def owner_object(self) -> Any:
        """Return the class or factory function owning the parameter."""
        return load_import_path(self.owner)

    @property
    def qualifier(self) -> str | None:
        """Return the ``Component`` value the parameter is annotated with, if any."""
        if self.cache_dir is not None:
            descriptor = qualifier_path(self.cache_dir, self.owner, self.method, self.parameter)
            if descriptor.exists():
                return json.loads(descriptor.read_text(encoding="utf-8"))["name"]
        hints = get_type_hints(self._callable(), include_extras=True)
        component = component_of(hints.get(self.parameter))
        return None if component is None else str(component.value)

    def signature_parameter(self) -> inspect.Parameter:
        return inspect.signature(self._callable()).parameters[self.parameter]

    def _callable(self) -> Any:
        owner = self.owner_object
        if inspect.isfunction(owner):
            return owner
        return getattr(owner, self.method)


__all__ = ["QUALIFIER_DIRECTORY", "InjectionPoint", "InjectionPointRef", "qualifier_path"]
