from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResolverProtocol(Protocol):
    """Protocol shared by the interpreted ``Injector`` and the ``CompiledContainer``.

    Constructors and providers may depend on ``ResolverProtocol`` to receive
    the resolver that is building them.
    """

    def resolve(self, dependency: Any, name: str | None = None) -> Any:
        """Return an instance for a dependency key or an ``(interface, name)`` pair."""
        ...

    def is_singleton(self, dependency: Any, name: str | None = None) -> bool:
        """Return whether the binding for the key is singleton-scoped."""
        ...


__all__ = ["ResolverProtocol"]
