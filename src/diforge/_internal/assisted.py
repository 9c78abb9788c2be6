from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

from diforge._internal.aop import Matcher, MethodInvocation
from diforge._internal.bindings import Module
from diforge._internal.protocol import ResolverProtocol
from diforge.exceptions import DIForgeInvalidBindingError

logger = logging.getLogger(__name__)

ASSISTED_MARKER = "__diforge_assisted__"

F = TypeVar("F", bound=Callable[..., Any])


def assisted(*names: str) -> Callable[[F], F]:
    """Mark method parameters the resolver fills in when the caller omits them.

    Examples:
        .. code-block:: python

            class Checkout:
                @assisted("clock")
                def receipt(self, order_id: int, clock: Clock | None = None) -> str: ...


            checkout.receipt(42)  # clock resolved from the resolver

    Raises:
        DIForgeInvalidBindingError: If no parameter names are given.

    """
    if not names:
        msg = "assisted() requires at least one parameter name."
        raise DIForgeInvalidBindingError(msg)

    def decorator(method: F) -> F:
        setattr(method, ASSISTED_MARKER, tuple(names))
        return method

    return decorator


class AssistedInterceptor:
    """Resolve omitted ``@assisted`` arguments before the call proceeds."""

    def __init__(self, injector: ResolverProtocol) -> None:
        self._injector = injector

    def invoke(self, invocation: MethodInvocation) -> Any:
        names: tuple[str, ...] = getattr(invocation.method, ASSISTED_MARKER, ())
        bound = inspect.signature(invocation.method).bind_partial(
            invocation.this,
            *invocation.args,
            **invocation.kwargs,
        )
        hints = get_type_hints(invocation.method, include_extras=True)
        for name in names:
            if name in bound.arguments:
                continue
            if name not in hints:
                msg = (
                    f"Assisted parameter '{name}' of '{invocation.method.__qualname__}' "
                    "has no type annotation."
                )
                raise DIForgeInvalidBindingError(msg)
            invocation.kwargs[name] = self._injector.resolve(_strip_optional(hints[name]))
            logger.debug("Assisted %s.%s", invocation.method.__qualname__, name)
        return invocation.proceed()


def _strip_optional(annotation: Any) -> Any:
    if get_origin(annotation) not in (Union, types.UnionType):
        return annotation
    members = [member for member in get_args(annotation) if member is not type(None)]
    return members[0] if len(members) == 1 else annotation


class AssistedModule(Module):
    """Route every ``@assisted`` method through ``AssistedInterceptor``."""

    def configure(self) -> None:
        self.bind_interceptor(
            Matcher.any(),
            Matcher.annotated_with(ASSISTED_MARKER),
            [AssistedInterceptor],
        )


__all__ = ["ASSISTED_MARKER", "AssistedInterceptor", "AssistedModule", "assisted"]
