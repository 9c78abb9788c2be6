from __future__ import annotations

from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from textwrap import indent

from jinja2 import Environment, Template

from diforge._internal.aop import MethodBindings
from diforge._internal.bindings import Binding, Module, is_json_value
from diforge._internal.compiler.templates import (
    CONCRETE_BODY_TEMPLATE,
    FACTORY_BODY_TEMPLATE,
    INSTANCE_BODY_TEMPLATE,
    INTERCEPTOR_BINDING_TEMPLATE,
    PROVIDER_BODY_TEMPLATE,
    UNIT_TEMPLATE,
)
from diforge._internal.dependencies import (
    INJECTION_POINT_KEY,
    RESOLVER_KEY,
    ProviderDependency,
)
from diforge._internal.keys import import_path
from diforge.exceptions import DIForgeInvalidBindingError

_INDENT = " " * 4
_GENERATOR_SOURCE = "diforge._internal.compiler.renderer.UnitTemplateRenderer.render_unit"
_TARGET_ALIAS = "_target"


@dataclass(frozen=True, slots=True)
class UnitRenderContext:
    """Everything needed to render the construction unit of one binding."""

    binding: Binding
    module: Module
    dependencies: list[ProviderDependency]
    owner_path: str
    method: str
    proxy_name: str | None = None
    interceptors: MethodBindings | None = None


class UnitTemplateRenderer:
    """Render the Python source of construction units.

    A unit defines ``is_singleton`` and a ``build`` function taking the
    resolver callbacks ``prototype``, ``singleton``, ``injection_point``,
    ``injector`` and ``load_type``. Rendering is deterministic for a given
    module so concurrent compilers produce identical files.
    """

    def __init__(self) -> None:
        self._env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)  # noqa: S701
        self._unit_template = self._template(UNIT_TEMPLATE)
        self._concrete_template = self._template(CONCRETE_BODY_TEMPLATE)
        self._factory_template = self._template(FACTORY_BODY_TEMPLATE)
        self._provider_template = self._template(PROVIDER_BODY_TEMPLATE)
        self._instance_template = self._template(INSTANCE_BODY_TEMPLATE)
        self._interceptor_template = self._template(INTERCEPTOR_BINDING_TEMPLATE)

    def render_unit(self, context: UnitRenderContext) -> str:
        """Render the unit source for ``context.binding``.

        Args:
            context: Binding, module and extracted dependencies to render.

        Raises:
            DIForgeInvalidBindingError: If an instance value has no literal
                form or a target is not importable.

        """
        binding = context.binding
        imports: list[tuple[str, str]] = []
        if binding.kind != "instance":
            imports.append((_TARGET_ALIAS, import_path(binding.target)))

        body = self._render_body(context)
        return self._unit_template.render(
            docstring=self._docstring(binding),
            imports=imports,
            is_singleton=binding.is_singleton,
            body_block=indent(body, _INDENT),
        ).rstrip() + "\n"

    def _render_body(self, context: UnitRenderContext) -> str:
        binding = context.binding
        if binding.kind == "instance":
            if not is_json_value(binding.target):
                msg = (
                    f"Instance bound to '{binding.key}' has no literal form and "
                    "cannot be compiled into a construction unit."
                )
                raise DIForgeInvalidBindingError(msg)
            return self._instance_template.render(value=repr(binding.target))

        arguments = self._arguments(context)
        if binding.kind == "factory":
            return self._factory_template.render(factory=_TARGET_ALIAS, arguments=arguments)
        if binding.kind == "provider":
            return self._provider_template.render(provider=_TARGET_ALIAS, arguments=arguments)

        constructor = _TARGET_ALIAS
        if context.proxy_name is not None:
            constructor = f"load_type({context.proxy_name!r})"
        interceptor_block = ""
        if context.interceptors:
            interceptor_block = self._interceptor_template.render(
                bindings=sorted(context.interceptors.items()),
            )
        return self._concrete_template.render(
            constructor=constructor,
            arguments=arguments,
            interceptor_block=interceptor_block,
        )

    def _arguments(self, context: UnitRenderContext) -> list[str]:
        arguments: list[str] = []
        for dependency in context.dependencies:
            expression = self._dependency_expression(context, dependency)
            if expression is None:
                continue
            if dependency.positional_only:
                arguments.append(expression)
            else:
                arguments.append(f"{dependency.name}={expression}")
        return arguments

    def _dependency_expression(
        self,
        context: UnitRenderContext,
        dependency: ProviderDependency,
    ) -> str | None:
        if dependency.key == RESOLVER_KEY:
            return "injector()"
        if dependency.key == INJECTION_POINT_KEY:
            return "injection_point()"
        target = context.module.get(dependency.key)
        if target is None:
            # Optional parameters keep their defaults; required ones fail at build time.
            if not dependency.required:
                return None
            callback = "prototype"
        else:
            callback = "singleton" if target.is_singleton else "prototype"
        ip = (context.owner_path, context.method, dependency.name)
        return f"{callback}({dependency.key!r}, {ip!r})"

    def _docstring(self, binding: Binding) -> str:
        lines = [
            f"Construction unit for ``{binding.key}``.",
            "",
            f"Generated by: {_GENERATOR_SOURCE}",
            f"diforge version used for generation: {self._resolve_diforge_version()}",
            f"binding kind: {binding.kind}",
            f"lifetime: {binding.lifetime.value}",
        ]
        return "\n".join(lines)

    def _resolve_diforge_version(self) -> str:
        try:
            return version("diforge")
        except PackageNotFoundError:
            return "unknown"

    def _template(self, source: str) -> Template:
        return self._env.from_string(source)


__all__ = ["UnitRenderContext", "UnitTemplateRenderer"]
