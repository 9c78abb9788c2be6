from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from diforge._internal.aop import (
    MethodBindings,
    PointcutTable,
    build_pointcut_table,
    proxy_name,
    render_proxy_source,
)
from diforge._internal.atomic_writer import AtomicFileWriter, ensure_directory
from diforge._internal.bindings import Binding, Module
from diforge._internal.compiler.renderer import UnitRenderContext, UnitTemplateRenderer
from diforge._internal.dependencies import DependenciesExtractor, ProviderDependency
from diforge._internal.keys import DependencyKey, import_path
from diforge._internal.layout import CacheLayout
from diforge.exceptions import DIForgeUnboundError

logger = logging.getLogger(__name__)


class CompilerProtocol(Protocol):
    """Synthesize cache artifacts for one cache directory."""

    def compile_pointcuts(self, module: Module) -> PointcutTable:
        """Compute and persist the pointcut table of the whole module."""
        ...

    def compile_unit(self, module: Module, key: DependencyKey) -> Path:
        """Synthesize and persist the construction unit of a single key."""
        ...


class UnitCompiler:
    """Compile construction units into a cache directory on demand.

    ``compile_pointcuts`` runs once per directory and writes ``aop.txt``;
    ``compile_unit`` writes ``<escaped-key>.unit`` for exactly one key, plus the
    proxy module and qualifier descriptors that unit needs. Every file goes
    through the ``AtomicFileWriter`` so concurrent processes compiling the
    same key only waste work.
    """

    def __init__(self, cache_dir: Path, *, writer: AtomicFileWriter | None = None) -> None:
        self._layout = CacheLayout(Path(cache_dir))
        self._writer = writer or AtomicFileWriter()
        self._renderer = UnitTemplateRenderer()
        self._extractor = DependenciesExtractor()

    def compile_pointcuts(self, module: Module) -> PointcutTable:
        """Compute the pointcut table of every concrete binding and write ``aop.txt``.

        Args:
            module: Module whose pointcuts and concrete bindings are compiled.

        Returns:
            The computed table, keyed by concrete class import path.

        """
        concretes = [binding.target for binding in module if binding.kind == "concrete"]
        table = build_pointcut_table(concretes, module.pointcuts)
        ensure_directory(self._layout.cache_dir)
        self._writer(self._layout.aop_file, json.dumps(table, sort_keys=True, indent=2))
        logger.info(
            "Compiled pointcut table: pointcut_count=%d woven_class_count=%d path=%s",
            len(module.pointcuts),
            len(table),
            self._layout.aop_file,
        )
        return table

    def compile_unit(self, module: Module, key: DependencyKey) -> Path:
        """Render and write the construction unit for ``key``.

        Args:
            module: Module holding the binding for ``key``.
            key: Dependency key to compile.

        Returns:
            Path of the written unit file.

        Raises:
            DIForgeUnboundError: If ``module`` has no binding for ``key``.
            DIForgeFileNotWritableError: If an artifact cannot be written.

        """
        binding = module.get(key)
        if binding is None:
            raise DIForgeUnboundError(key)

        ensure_directory(self._layout.cache_dir)
        context = self._render_context(module, binding)
        unit_file = self._layout.unit_file(key)
        self._writer(unit_file, self._renderer.render_unit(context))
        logger.info(
            "Compiled construction unit: key=%s kind=%s singleton=%s proxy=%s path=%s",
            key,
            binding.kind,
            binding.is_singleton,
            context.proxy_name,
            unit_file,
        )
        return unit_file

    def _render_context(self, module: Module, binding: Binding) -> UnitRenderContext:
        if binding.kind == "instance":
            return UnitRenderContext(
                binding=binding,
                module=module,
                dependencies=[],
                owner_path="",
                method="",
            )

        owner_path = import_path(binding.target)
        method = self._extractor.method_name(binding.target)
        dependencies = self._extractor.extract(binding.target)
        self._write_qualifiers(owner_path, method, dependencies)

        name = None
        interceptors = None
        if binding.kind == "concrete":
            interceptors = self._pointcut_table().get(owner_path)
            if interceptors:
                name = proxy_name(binding.target, interceptors)
                self._write_proxy(binding.target, interceptors, name)

        return UnitRenderContext(
            binding=binding,
            module=module,
            dependencies=dependencies,
            owner_path=owner_path,
            method=method,
            proxy_name=name,
            interceptors=interceptors,
        )

    def _pointcut_table(self) -> PointcutTable:
        aop_file = self._layout.aop_file
        if not aop_file.exists():
            return {}
        return json.loads(aop_file.read_text(encoding="utf-8"))

    def _write_proxy(self, concrete: type, interceptors: MethodBindings, name: str) -> None:
        proxy_file = self._layout.proxy_file(name)
        if proxy_file.exists():
            return
        self._writer(proxy_file, render_proxy_source(concrete, interceptors, name) + "\n")
        logger.info("Compiled interception proxy: name=%s path=%s", name, proxy_file)

    def _write_qualifiers(
        self,
        owner_path: str,
        method: str,
        dependencies: list[ProviderDependency],
    ) -> None:
        qualified = [dependency for dependency in dependencies if dependency.qualifier is not None]
        if not qualified:
            return
        ensure_directory(self._layout.qualifier_dir)
        for dependency in qualified:
            descriptor = self._layout.qualifier_file(owner_path, method, dependency.name)
            if descriptor.exists():
                continue
            self._writer(descriptor, json.dumps({"name": dependency.qualifier}))


__all__ = ["CompilerProtocol", "UnitCompiler"]
