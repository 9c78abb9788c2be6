from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from diforge._internal.atomic_writer import AtomicFileWriter, ensure_directory
from diforge._internal.bindings import Module, NullModule
from diforge._internal.code_loader import CodeLoader, DirectoryCodeLoader
from diforge._internal.compiler.compiler import CompilerProtocol, UnitCompiler
from diforge._internal.dependencies import INJECTION_POINT_KEY, RESOLVER_KEY
from diforge._internal.injection_point import InjectionPoint, InjectionPointRef
from diforge._internal.keys import DependencyKey, as_key
from diforge._internal.layout import CacheLayout
from diforge._internal.registry import ForgeRegistry, default_registry
from diforge._internal.singletons import SingletonCache
from diforge.exceptions import DIForgeSerializationError, DIForgeUnboundError

logger = logging.getLogger(__name__)

ModuleFactory = Callable[[], Module]


@dataclass(frozen=True, slots=True)
class ContainerSnapshot:
    """Plain record of a compiled container's restartable state."""

    cache_dir: Path
    singletons: dict[DependencyKey, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class _LoadedUnit:
    build: Callable[..., Any]
    is_singleton: bool


class CompiledContainer:
    """Resolve dependencies through construction units cached on disk.

    The first request for a key compiles one unit into the cache directory;
    every later request, in this process or a restarted one, executes that unit
    instead of walking the module again. Singleton-scoped results are kept in
    a process-local ``SingletonCache``.

    The module is materialized lazily through ``module_factory``, invoked at
    most once. Without a factory the module is read back from ``module.txt``.

    Examples:
        .. code-block:: python

            container = CompiledContainer(cache_dir, AppModule)
            greeter = container.resolve(Greeter)

    """

    def __init__(
        self,
        cache_dir: Path | str,
        module_factory: ModuleFactory | None = None,
        *,
        registry: ForgeRegistry | None = None,
        compiler: CompilerProtocol | None = None,
        code_loader: CodeLoader | None = None,
        writer: AtomicFileWriter | None = None,
        singletons: Mapping[DependencyKey, Any] | None = None,
        restored: bool = False,
    ) -> None:
        """Initialize a container bound to one cache directory.

        Args:
            cache_dir: Directory holding units, proxies and the module snapshot.
            module_factory: Zero-argument callable returning the module.
            registry: Process-scoped state; defaults to ``default_registry``.
            compiler: Unit compiler; defaults to ``UnitCompiler(cache_dir)``.
            code_loader: Loader for generated proxy types.
            writer: Atomic writer shared with the default compiler.
            singletons: Initial singleton cache entries.
            restored: Whether the container was rebuilt from a snapshot, in
                which case it never writes ``module.txt``.

        """
        self._cache_dir = Path(cache_dir)
        self._layout = CacheLayout(self._cache_dir)
        self._module_factory = module_factory or self._load_module
        self._module: Module | None = None
        self._registry = default_registry if registry is None else registry
        self._writer = writer or AtomicFileWriter()
        self._compiler = compiler or UnitCompiler(self._cache_dir, writer=self._writer)
        self._code_loader = code_loader or DirectoryCodeLoader(self._cache_dir)
        self._singletons = SingletonCache(singletons)
        self._units: dict[DependencyKey, _LoadedUnit] = {}
        self._injection_point: InjectionPointRef | None = None
        self._restored = restored

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def restored(self) -> bool:
        return self._restored

    def resolve(self, dependency: Any, name: str | None = None) -> Any:
        """Return the instance bound to a dependency key, compiling its unit on first use.

        Args:
            dependency: Complete key string, or an interface to combine with ``name``.
            name: Qualifier name; defaults to the ``Component`` annotation or ``ANY``.

        Raises:
            DIForgeUnboundError: If no binding exists for the key.
            DIForgeFileNotWritableError: If a compiled artifact cannot be written.

        """
        key = as_key(dependency, name)
        if key == RESOLVER_KEY:
            return self
        if key == INJECTION_POINT_KEY:
            return self._current_injection_point()
        return self._singleton(key)

    def is_singleton(self, dependency: Any, name: str | None = None) -> bool:
        """Return whether the binding of a key is singleton-scoped.

        Raises:
            DIForgeUnboundError: If the loaded module has no binding for the key.

        """
        key = as_key(dependency, name)
        binding = self._get_module().get(key)
        if binding is None:
            raise DIForgeUnboundError(key)
        return binding.is_singleton

    def clear(self) -> None:
        """Delete every artifact under the cache directory.

        Later resolutions recompile from the module, which is materialized
        before the files go away so a container without a factory keeps it.
        An unreadable ``module.txt`` does not block the reset; the container
        then continues with an empty module.
        """
        try:
            self._get_module()
        except DIForgeSerializationError as error:
            logger.warning(
                "Discarding unreadable module snapshot in %s: %s",
                self._cache_dir,
                error,
            )
            self._module = NullModule()
        if self._cache_dir.is_dir():
            for child in self._cache_dir.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        self._singletons.clear()
        self._units.clear()
        self._registry.forget_module(self._cache_dir)
        self._restored = False
        logger.info("Cleared compiled cache directory %s", self._cache_dir)

    def persist(self) -> ContainerSnapshot:
        """Capture restartable state, writing ``module.txt`` if not yet written.

        The module snapshot is written at most once per cache directory per
        registry, and never by a container produced by ``restore``.
        """
        self._save_module()
        return ContainerSnapshot(cache_dir=self._cache_dir, singletons=self._singletons.snapshot())

    @classmethod
    def restore(
        cls,
        snapshot: ContainerSnapshot,
        *,
        registry: ForgeRegistry | None = None,
        compiler: CompilerProtocol | None = None,
        code_loader: CodeLoader | None = None,
        writer: AtomicFileWriter | None = None,
    ) -> CompiledContainer:
        """Rebuild a container from ``persist`` output.

        The module is later read from ``module.txt`` rather than from any
        factory; a missing file yields an empty module.
        """
        return cls(
            snapshot.cache_dir,
            registry=registry,
            compiler=compiler,
            code_loader=code_loader,
            writer=writer,
            singletons=snapshot.singletons,
            restored=True,
        )

    def _singleton(self, key: DependencyKey, ip: InjectionPointRef | None = None) -> Any:
        if key in self._singletons:
            logger.debug("Singleton cache hit for %s", key)
            return self._singletons.get(key)
        return self._prototype(key, ip)

    def _prototype(self, key: DependencyKey, ip: InjectionPointRef | None = None) -> Any:
        unit = self._unit(key)
        previous_ip = self._injection_point
        self._injection_point = ip
        try:
            instance = unit.build(
                self._prototype,
                self._singleton,
                self._current_injection_point,
                self._injector,
                self._load_type,
            )
        finally:
            self._injection_point = previous_ip
        if unit.is_singleton:
            self._singletons.put(key, instance)
        return instance

    def _unit(self, key: DependencyKey) -> _LoadedUnit:
        loaded = self._units.get(key)
        if loaded is not None:
            return loaded
        unit_file = self._layout.unit_file(key)
        if not unit_file.exists():
            self._compile(key)
        loaded = self._load_unit(unit_file)
        self._units[key] = loaded
        return loaded

    def _compile(self, key: DependencyKey) -> None:
        module = self._get_module()
        ensure_directory(self._cache_dir)
        # aop.txt on disk is the source of truth for "first compile done".
        if not self._layout.aop_file.exists():
            self._compiler.compile_pointcuts(module)
            self._save_module()
        self._compiler.compile_unit(module, key)

    def _load_unit(self, unit_file: Path) -> _LoadedUnit:
        namespace: dict[str, Any] = {"__name__": f"diforge.units.{unit_file.stem}"}
        code = compile(unit_file.read_text(encoding="utf-8"), str(unit_file), "exec")
        exec(code, namespace)  # noqa: S102
        logger.debug("Loaded construction unit %s", unit_file)
        return _LoadedUnit(build=namespace["build"], is_singleton=bool(namespace["is_singleton"]))

    def _get_module(self) -> Module:
        if self._module is None:
            self._module = self._module_factory()
        return self._module

    def _load_module(self) -> Module:
        module_file = self._layout.module_file
        if not module_file.exists():
            logger.info("No module snapshot in %s; using an empty module", self._cache_dir)
            return NullModule()
        return Module.deserialize(module_file.read_bytes())

    def _save_module(self) -> None:
        if self._restored or self._registry.is_module_saved(self._cache_dir):
            return
        ensure_directory(self._cache_dir)
        self._writer(self._layout.module_file, self._get_module().serialize().decode())
        self._registry.mark_module_saved(self._cache_dir)
        logger.info("Saved module snapshot to %s", self._layout.module_file)

    def _current_injection_point(self) -> InjectionPoint | None:
        if self._injection_point is None:
            return None
        return InjectionPoint.from_ref(self._injection_point, self._cache_dir)

    def _injector(self) -> CompiledContainer:
        return self

    def _load_type(self, type_name: str) -> type[Any]:
        loaded = self._code_loader.try_load(type_name)
        if loaded is None:
            raise DIForgeUnboundError(type_name)
        return loaded


__all__ = ["CompiledContainer", "ContainerSnapshot"]
