from __future__ import annotations

from collections import Counter
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import pytest

from diforge._internal.aop import Matcher, MethodInvocation, PointcutTable
from diforge._internal.assisted import AssistedModule, assisted
from diforge._internal.bindings import Lifetime, Module
from diforge._internal.compiled_container import CompiledContainer, ContainerSnapshot
from diforge._internal.compiler.compiler import UnitCompiler
from diforge._internal.injection_point import InjectionPoint
from diforge._internal.keys import DependencyKey, dependency_key
from diforge._internal.layout import CacheLayout
from diforge._internal.markers import Component
from diforge._internal.protocol import ResolverProtocol
from diforge._internal.registry import ForgeRegistry
from diforge.exceptions import (
    DIForgeFileNotWritableError,
    DIForgeSerializationError,
    DIForgeUnboundError,
)


class _Clock:
    def now(self) -> str:
        raise NotImplementedError


class _SystemClock(_Clock):
    def now(self) -> str:
        return "12:00"


class _Greeter:
    def greet(self) -> str:
        raise NotImplementedError


class _EnglishGreeter(_Greeter):
    def __init__(self, clock: _Clock) -> None:
        self.clock = clock

    def greet(self) -> str:
        return f"hello at {self.clock.now()}"


class _Label:
    def __init__(self, text: str) -> None:
        self.text = text


class _LabelProvider:
    def __init__(self, ip: InjectionPoint) -> None:
        self._ip = ip

    def get(self) -> _Label:
        return _Label(f"{self._ip.parameter}:{self._ip.qualifier}")


class _Report:
    def __init__(self, title: Annotated[_Label, Component("audit")], /) -> None:
        self.title = title


class _NeedsResolver:
    def __init__(self, resolver: ResolverProtocol) -> None:
        self.resolver = resolver


class _Shouting:
    def invoke(self, invocation: MethodInvocation) -> Any:
        return str(invocation.proceed()).upper()


class _Checkout:
    @assisted("clock")
    def stamp(self, order: str, clock: _Clock | None = None) -> str:
        assert clock is not None
        return f"{order}@{clock.now()}"


class _CountingCompiler:
    def __init__(self, cache_dir: Path) -> None:
        self._inner = UnitCompiler(cache_dir)
        self.pointcut_passes = 0
        self.units: Counter[DependencyKey] = Counter()

    def compile_pointcuts(self, module: Module) -> PointcutTable:
        self.pointcut_passes += 1
        return self._inner.compile_pointcuts(module)

    def compile_unit(self, module: Module, key: DependencyKey) -> Path:
        self.units[key] += 1
        return self._inner.compile_unit(module, key)


class _Env(str, Enum):
    PROD = "prod"


class _GreetingModule(Module):
    def configure(self) -> None:
        self.add_concrete(_EnglishGreeter, provides=_Greeter)
        self.add_concrete(_SystemClock, provides=_Clock, lifetime=Lifetime.SINGLETON)


def _container(
    cache_dir: Path,
    registry: ForgeRegistry,
    module: Module | None = None,
) -> tuple[CompiledContainer, _CountingCompiler]:
    compiler = _CountingCompiler(cache_dir)
    source = _GreetingModule() if module is None else module
    container = CompiledContainer(cache_dir, lambda: source, registry=registry, compiler=compiler)
    return container, compiler


def test_greeter_scenario_compiles_each_key_once(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, compiler = _container(cache_dir, registry)

    first = container.resolve(_Greeter)
    second = container.resolve(_Greeter)

    assert first is not second
    assert first.clock is second.clock
    assert first.greet() == "hello at 12:00"
    assert compiler.units == Counter({dependency_key(_Greeter): 1, dependency_key(_Clock): 1})
    assert compiler.pointcut_passes == 1
    layout = CacheLayout(cache_dir)
    assert layout.unit_file(dependency_key(_Greeter)).is_file()
    assert layout.unit_file(dependency_key(_Clock)).is_file()
    assert layout.module_file.is_file()
    assert layout.aop_file.is_file()


def test_module_factory_is_invoked_once(cache_dir: Path, registry: ForgeRegistry) -> None:
    calls: list[int] = []

    def _factory() -> Module:
        calls.append(1)
        return _GreetingModule()

    container = CompiledContainer(cache_dir, _factory, registry=registry)
    container.resolve(_Greeter)
    container.resolve(_Clock)
    container.is_singleton(_Greeter)

    assert calls == [1]


def test_existing_units_are_reused_by_new_container(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)
    container.resolve(_Greeter)

    restarted, compiler = _container(cache_dir, ForgeRegistry())

    assert restarted.resolve(_Greeter).greet() == "hello at 12:00"
    assert compiler.units == Counter()
    assert compiler.pointcut_passes == 0


def test_restore_resolves_from_disk_without_module_factory(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)
    clock = container.resolve(_Clock)
    container.resolve(_Greeter)

    restored = CompiledContainer.restore(container.persist(), registry=ForgeRegistry())

    assert restored.restored
    assert restored.resolve(_Clock) is clock
    assert restored.resolve(_Greeter).clock is clock
    assert restored.is_singleton(_Clock)
    assert not restored.is_singleton(_Greeter)


def test_restored_container_compiles_new_keys_from_module_snapshot(
    cache_dir: Path,
    registry: ForgeRegistry,
) -> None:
    container, _ = _container(cache_dir, registry)
    container.resolve(_Clock)
    snapshot = container.persist()
    CacheLayout(cache_dir).unit_file(dependency_key(_Greeter)).unlink(missing_ok=True)

    restored = CompiledContainer.restore(snapshot, registry=ForgeRegistry())

    assert restored.resolve(_Greeter).greet() == "hello at 12:00"


def test_restored_container_never_writes_module_snapshot(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)
    container.resolve(_Clock)
    snapshot = container.persist()
    module_file = CacheLayout(cache_dir).module_file
    module_file.unlink()

    restored = CompiledContainer.restore(snapshot, registry=ForgeRegistry())
    restored.persist()

    assert not module_file.exists()


def test_restored_container_without_snapshot_file_has_empty_module(cache_dir: Path) -> None:
    restored = CompiledContainer.restore(ContainerSnapshot(cache_dir), registry=ForgeRegistry())

    with pytest.raises(DIForgeUnboundError):
        restored.resolve(_Greeter)


def test_module_snapshot_written_once_per_directory(
    cache_dir: Path,
    registry: ForgeRegistry,
) -> None:
    container, _ = _container(cache_dir, registry)
    container.resolve(_Greeter)
    module_file = CacheLayout(cache_dir).module_file
    module_file.unlink()

    container.persist()
    other, _ = _container(cache_dir, registry)
    other.persist()

    assert not module_file.exists()


def test_persist_snapshot_carries_singletons(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)
    clock = container.resolve(_Clock)

    snapshot = container.persist()

    assert snapshot == ContainerSnapshot(cache_dir, {dependency_key(_Clock): clock})


def test_unbound_key_raises_and_writes_no_unit(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)

    with pytest.raises(DIForgeUnboundError, match="_Label-any"):
        container.resolve(_Label)
    with pytest.raises(DIForgeUnboundError):
        container.is_singleton(_Label)

    assert not CacheLayout(cache_dir).unit_file(dependency_key(_Label)).exists()


def test_unwritable_cache_directory_raises(tmp_path: Path, registry: ForgeRegistry) -> None:
    blocker = tmp_path / "cache"
    blocker.write_text("", encoding="utf-8")
    container, _ = _container(blocker, registry)

    with pytest.raises(DIForgeFileNotWritableError):
        container.resolve(_Greeter)


def test_clear_removes_artifacts_and_recompiles(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, compiler = _container(cache_dir, registry)
    first_clock = container.resolve(_Greeter).clock

    container.clear()

    assert cache_dir.is_dir()
    assert list(cache_dir.iterdir()) == []
    assert container.resolve(_Greeter).clock is not first_clock
    assert compiler.units[dependency_key(_Greeter)] == 2
    assert compiler.pointcut_passes == 2
    assert CacheLayout(cache_dir).module_file.is_file()


def test_clear_keeps_module_of_restored_container(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)
    container.resolve(_Greeter)
    restored = CompiledContainer.restore(container.persist(), registry=ForgeRegistry())

    restored.clear()

    assert not restored.restored
    assert restored.resolve(_Greeter).greet() == "hello at 12:00"
    assert CacheLayout(cache_dir).module_file.is_file()


def test_none_singleton_is_cached(cache_dir: Path, registry: ForgeRegistry) -> None:
    module = Module().add_instance(None, provides="nothing")
    container, compiler = _container(cache_dir, registry, module)

    assert container.resolve("nothing-any") is None
    assert container.resolve("nothing", "any") is None
    assert compiler.units == Counter({"nothing-any": 1})


def test_non_json_instance_cannot_be_compiled(cache_dir: Path, registry: ForgeRegistry) -> None:
    module = Module().add_instance(object(), provides="thing")
    container, _ = _container(cache_dir, registry, module)

    with pytest.raises(DIForgeSerializationError):
        container.resolve("thing-any")


@pytest.mark.parametrize(
    "value",
    [_Env.PROD, float("inf"), float("nan")],
    ids=["str-enum", "infinity", "nan"],
)
def test_instance_without_literal_form_writes_no_unit(
    cache_dir: Path,
    registry: ForgeRegistry,
    value: Any,
) -> None:
    module = Module().add_instance(value, provides="setting")
    container, compiler = _container(cache_dir, registry, module)

    with pytest.raises(DIForgeSerializationError, match="setting-any"):
        container.resolve("setting-any")

    assert not CacheLayout(cache_dir).unit_file("setting-any").exists()
    assert compiler.units == Counter()


def test_clear_discards_corrupt_module_snapshot(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry)
    container.resolve(_Greeter)
    snapshot = container.persist()
    CacheLayout(cache_dir).module_file.write_text("{truncated", encoding="utf-8")
    restored = CompiledContainer.restore(snapshot, registry=ForgeRegistry())

    restored.clear()

    assert list(cache_dir.iterdir()) == []
    assert not restored.restored
    with pytest.raises(DIForgeUnboundError):
        restored.resolve(_Greeter)


def test_provider_receives_injection_point_with_compiled_qualifier(
    cache_dir: Path,
    registry: ForgeRegistry,
) -> None:
    module = (
        Module()
        .add_provider(_LabelProvider, provides=_Label, name="audit")
        .add_concrete(_Report)
    )
    container, _ = _container(cache_dir, registry, module)

    assert container.resolve(_Report).title.text == "title:audit"
    assert container.resolve(InjectionPoint) is None


def test_resolver_key_returns_container(cache_dir: Path, registry: ForgeRegistry) -> None:
    container, _ = _container(cache_dir, registry, Module().add_concrete(_NeedsResolver))

    assert container.resolve(ResolverProtocol) is container
    assert container.resolve(_NeedsResolver).resolver is container


def test_interceptors_wrap_compiled_instances(cache_dir: Path, registry: ForgeRegistry) -> None:
    module = _GreetingModule().bind_interceptor(
        Matcher.subclass_of(_Greeter),
        Matcher.starts_with("greet"),
        [_Shouting],
    )
    container, _ = _container(cache_dir, registry, module)

    greeter = container.resolve(_Greeter)

    assert isinstance(greeter, _EnglishGreeter)
    assert greeter.greet() == "HELLO AT 12:00"
    assert len(list(cache_dir.glob("_EnglishGreeter_Proxy_*.py"))) == 1


def test_assisted_method_receives_resolved_argument(cache_dir: Path, registry: ForgeRegistry) -> None:
    module = _GreetingModule().add_concrete(_Checkout)
    module.install(AssistedModule())
    container, _ = _container(cache_dir, registry, module)

    checkout = container.resolve(_Checkout)

    assert checkout.stamp("order-1") == "order-1@12:00"
    assert checkout.stamp("order-2", clock=_FixedClock()) == "order-2@fixed"


class _FixedClock(_Clock):
    def now(self) -> str:
        return "fixed"
