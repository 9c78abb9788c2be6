from diforge._internal.aop import Matcher, MethodInterceptor, MethodInvocation, Pointcut
from diforge._internal.assisted import AssistedInterceptor, AssistedModule, assisted
from diforge._internal.atomic_writer import AtomicFileWriter
from diforge._internal.bindings import Binding, Lifetime, Module, NullModule
from diforge._internal.bootstrap import BootstrapSelector, WholeContainerCache
from diforge._internal.cache import RESOLVER_CACHE_KEY, KeyValueCache, MemoryCache
from diforge._internal.code_loader import CodeLoader, DirectoryCodeLoader
from diforge._internal.compiled_container import CompiledContainer, ContainerSnapshot
from diforge._internal.compiler.compiler import CompilerProtocol, UnitCompiler
from diforge._internal.injection_point import InjectionPoint
from diforge._internal.injector import Injector
from diforge._internal.keys import ANY, COMPILE, COMPILE_KEY, DependencyKey, dependency_key
from diforge._internal.markers import Component
from diforge._internal.protocol import ResolverProtocol
from diforge._internal.registry import ForgeRegistry, default_registry
from diforge._internal.settings import ForgeSettings
from diforge._internal.singletons import SingletonCache
from diforge.exceptions import (
    DIForgeError,
    DIForgeFileNotWritableError,
    DIForgeInvalidBindingError,
    DIForgeSerializationError,
    DIForgeUnboundError,
)

__all__ = [
    "ANY",
    "COMPILE",
    "COMPILE_KEY",
    "RESOLVER_CACHE_KEY",
    "AssistedInterceptor",
    "AssistedModule",
    "AtomicFileWriter",
    "Binding",
    "BootstrapSelector",
    "CodeLoader",
    "CompiledContainer",
    "CompilerProtocol",
    "Component",
    "ContainerSnapshot",
    "DIForgeError",
    "DIForgeFileNotWritableError",
    "DIForgeInvalidBindingError",
    "DIForgeSerializationError",
    "DIForgeUnboundError",
    "DependencyKey",
    "DirectoryCodeLoader",
    "ForgeRegistry",
    "ForgeSettings",
    "InjectionPoint",
    "Injector",
    "KeyValueCache",
    "Lifetime",
    "Matcher",
    "MemoryCache",
    "MethodInterceptor",
    "MethodInvocation",
    "Module",
    "NullModule",
    "Pointcut",
    "ResolverProtocol",
    "SingletonCache",
    "UnitCompiler",
    "WholeContainerCache",
    "assisted",
    "default_registry",
    "dependency_key",
]
