from __future__ import annotations

from typing import Annotated, Any

import pytest

from diforge._internal.dependencies import (
    CONSTRUCTOR_METHOD,
    FACTORY_METHOD,
    INJECTION_POINT_KEY,
    RESOLVER_KEY,
    DependenciesExtractor,
    ProviderDependency,
)
from diforge._internal.injection_point import InjectionPoint
from diforge._internal.keys import dependency_key
from diforge._internal.markers import Component
from diforge._internal.protocol import ResolverProtocol
from diforge.exceptions import DIForgeInvalidBindingError


class _Database:
    pass


class _Service:
    def __init__(
        self,
        primary: Annotated[_Database, Component("primary")],
        fallback: _Database,
        /,
        *args: Any,
        resolver: ResolverProtocol,
        ip: InjectionPoint | None = None,
        retries=3,  # noqa: ANN001
        **kwargs: Any,
    ) -> None:
        pass


def _factory(database: _Database, untyped) -> _Database:  # noqa: ANN001
    return database


def test_extracts_annotated_constructor_parameters() -> None:
    dependencies = DependenciesExtractor().extract(_Service)

    assert dependencies[:3] == [
        ProviderDependency(
            name="primary",
            key=dependency_key(_Database, "primary"),
            required=True,
            qualifier="primary",
            positional_only=True,
        ),
        ProviderDependency(
            name="fallback",
            key=dependency_key(_Database),
            required=True,
            positional_only=True,
        ),
        ProviderDependency(name="resolver", key=RESOLVER_KEY, required=True),
    ]
    assert [dependency.name for dependency in dependencies] == ["primary", "fallback", "resolver", "ip"]
    assert dependencies[3].required is False


def test_special_keys_name_injection_point_and_resolver() -> None:
    assert dependency_key(InjectionPoint) == INJECTION_POINT_KEY
    assert dependency_key(ResolverProtocol) == RESOLVER_KEY


def test_untyped_required_factory_parameter_raises() -> None:
    with pytest.raises(DIForgeInvalidBindingError, match="untyped"):
        DependenciesExtractor().extract(_factory)


def test_method_name_distinguishes_classes_and_factories() -> None:
    extractor = DependenciesExtractor()

    assert extractor.method_name(_Service) == CONSTRUCTOR_METHOD
    assert extractor.method_name(_factory) == FACTORY_METHOD
