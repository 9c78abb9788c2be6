"""Shared pytest fixtures for diforge tests."""

from pathlib import Path

import pytest

from diforge._internal.registry import ForgeRegistry


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    """Fresh cache directory that does not exist yet."""
    return tmp_path / "cache"


@pytest.fixture()
def registry() -> ForgeRegistry:
    """Process-scoped state isolated from ``default_registry``."""
    return ForgeRegistry()
