from __future__ import annotations

from pathlib import Path

from diforge._internal.code_loader import DirectoryCodeLoader


def test_loads_type_from_generated_module(tmp_path: Path) -> None:
    (tmp_path / "Generated.py").write_text(
        "class Generated:\n    value = 42\n",
        encoding="utf-8",
    )
    loader = DirectoryCodeLoader(tmp_path)

    loaded = loader.try_load("Generated")

    assert loaded is not None
    assert loaded.value == 42


def test_loaded_types_are_memoized(tmp_path: Path) -> None:
    source = tmp_path / "Generated.py"
    source.write_text("class Generated:\n    pass\n", encoding="utf-8")
    loader = DirectoryCodeLoader(tmp_path)

    first = loader.try_load("Generated")
    source.unlink()

    assert loader.try_load("Generated") is first


def test_missing_module_returns_none(tmp_path: Path) -> None:
    assert DirectoryCodeLoader(tmp_path).try_load("Missing") is None


def test_module_without_named_type_returns_none(tmp_path: Path) -> None:
    (tmp_path / "Other.py").write_text("VALUE = 1\n", encoding="utf-8")

    assert DirectoryCodeLoader(tmp_path).try_load("Other") is None
