from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from diforge._internal.layout import CacheLayout

logger = logging.getLogger(__name__)


class CodeLoader(Protocol):
    """Load generated types that were not known when the caller was written."""

    def try_load(self, type_name: str) -> type[Any] | None:
        """Return the generated type named ``type_name`` or ``None`` if there is none."""
        ...


class DirectoryCodeLoader:
    """Load generated proxy types from ``<directory>/<type_name>.py``.

    Each module is executed at most once per loader; later lookups return the
    memoized type.
    """

    def __init__(self, directory: Path) -> None:
        self._layout = CacheLayout(Path(directory))
        self._loaded: dict[str, type[Any]] = {}

    def try_load(self, type_name: str) -> type[Any] | None:
        loaded = self._loaded.get(type_name)
        if loaded is not None:
            return loaded
        source_file = self._layout.proxy_file(type_name)
        if not source_file.exists():
            return None
        namespace: dict[str, Any] = {"__name__": f"diforge.generated.{type_name}"}
        code = compile(source_file.read_text(encoding="utf-8"), str(source_file), "exec")
        exec(code, namespace)  # noqa: S102
        loaded = namespace.get(type_name)
        if loaded is None:
            return None
        self._loaded[type_name] = loaded
        logger.debug("Loaded generated type %s from %s", type_name, source_file)
        return loaded


__all__ = ["CodeLoader", "DirectoryCodeLoader"]
